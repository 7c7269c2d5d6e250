# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

import pytest

from mindscribe.exceptions import (
    TranscriptionFailed,
    TranscriptionTimeout,
    UpstreamRejected,
    UpstreamUnavailable,
)
from mindscribe.models.api import ProviderTranscript, ProviderUtterance
from mindscribe.services import transcription_service
from mindscribe.services.transcription_service import AssemblyAIClient, normalize_utterances


class FakeResponse:
    def __init__(self, status: int, body) -> None:
        self.status = status
        self._body = body

    async def json(self, **kwargs):
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False


class FakeClientSession:
    responses = []
    requests = []

    def __init__(self, *args, **kwargs) -> None:
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    def request(self, method, url, headers=None, json=None, data=None):
        FakeClientSession.requests.append((method, url, headers, json, data))
        return FakeClientSession.responses.pop(0)


@pytest.fixture
def fake_http(monkeypatch):
    FakeClientSession.responses = []
    FakeClientSession.requests = []
    monkeypatch.setattr(transcription_service.aiohttp, "ClientSession", FakeClientSession)
    return FakeClientSession


def _client(**kwargs) -> AssemblyAIClient:
    return AssemblyAIClient(api_key="test-key", base_url="https://api.test/v2", **kwargs)


def _snapshot(status: str, **kwargs) -> ProviderTranscript:
    return ProviderTranscript(id="job-1", status=status, **kwargs)


def test_normalize_maps_first_speaker_to_therapist() -> None:
    transcript = _snapshot(
        "completed",
        utterances=[
            ProviderUtterance(speaker="B", text=" Hello there. ", start=1200, end=2500, confidence=0.9),
            ProviderUtterance(speaker="A", text="Hi.", start=2600, end=3000),
            ProviderUtterance(speaker="C", text="Sorry I'm late.", start=3100, end=4000),
            ProviderUtterance(speaker="B", text="No problem.", start=4100, end=5000),
        ],
    )

    utterances = normalize_utterances(transcript)

    assert [u.speaker for u in utterances] == ["therapist", "client", "client", "therapist"]
    assert utterances[0].text == "Hello there."
    assert utterances[0].start_time == 1.2
    assert utterances[0].end_time == 2.5
    assert utterances[0].confidence == 0.9
    assert utterances[1].confidence is None


def test_normalize_empty_transcript_returns_no_utterances() -> None:
    assert normalize_utterances(_snapshot("completed", utterances=None)) == []
    assert normalize_utterances(_snapshot("completed", utterances=[])) == []


async def test_poll_returns_completed_transcript(monkeypatch) -> None:
    snapshots = [_snapshot("queued"), _snapshot("processing"), _snapshot("completed", text="hi")]
    progress = []

    async def fake_get_transcript(job_id):
        return snapshots.pop(0)

    client = _client(poll_interval=0.0)
    monkeypatch.setattr(client, "get_transcript", fake_get_transcript)

    result = await client.poll_until_terminal("job-1", on_progress=lambda s, n: progress.append((s, n)))

    assert result.status == "completed"
    assert result.text == "hi"
    assert progress == [("queued", 1), ("processing", 2)]


async def test_poll_raises_on_provider_error(monkeypatch) -> None:
    async def fake_get_transcript(job_id):
        return _snapshot("error", error="Audio file is corrupt")

    client = _client(poll_interval=0.0)
    monkeypatch.setattr(client, "get_transcript", fake_get_transcript)

    with pytest.raises(TranscriptionFailed) as exc_info:
        await client.poll_until_terminal("job-1")
    assert "Audio file is corrupt" in str(exc_info.value)


async def test_poll_times_out_while_pending(monkeypatch) -> None:
    calls = []

    async def fake_get_transcript(job_id):
        calls.append(job_id)
        return _snapshot("processing")

    client = _client(poll_interval=0.01, max_wait=0.0)
    monkeypatch.setattr(client, "get_transcript", fake_get_transcript)

    with pytest.raises(TranscriptionTimeout):
        await client.poll_until_terminal("job-1")
    assert len(calls) == 1


async def test_create_job_rejects_malformed_reference(fake_http) -> None:
    with pytest.raises(UpstreamRejected):
        await _client().create_transcript_job("not-a-url")
    assert fake_http.requests == []


async def test_create_job_enables_diarization(fake_http) -> None:
    fake_http.responses.append(FakeResponse(200, {"id": "job-42", "status": "queued"}))

    job_id = await _client().create_transcript_job("https://cdn.test/audio")

    assert job_id == "job-42"
    method, url, headers, body, _ = fake_http.requests[0]
    assert (method, url) == ("POST", "https://api.test/v2/transcript")
    assert headers["authorization"] == "test-key"
    assert body["speaker_labels"] is True
    assert body["punctuate"] is True
    assert body["language_code"] == "en"


async def test_upload_returns_provider_url(fake_http) -> None:
    fake_http.responses.append(FakeResponse(200, {"upload_url": "https://cdn.test/u/1"}))

    assert await _client().upload_audio(b"\x00\x01") == "https://cdn.test/u/1"
    _, url, headers, _, data = fake_http.requests[0]
    assert url.endswith("/upload")
    assert headers["Content-Type"] == "application/octet-stream"
    assert data == b"\x00\x01"


async def test_server_error_maps_to_unavailable(fake_http) -> None:
    fake_http.responses.append(FakeResponse(503, {"error": "maintenance"}))

    with pytest.raises(UpstreamUnavailable) as exc_info:
        await _client().upload_audio(b"audio")
    assert exc_info.value.provider_message == "maintenance"


async def test_client_error_maps_to_rejected(fake_http) -> None:
    fake_http.responses.append(FakeResponse(401, {"error": "Invalid API key"}))

    with pytest.raises(UpstreamRejected):
        await _client().get_transcript("job-1")
