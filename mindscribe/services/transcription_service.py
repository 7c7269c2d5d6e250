# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""AssemblyAI speech-to-text client and utterance normalization."""
import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional

import aiohttp

from mindscribe.deps import Settings
from mindscribe.exceptions import (
    TranscriptionFailed,
    TranscriptionTimeout,
    UpstreamRejected,
    UpstreamUnavailable,
)
from mindscribe.models.api.transcripts_schema import ProviderTranscript, Utterance
from mindscribe.utils.timecodes import ms_to_seconds

logger = logging.getLogger(__name__)

PENDING_STATUSES = ("queued", "processing")


class AssemblyAIClient:
    """Client for the AssemblyAI upload, transcript and polling endpoints."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.assemblyai.com/v2",
        timeout: int = 300,
        poll_interval: float = 3.0,
        max_wait: float = 3600.0,
    ):
        """
        Initialize AssemblyAI client.

        Args:
            api_key: AssemblyAI API key
            base_url: API base URL
            timeout: Per-request timeout in seconds
            poll_interval: Seconds between status checks
            max_wait: Give up polling after this many seconds
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.poll_interval = poll_interval
        self.max_wait = max_wait

    @classmethod
    def from_settings(cls, settings: Settings) -> "AssemblyAIClient":
        return cls(
            api_key=settings.assemblyai_api_key,
            base_url=settings.assemblyai_base_url,
            timeout=settings.transcription_http_timeout,
            poll_interval=settings.transcription_poll_interval,
            max_wait=settings.transcription_max_wait,
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        data: Optional[bytes] = None,
        content_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Send one request and map transport and HTTP failures to domain errors."""
        headers = {"authorization": self.api_key}
        if content_type:
            headers["Content-Type"] = content_type

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.request(
                    method,
                    f"{self.base_url}{path}",
                    headers=headers,
                    json=json,
                    data=data,
                ) as response:
                    if response.status >= 400:
                        message = await _error_message(response)
                        if response.status >= 500 or response.status == 429:
                            raise UpstreamUnavailable(
                                f"AssemblyAI {method} {path} failed: {message}",
                                provider_message=message,
                            )
                        raise UpstreamRejected(
                            f"AssemblyAI {method} {path} rejected: {message}",
                            provider_message=message,
                        )
                    return await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise UpstreamUnavailable(f"AssemblyAI unreachable: {e}") from e

    async def upload_audio(self, audio: bytes) -> str:
        """
        Upload raw audio bytes to AssemblyAI.

        Args:
            audio: Audio file content

        Returns:
            Provider URL referencing the uploaded audio

        Raises:
            UpstreamUnavailable: Provider unreachable
            UpstreamRejected: Provider refused the payload
        """
        started = time.monotonic()
        data = await self._request(
            "POST", "/upload", data=audio, content_type="application/octet-stream"
        )
        upload_url = data.get("upload_url")
        if not upload_url:
            raise UpstreamRejected("AssemblyAI upload returned no upload_url")

        logger.info(
            f"Uploaded {len(audio) / 1024 / 1024:.2f} MB to AssemblyAI "
            f"in {time.monotonic() - started:.2f}s"
        )
        return upload_url

    async def create_transcript_job(self, audio_url: str) -> str:
        """
        Start a transcription job with speaker diarization.

        Args:
            audio_url: Reference returned by upload_audio

        Returns:
            Provider job ID
        """
        if not audio_url or not audio_url.startswith(("http://", "https://")):
            raise UpstreamRejected(f"Malformed audio reference: {audio_url!r}")

        data = await self._request(
            "POST",
            "/transcript",
            json={
                "audio_url": audio_url,
                "speaker_labels": True,
                "punctuate": True,
                "format_text": True,
                "language_code": "en",
            },
        )
        job_id = data.get("id")
        if not job_id:
            raise UpstreamRejected("AssemblyAI transcript creation returned no id")
        return job_id

    async def get_transcript(self, job_id: str) -> ProviderTranscript:
        """Fetch the current snapshot of a transcription job."""
        data = await self._request("GET", f"/transcript/{job_id}")
        return ProviderTranscript.model_validate(data)

    async def poll_until_terminal(
        self,
        job_id: str,
        on_progress: Optional[Callable[[str, int], None]] = None,
    ) -> ProviderTranscript:
        """
        Wait for a transcription job to complete.

        Args:
            job_id: Provider job ID
            on_progress: Called with (status, poll_count) while the job is pending

        Returns:
            Completed provider transcript

        Raises:
            TranscriptionFailed: Job ended in the provider's error state
            TranscriptionTimeout: Job still pending after max_wait seconds
        """
        deadline = time.monotonic() + self.max_wait
        poll_count = 0

        result = await self.get_transcript(job_id)
        while result.status in PENDING_STATUSES:
            poll_count += 1
            if on_progress:
                on_progress(result.status, poll_count)

            if time.monotonic() + self.poll_interval > deadline:
                raise TranscriptionTimeout(
                    f"Transcription {job_id} still {result.status} after {self.max_wait:.0f}s"
                )

            await asyncio.sleep(self.poll_interval)
            result = await self.get_transcript(job_id)

        if result.status == "error":
            raise TranscriptionFailed(
                f"Transcription failed: {result.error}", provider_message=result.error
            )

        return result


async def _error_message(response: aiohttp.ClientResponse) -> str:
    """Extract the provider's error text from a failed response."""
    try:
        body = await response.json(content_type=None)
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
    except ValueError:
        pass
    return f"HTTP {response.status}"


def normalize_utterances(transcript: ProviderTranscript) -> List[Utterance]:
    """
    Map provider utterances onto therapist/client segments.

    The first speaker label the provider reports is the therapist; any other
    label is the client. Offsets are converted from milliseconds to seconds
    and provider order is preserved.

    Args:
        transcript: Completed provider transcript

    Returns:
        Normalized utterances, empty when the provider found no speech
    """
    if not transcript.utterances:
        return []

    therapist_label = transcript.utterances[0].speaker
    return [
        Utterance(
            speaker="therapist" if utterance.speaker == therapist_label else "client",
            text=utterance.text.strip(),
            start_time=ms_to_seconds(utterance.start),
            end_time=ms_to_seconds(utterance.end),
            confidence=utterance.confidence,
        )
        for utterance in transcript.utterances
    ]
