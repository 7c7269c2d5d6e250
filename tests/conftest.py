# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

import asyncio
import uuid
from datetime import date

import pytest

from mindscribe.database import close_db, init_db
from mindscribe.deps import Settings
from mindscribe.exceptions import GenerationFailed
from mindscribe.models.api import NoteFields, ProviderTranscript, ProviderUtterance
from mindscribe.repositories import PatientRepository, UserRepository
from mindscribe.services.storage import StorageManager
from mindscribe.workers.pipeline import SessionPipeline

CLINICIAN_ID = uuid.UUID("11111111-2222-3333-4444-555555555555")

DEFAULT_UTTERANCES = [
    ProviderUtterance(speaker="A", text="How have you been sleeping?", start=0, end=2400, confidence=0.97),
    ProviderUtterance(speaker="B", text="Badly, maybe four hours a night.", start=2600, end=5200, confidence=0.93),
    ProviderUtterance(speaker="A", text="Let's try a wind-down routine this week.", start=5400, end=9100, confidence=0.95),
]


class FakeTranscriber:
    def __init__(self) -> None:
        self.utterances = list(DEFAULT_UTTERANCES)
        self.fail_with = None
        self.uploads = []

    async def upload_audio(self, audio: bytes) -> str:
        self.uploads.append(audio)
        return "https://cdn.example.test/upload/abc123"

    async def create_transcript_job(self, audio_url: str) -> str:
        return "job-123"

    async def poll_until_terminal(self, job_id, on_progress=None) -> ProviderTranscript:
        if on_progress:
            on_progress("processing", 1)
        if self.fail_with is not None:
            raise self.fail_with
        return ProviderTranscript(
            id=job_id,
            status="completed",
            text=" ".join(u.text for u in self.utterances),
            utterances=self.utterances,
        )


class FakeNoteGenerator:
    def __init__(self) -> None:
        self.calls = []
        self.fail = False

    async def generate_note(self, transcript_text, note_type, patient_context=None) -> NoteFields:
        self.calls.append((transcript_text, note_type, patient_context))
        await asyncio.sleep(0.01)
        if self.fail:
            raise GenerationFailed("No content returned from DeepSeek API")
        if note_type.value == "dare":
            return NoteFields(
                description="Client discussed sleep.",
                action="Psychoeducation on sleep hygiene.",
                response="Client receptive.",
                evaluation="Review in one week.",
            )
        return NoteFields(
            subjective="Client reports four hours of sleep per night.",
            objective="Appeared fatigued.",
            assessment="Insomnia symptoms.",
            plan="Wind-down routine; review next session.",
        )


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'mindscribe.db'}",
        upload_dir=str(tmp_path / "uploads"),
        default_clinician_id=CLINICIAN_ID,
        rate_limit_enabled=False,
        assemblyai_api_key="test-assemblyai",
        deepseek_api_key="test-deepseek",
    )


@pytest.fixture
def transcriber() -> FakeTranscriber:
    return FakeTranscriber()


@pytest.fixture
def note_generator() -> FakeNoteGenerator:
    return FakeNoteGenerator()


@pytest.fixture
def storage(settings) -> StorageManager:
    return StorageManager(settings.upload_dir)


@pytest.fixture
async def session_factory(settings):
    factory = await init_db(settings.database_url)
    yield factory
    await close_db()


@pytest.fixture
async def patient(session_factory):
    async with session_factory() as db:
        user = await UserRepository(db).create(
            email="dr.reyes@example.test",
            first_name="Ana",
            last_name="Reyes",
            title="PsyD",
            user_id=CLINICIAN_ID,
        )
        patient = await PatientRepository(db).create(
            user.id,
            first_name="Jordan",
            last_name="Lee",
            client_id="C-1001",
            date_of_birth=date(1990, 4, 12),
            history="Generalized anxiety, first episode 2021",
        )
        await db.commit()
        return patient


@pytest.fixture
def pipeline(session_factory, storage, transcriber, note_generator) -> SessionPipeline:
    return SessionPipeline(
        session_factory=session_factory,
        storage=storage,
        transcriber=transcriber,
        note_generator=note_generator,
        auto_generate_notes=True,
    )


@pytest.fixture
def seeded_database(settings) -> None:
    """Create the schema and the default clinician for API tests."""

    async def seed() -> None:
        factory = await init_db(settings.database_url)
        async with factory() as db:
            await UserRepository(db).create(
                email="dr.reyes@example.test",
                first_name="Ana",
                last_name="Reyes",
                user_id=CLINICIAN_ID,
            )
            await db.commit()
        await close_db()

    asyncio.run(seed())
