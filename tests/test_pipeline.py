# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

import asyncio
import logging
import uuid

import pytest

from mindscribe.exceptions import IllegalTransition, NotFoundError, TranscriptionFailed
from mindscribe.models.api import NoteType
from mindscribe.repositories import NoteRepository, SessionRepository, TranscriptRepository
from mindscribe.services.llm import format_transcript
from mindscribe.services.session_state import SessionPhase, SessionState
from mindscribe.workers.pipeline import INTERRUPTED_ERROR


async def _uploaded_session(pipeline, session_factory, patient):
    async with session_factory() as db:
        session = await SessionRepository(db).create(patient.id, patient.user_id)
        session = await pipeline.accept_upload(db, session, b"RIFF-fake-audio", "visit.wav")
        await db.commit()
        return session


async def _load(session_factory, session_id):
    async with session_factory() as db:
        session = await SessionRepository(db).get_by_id(session_id)
        segments = await TranscriptRepository(db).list_by_session(session_id)
        notes = await NoteRepository(db).list_by_session(session_id)
        return session, segments, notes


async def test_accept_upload_moves_session_to_awaiting(pipeline, session_factory, patient) -> None:
    session = await _uploaded_session(pipeline, session_factory, patient)

    assert SessionState.of(session).phase is SessionPhase.AWAITING_TRANSCRIPTION
    assert session.status == "processing"
    assert session.transcription_status is None
    assert await pipeline.storage.file_exists(session.recording_path)


async def test_successful_run_persists_segments_and_auto_note(
    pipeline, session_factory, patient, transcriber, note_generator
) -> None:
    session = await _uploaded_session(pipeline, session_factory, patient)

    await pipeline.run(session.id)

    session, segments, notes = await _load(session_factory, session.id)
    assert session.status == "completed"
    assert session.transcription_status == "completed"
    assert session.transcription_error is None
    assert session.end_time is not None
    assert session.duration is not None and session.duration >= 0

    assert len(segments) == len(transcriber.utterances)
    starts = [segment.start_time for segment in segments]
    assert starts == sorted(starts)
    assert [segment.speaker for segment in segments] == ["therapist", "client", "therapist"]
    assert transcriber.uploads == [b"RIFF-fake-audio"]

    assert len(notes) == 1
    assert notes[0].type == "soap"
    assert notes[0].status == "draft"
    assert notes[0].user_id == patient.user_id

    transcript_text, note_type, context = note_generator.calls[0]
    assert note_type is NoteType.SOAP
    assert context.name == "Jordan Lee"
    assert transcript_text == format_transcript(segments)


async def test_zero_utterances_completes_without_note(
    pipeline, session_factory, patient, transcriber, note_generator
) -> None:
    transcriber.utterances = []
    session = await _uploaded_session(pipeline, session_factory, patient)

    await pipeline.run(session.id)

    session, segments, notes = await _load(session_factory, session.id)
    assert session.status == "completed"
    assert session.transcription_status == "completed"
    assert segments == []
    assert notes == []
    assert note_generator.calls == []

    async with session_factory() as db:
        with pytest.raises(NotFoundError):
            await pipeline.generate_note(db, session.id, NoteType.SOAP, user_id=patient.user_id)


async def test_provider_failure_marks_session_failed(
    pipeline, session_factory, patient, transcriber, note_generator
) -> None:
    transcriber.fail_with = TranscriptionFailed("Transcription failed: audio too short")
    session = await _uploaded_session(pipeline, session_factory, patient)

    await pipeline.run(session.id)

    session, segments, notes = await _load(session_factory, session.id)
    assert session.status == "failed"
    assert session.transcription_status == "failed"
    assert "audio too short" in session.transcription_error
    assert segments == []
    assert notes == []
    assert note_generator.calls == []


async def test_failed_session_accepts_a_new_upload(
    pipeline, session_factory, patient, transcriber
) -> None:
    transcriber.fail_with = TranscriptionFailed("Transcription failed: silence")
    session = await _uploaded_session(pipeline, session_factory, patient)
    await pipeline.run(session.id)

    transcriber.fail_with = None
    async with session_factory() as db:
        failed = await SessionRepository(db).get_by_id(session.id)
        retried = await pipeline.accept_upload(db, failed, b"second-take", "retry.webm")
        await db.commit()
    assert retried.transcription_error is None

    await pipeline.run(session.id)

    session, segments, _ = await _load(session_factory, session.id)
    assert session.status == "completed"
    assert len(segments) == 3


async def test_upload_to_completed_session_is_rejected(pipeline, session_factory, patient) -> None:
    session = await _uploaded_session(pipeline, session_factory, patient)
    await pipeline.run(session.id)

    async with session_factory() as db:
        completed = await SessionRepository(db).get_by_id(session.id)
        with pytest.raises(IllegalTransition):
            await pipeline.accept_upload(db, completed, b"again", "again.wav")


async def test_replaying_completion_does_not_duplicate_segments(
    pipeline, session_factory, patient, transcriber
) -> None:
    session = await _uploaded_session(pipeline, session_factory, patient)
    await pipeline.run(session.id)

    # a second run on a completed session is a no-op
    assert await pipeline.process_recording(session.id) is None

    _, segments, _ = await _load(session_factory, session.id)
    assert len(segments) == len(transcriber.utterances)


async def test_concurrent_auto_note_checks_produce_one_note(
    pipeline, session_factory, patient, note_generator
) -> None:
    pipeline.auto_generate_notes = False
    session = await _uploaded_session(pipeline, session_factory, patient)
    await pipeline.run(session.id)

    results = await asyncio.gather(
        pipeline.ensure_auto_note(session.id), pipeline.ensure_auto_note(session.id)
    )

    assert len([note for note in results if note is not None]) == 1
    _, _, notes = await _load(session_factory, session.id)
    assert len(notes) == 1
    assert len(note_generator.calls) == 1


async def test_auto_note_failure_is_not_retried(
    pipeline, session_factory, patient, note_generator
) -> None:
    note_generator.fail = True
    session = await _uploaded_session(pipeline, session_factory, patient)

    await pipeline.run(session.id)

    session, _, notes = await _load(session_factory, session.id)
    assert session.status == "completed"
    assert session.note_generation_started_at is not None
    assert notes == []

    note_generator.fail = False
    assert await pipeline.ensure_auto_note(session.id) is None
    assert len(note_generator.calls) == 1


async def test_manual_generation_after_auto_note(pipeline, session_factory, patient) -> None:
    session = await _uploaded_session(pipeline, session_factory, patient)
    await pipeline.run(session.id)

    async with session_factory() as db:
        note = await pipeline.generate_note(db, session.id, NoteType.DARE, user_id=patient.user_id)
        await db.commit()

    assert note.type == "dare"
    assert note.description == "Client discussed sleep."
    assert note.subjective is None
    _, _, notes = await _load(session_factory, session.id)
    assert len(notes) == 2


async def test_recover_interrupted_fails_in_flight_sessions(
    pipeline, session_factory, patient
) -> None:
    async with session_factory() as db:
        repo = SessionRepository(db)
        stuck = await repo.create(
            patient.id, patient.user_id, state=SessionState(SessionPhase.TRANSCRIBING)
        )
        idle = await repo.create(patient.id, patient.user_id)
        await db.commit()

    assert await pipeline.recover_interrupted() == 1

    stuck, _, _ = await _load(session_factory, stuck.id)
    idle, _, _ = await _load(session_factory, idle.id)
    assert stuck.status == "failed"
    assert stuck.transcription_error == INTERRUPTED_ERROR
    assert idle.status == "recording"


async def test_start_runs_in_background_and_shutdown_cancels(
    pipeline, session_factory, patient
) -> None:
    session = await _uploaded_session(pipeline, session_factory, patient)

    task = pipeline.start(session.id)
    await task

    assert pipeline.active_tasks == 0
    session, _, _ = await _load(session_factory, session.id)
    assert session.status == "completed"
    await pipeline.shutdown()


async def test_new_upload_removes_previous_recording(
    pipeline, session_factory, patient, transcriber
) -> None:
    transcriber.fail_with = TranscriptionFailed("Transcription failed: silence")
    session = await _uploaded_session(pipeline, session_factory, patient)
    first_path = session.recording_path
    await pipeline.run(session.id)

    async with session_factory() as db:
        failed = await SessionRepository(db).get_by_id(session.id)
        retried = await pipeline.accept_upload(db, failed, b"second-take", "retry.webm")
        await db.commit()

    assert retried.recording_path != first_path
    assert not await pipeline.storage.file_exists(first_path)
    assert await pipeline.storage.file_exists(retried.recording_path)


async def test_unexpected_auto_note_error_is_logged(
    pipeline, session_factory, patient, note_generator, monkeypatch, caplog
) -> None:
    pipeline.auto_generate_notes = False
    session = await _uploaded_session(pipeline, session_factory, patient)
    await pipeline.run(session.id)

    async def broken(*args, **kwargs):
        raise RuntimeError("connection reset by peer")

    monkeypatch.setattr(note_generator, "generate_note", broken)
    pipeline.auto_generate_notes = True
    async with session_factory() as db:
        completed = await SessionRepository(db).get_by_id(session.id)

    with caplog.at_level(logging.ERROR, logger="mindscribe.workers.pipeline"):
        task = pipeline.maybe_schedule_auto_note(completed)
        assert await task is None

    assert "connection reset by peer" in caplog.text
    _, _, notes = await _load(session_factory, session.id)
    assert notes == []


async def test_background_task_errors_are_logged(pipeline, monkeypatch, caplog) -> None:
    async def crash(session_id):
        raise RuntimeError("disk unplugged")

    monkeypatch.setattr(pipeline, "run", crash)

    with caplog.at_level(logging.ERROR, logger="mindscribe.workers.pipeline"):
        task = pipeline.start(uuid.uuid4())
        with pytest.raises(RuntimeError):
            await task
        await asyncio.sleep(0)

    assert "disk unplugged" in caplog.text
    assert pipeline.active_tasks == 0
