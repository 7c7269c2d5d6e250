# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""In-process session pipeline: transcription and automatic note generation."""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Coroutine, Optional, Set
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mindscribe.exceptions import IllegalTransition, NotFoundError
from mindscribe.models import database as db_models
from mindscribe.models.api.notes_schema import NoteType, PatientContext
from mindscribe.repositories import (
    AuditRepository,
    NoteRepository,
    SessionRepository,
    TranscriptRepository,
)
from mindscribe.services.llm import NoteGenerator, format_transcript
from mindscribe.services.session_state import (
    IN_FLIGHT_PHASES,
    SessionPhase,
    SessionState,
    transition,
)
from mindscribe.services.storage import StorageManager
from mindscribe.services.transcription_service import AssemblyAIClient, normalize_utterances
from mindscribe.utils.timecodes import elapsed_seconds

logger = logging.getLogger(__name__)

INTERRUPTED_ERROR = "interrupted by server restart"


class SessionPipeline:
    """
    Drives a session from uploaded audio to transcript and draft note.

    Work is scheduled as asyncio tasks on the running event loop. Each task
    opens its own database sessions, and every lifecycle write is a
    compare-and-set against the state the task last observed.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        storage: StorageManager,
        transcriber: AssemblyAIClient,
        note_generator: NoteGenerator,
        auto_generate_notes: bool = True,
    ):
        self.session_factory = session_factory
        self.storage = storage
        self.transcriber = transcriber
        self.note_generator = note_generator
        self.auto_generate_notes = auto_generate_notes
        self._tasks: Set[asyncio.Task] = set()

    def _spawn(self, coro: Coroutine, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                f"Background task {task.get_name()} failed: {error}",
                exc_info=(type(error), error, error.__traceback__),
            )

    @property
    def active_tasks(self) -> int:
        return len(self._tasks)

    def start(self, session_id: UUID) -> asyncio.Task:
        """Schedule processing of a freshly uploaded recording."""
        logger.info(f"Scheduling pipeline for session {session_id}")
        return self._spawn(self.run(session_id), name=f"pipeline-{session_id}")

    async def run(self, session_id: UUID) -> None:
        """Transcribe a session, then try the automatic note."""
        state = await self.process_recording(session_id)
        if state is not None and state.phase is SessionPhase.COMPLETED and self.auto_generate_notes:
            await self.ensure_auto_note(session_id)

    async def accept_upload(
        self,
        db: AsyncSession,
        session: db_models.Session,
        audio: bytes,
        filename: str,
    ) -> db_models.Session:
        """
        Store a recording and move its session to AWAITING_TRANSCRIPTION.

        The caller commits and then calls :meth:`start`.

        Raises:
            IllegalTransition: Session cannot take a new recording right now
        """
        current = SessionState.of(session)
        target = transition(current, SessionPhase.AWAITING_TRANSCRIPTION)
        previous_path = session.recording_path

        recording_path = await self.storage.save_file(audio, filename, subfolder="recordings")
        repo = SessionRepository(db)
        if not await repo.compare_and_set_state(
            session.id, current, target, recording_path=recording_path
        ):
            await self.storage.delete_file(recording_path)
            raise IllegalTransition(f"Session {session.id} changed state during upload")

        if previous_path and previous_path != recording_path:
            await self.storage.delete_file(previous_path)
            logger.info(f"Session {session.id}: replaced recording {previous_path}")

        return await repo.get_by_id(session.id)

    async def _set_state(
        self, db: AsyncSession, session_id: UUID, current: SessionState, target: SessionPhase
    ) -> SessionState:
        """Validate, write and commit one lifecycle step."""
        new_state = transition(current, target)
        if not await SessionRepository(db).compare_and_set_state(session_id, current, new_state):
            raise IllegalTransition(
                f"Session {session_id} is no longer {current.phase.value}"
            )
        await db.commit()
        return new_state

    async def process_recording(self, session_id: UUID) -> Optional[SessionState]:
        """
        Run transcription for a session in AWAITING_TRANSCRIPTION.

        Segments are written and the session completed in one transaction.
        Any failure after the session is queued leaves it FAILED with the
        error text.

        Returns:
            Final state, or None if the session was not ready to process
        """
        async with self.session_factory() as db:
            sessions = SessionRepository(db)
            session = await sessions.get_by_id(session_id)
            if session is None:
                logger.error(f"Session {session_id} not found, skipping pipeline")
                return None

            state = SessionState.of(session)
            if state.phase is not SessionPhase.AWAITING_TRANSCRIPTION:
                logger.warning(
                    f"Session {session_id} is {state.phase.value}, not awaiting transcription"
                )
                return None

            started = datetime.now(timezone.utc)
            try:
                state = await self._set_state(db, session_id, state, SessionPhase.QUEUED)

                audio = await self.storage.read_file(session.recording_path)
                audio_url = await self.transcriber.upload_audio(audio)

                state = await self._set_state(db, session_id, state, SessionPhase.TRANSCRIBING)

                job_id = await self.transcriber.create_transcript_job(audio_url)
                logger.info(f"Session {session_id}: transcription job {job_id} created")

                def on_progress(status: str, poll_count: int) -> None:
                    if poll_count % 10 == 0:
                        logger.info(
                            f"Session {session_id}: job {job_id} still {status} "
                            f"after {poll_count} polls"
                        )

                transcript = await self.transcriber.poll_until_terminal(
                    job_id, on_progress=on_progress
                )
                utterances = normalize_utterances(transcript)

                completed = transition(state, SessionPhase.COMPLETED)
                await TranscriptRepository(db).replace_for_session(session_id, utterances)
                end_time = datetime.now(timezone.utc)
                if not await sessions.compare_and_set_state(
                    session_id,
                    state,
                    completed,
                    end_time=end_time,
                    duration=elapsed_seconds(session.start_time, end_time),
                ):
                    raise IllegalTransition(f"Session {session_id} is no longer transcribing")
                await db.commit()

                logger.info(
                    f"Session {session_id}: transcription completed with {len(utterances)} "
                    f"segments in {(end_time - started).total_seconds():.1f}s"
                )
                return completed

            except Exception as e:
                await db.rollback()
                logger.error(f"Session {session_id}: processing failed: {e}", exc_info=True)
                return await self._mark_failed(db, session_id, str(e) or type(e).__name__)

    async def _mark_failed(
        self, db: AsyncSession, session_id: UUID, error: str
    ) -> Optional[SessionState]:
        """Move a session to FAILED from whatever in-flight phase it is in."""
        session = await SessionRepository(db).get_by_id(session_id)
        if session is None:
            return None

        current = SessionState.of(session)
        if current.phase not in IN_FLIGHT_PHASES:
            return current

        failed = transition(current, SessionPhase.FAILED, error)
        if await SessionRepository(db).compare_and_set_state(session_id, current, failed):
            await db.commit()
            return failed
        return None

    async def generate_note(
        self,
        db: AsyncSession,
        session_id: UUID,
        note_type: NoteType,
        user_id: UUID,
        auto: bool = False,
    ) -> db_models.ClinicalNote:
        """
        Generate and persist a draft note from a session's transcript.

        The caller commits.

        Raises:
            NotFoundError: Session or transcript missing
            GenerationFailed: Note generation gateway failed
        """
        session = await SessionRepository(db).get_by_id(session_id)
        if session is None:
            raise NotFoundError("Session not found")

        segments = await TranscriptRepository(db).list_by_session(session_id)
        if not segments:
            raise NotFoundError("No transcript found for this session")

        patient = session.patient
        context = PatientContext(
            name=patient.full_name if patient else "Unknown",
            history=patient.history if patient else None,
        )

        fields = await self.note_generator.generate_note(
            format_transcript(segments), note_type, context
        )
        note = await NoteRepository(db).create(
            session_id=session_id,
            user_id=user_id,
            note_type=note_type.value,
            fields=fields.for_type(note_type),
        )
        await AuditRepository(db).record(
            action="note.generated",
            user_id=user_id,
            resource_type="clinical_note",
            resource_id=note.id,
            details={"session_id": str(session_id), "type": note_type.value, "auto": auto},
        )
        logger.info(f"Session {session_id}: {note_type.value} note {note.id} generated")
        return note

    async def ensure_auto_note(self, session_id: UUID) -> Optional[db_models.ClinicalNote]:
        """
        Generate the automatic SOAP draft if this caller wins the claim.

        Returns:
            The new note, or None when the claim was lost or generation failed
        """
        async with self.session_factory() as db:
            sessions = SessionRepository(db)
            claimed = await sessions.claim_note_generation(session_id)
            await db.commit()
            if not claimed:
                return None

            try:
                session = await sessions.get_by_id(session_id)
                note = await self.generate_note(
                    db, session_id, NoteType.SOAP, user_id=session.user_id, auto=True
                )
                await db.commit()
                return note
            except Exception as e:
                await db.rollback()
                logger.error(
                    f"Session {session_id}: automatic note generation failed: {e}",
                    exc_info=True,
                )
                return None

    def maybe_schedule_auto_note(self, session: db_models.Session) -> Optional[asyncio.Task]:
        """Schedule the automatic note for a completed, unclaimed session."""
        if not self.auto_generate_notes:
            return None
        if session.status != "completed" or session.note_generation_started_at is not None:
            return None
        return self._spawn(self.ensure_auto_note(session.id), name=f"auto-note-{session.id}")

    async def recover_interrupted(self) -> int:
        """Fail sessions left in flight by a previous process."""
        recovered = 0
        async with self.session_factory() as db:
            sessions = SessionRepository(db)
            for session in await sessions.list_in_phases(IN_FLIGHT_PHASES):
                current = SessionState.of(session)
                failed = transition(current, SessionPhase.FAILED, INTERRUPTED_ERROR)
                if await sessions.compare_and_set_state(session.id, current, failed):
                    recovered += 1
            await db.commit()

        if recovered:
            logger.warning(f"Marked {recovered} interrupted session(s) as failed")
        return recovered

    async def shutdown(self) -> None:
        """Cancel in-flight work and wait for it to unwind."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Cancelled {len(tasks)} pipeline task(s)")
