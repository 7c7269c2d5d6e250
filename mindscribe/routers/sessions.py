# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Session management router."""
import logging
from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile, status
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from mindscribe.database import get_db
from mindscribe.deps import CallerContext, Settings, get_caller, get_pipeline, get_settings
from mindscribe.exceptions import IllegalTransition, InputValidationError, NotFoundError
from mindscribe.models.api import (
    RecordingUploadResponse,
    SessionCreate,
    SessionCreateResponse,
    SessionEnvelope,
    SessionListResponse,
    SessionResponse,
    SessionUpdate,
)
from mindscribe.repositories import AuditRepository, PatientRepository, SessionRepository
from mindscribe.services.session_state import SessionPhase, SessionState, transition
from mindscribe.services.storage import validate_audio_upload
from mindscribe.workers.pipeline import SessionPipeline

router = APIRouter(prefix="/api/sessions", tags=["sessions"])
logger = logging.getLogger(__name__)
limiter = Limiter(key_func=get_remote_address)

SessionStatusFilter = Literal[
    "scheduled", "recording", "processing", "completed", "failed", "cancelled"
]


async def _get_owned_session(db: AsyncSession, session_id: UUID, caller: CallerContext):
    session = await SessionRepository(db).get_for_user(session_id, caller.user_id)
    if session is None:
        raise NotFoundError("Session not found")
    return session


@router.post("", response_model=SessionCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    payload: SessionCreate,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Start a new session for one of the caller's patients."""
    patient = await PatientRepository(db).get_by_id(payload.patient_id)
    if patient is None or patient.user_id != caller.user_id:
        raise NotFoundError("Patient not found")

    session = await SessionRepository(db).create(patient_id=patient.id, user_id=caller.user_id)
    await AuditRepository(db).record(
        action="session.created",
        user_id=caller.user_id,
        resource_type="session",
        resource_id=session.id,
        details={"patient_id": str(patient.id)},
    )
    await db.commit()

    logger.info(f"Created session {session.id} for patient {patient.id}")
    return SessionCreateResponse(session=SessionResponse.from_model(session), session_id=session.id)


@router.get("", response_model=SessionListResponse)
async def list_sessions(
    patient_id: Optional[UUID] = Query(None, alias="patientId"),
    status_filter: Optional[SessionStatusFilter] = Query(None, alias="status"),
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """List the caller's sessions, newest first."""
    sessions = await SessionRepository(db).list_for_user(
        caller.user_id, patient_id=patient_id, status=status_filter
    )
    return SessionListResponse(sessions=[SessionResponse.from_model(s) for s in sessions])


@router.get("/{session_id}", response_model=SessionEnvelope)
async def get_session(
    session_id: UUID,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
    pipeline: SessionPipeline = Depends(get_pipeline),
):
    """Read a session. A completed session without a note gets its automatic draft scheduled."""
    session = await _get_owned_session(db, session_id, caller)
    pipeline.maybe_schedule_auto_note(session)
    return SessionEnvelope(session=SessionResponse.from_model(session))


@router.patch("/{session_id}", response_model=SessionEnvelope)
async def update_session(
    session_id: UUID,
    payload: SessionUpdate,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Change a session's status through the lifecycle, or set its end time."""
    session = await _get_owned_session(db, session_id, caller)
    repo = SessionRepository(db)

    if payload.status is not None:
        current = SessionState.of(session)
        target = transition(current, SessionPhase(payload.status))
        if not await repo.compare_and_set_state(session_id, current, target):
            raise IllegalTransition(f"Session {session_id} changed state concurrently")

    if payload.end_time is not None:
        await repo.update_end_time(session_id, payload.end_time)

    await db.commit()
    session = await repo.get_by_id(session_id)
    return SessionEnvelope(session=SessionResponse.from_model(session))


@router.post("/{session_id}/recording", response_model=RecordingUploadResponse)
@limiter.limit(lambda: get_settings().upload_rate_limit)
async def upload_recording(
    request: Request,
    session_id: UUID,
    audio: Optional[UploadFile] = File(None),
    caller: CallerContext = Depends(get_caller),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db),
    pipeline: SessionPipeline = Depends(get_pipeline),
):
    """
    Upload a session recording and start transcription.

    Args:
        session_id: Session to attach the recording to
        audio: Audio file (multipart field ``audio``)

    Returns:
        The session, now awaiting transcription
    """
    if audio is None:
        raise InputValidationError("No audio file provided")
    if audio.size is not None and audio.size > settings.max_file_size:
        raise InputValidationError(
            f"File too large. Maximum size: {settings.max_file_size // (1024 * 1024)}MB"
        )

    session = await _get_owned_session(db, session_id, caller)

    content = await audio.read()
    validate_audio_upload(audio.filename, audio.content_type, len(content), settings.max_file_size)

    filename = audio.filename or "recording.webm"
    session = await pipeline.accept_upload(db, session, content, filename)
    await AuditRepository(db).record(
        action="recording.uploaded",
        user_id=caller.user_id,
        resource_type="session",
        resource_id=session.id,
        details={"filename": filename, "size": len(content)},
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    await db.commit()

    logger.info(f"Recording uploaded for session {session_id}: {filename} ({len(content)} bytes)")
    pipeline.start(session.id)

    return RecordingUploadResponse(
        message="Recording uploaded, transcription started",
        session=SessionResponse.from_model(session),
    )
