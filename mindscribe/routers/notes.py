# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Clinical notes router."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from mindscribe.database import get_db
from mindscribe.deps import CallerContext, get_caller, get_pipeline
from mindscribe.exceptions import IllegalTransition, NotFoundError
from mindscribe.models import database as db_models
from mindscribe.models.api import (
    NoteCreate,
    NoteEnvelope,
    NoteGenerateRequest,
    NoteListResponse,
    NoteResponse,
    NoteType,
    NoteUpdate,
)
from mindscribe.repositories import AuditRepository, NoteRepository, SessionRepository
from mindscribe.workers.pipeline import SessionPipeline

router = APIRouter(prefix="/api/notes", tags=["notes"])
logger = logging.getLogger(__name__)

# Notes only move forward; a signed note is immutable
NOTE_STATUS_TRANSITIONS = {
    "draft": frozenset({"final", "signed"}),
    "final": frozenset({"signed"}),
    "signed": frozenset(),
}


async def _require_session(db: AsyncSession, session_id: UUID, caller: CallerContext) -> None:
    if await SessionRepository(db).get_for_user(session_id, caller.user_id) is None:
        raise NotFoundError("Session not found")


async def _get_owned_note(
    db: AsyncSession, note_id: UUID, caller: CallerContext
) -> db_models.ClinicalNote:
    note = await NoteRepository(db).get_by_id(note_id)
    if note is None or note.user_id != caller.user_id:
        raise NotFoundError("Note not found")
    return note


async def _advance_status(
    db: AsyncSession, note: db_models.ClinicalNote, target: str, caller: CallerContext
) -> db_models.ClinicalNote:
    if target not in NOTE_STATUS_TRANSITIONS[note.status]:
        raise IllegalTransition(f"Cannot move note from {note.status} to {target}")

    note = await NoteRepository(db).update_status(note, target)
    await AuditRepository(db).record(
        action="note.signed" if target == "signed" else "note.finalized",
        user_id=caller.user_id,
        resource_type="clinical_note",
        resource_id=note.id,
        details={"session_id": str(note.session_id)},
    )
    await db.commit()
    logger.info(f"Note {note.id} is now {target}")
    return note


@router.post("/generate", response_model=NoteEnvelope, status_code=status.HTTP_201_CREATED)
async def generate_note(
    payload: NoteGenerateRequest,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
    pipeline: SessionPipeline = Depends(get_pipeline),
):
    """Generate a draft note from a session's transcript."""
    await _require_session(db, payload.session_id, caller)

    note = await pipeline.generate_note(
        db, payload.session_id, payload.note_type, user_id=caller.user_id
    )
    await db.commit()
    return NoteEnvelope(
        note=NoteResponse.model_validate(note),
        message=f"{payload.note_type.value.upper()} note generated successfully",
    )


@router.post("", response_model=NoteEnvelope, status_code=status.HTTP_201_CREATED)
async def create_note(
    payload: NoteCreate,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Create a draft note by hand."""
    await _require_session(db, payload.session_id, caller)

    note = await NoteRepository(db).create(
        session_id=payload.session_id,
        user_id=caller.user_id,
        note_type=payload.type.value,
        fields=payload.for_type(payload.type),
    )
    await db.commit()
    return NoteEnvelope(note=NoteResponse.model_validate(note))


@router.get("/session/{session_id}", response_model=NoteListResponse)
async def list_session_notes(
    session_id: UUID,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """List a session's notes, newest first."""
    await _require_session(db, session_id, caller)
    notes = await NoteRepository(db).list_by_session(session_id)
    return NoteListResponse(notes=[NoteResponse.model_validate(note) for note in notes])


@router.get("/{note_id}", response_model=NoteEnvelope)
async def get_note(
    note_id: UUID,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Get a note by ID."""
    note = await _get_owned_note(db, note_id, caller)
    return NoteEnvelope(note=NoteResponse.model_validate(note))


@router.put("/{note_id}", response_model=NoteEnvelope)
async def update_note(
    note_id: UUID,
    payload: NoteUpdate,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Edit the fields of a draft note. Fields of the other template are ignored."""
    note = await _get_owned_note(db, note_id, caller)
    if note.status != "draft":
        raise IllegalTransition(f"Only draft notes can be edited (note is {note.status})")

    type_fields = NoteType(note.type).fields
    changes = {
        name: value
        for name, value in payload.model_dump(exclude_unset=True).items()
        if name in type_fields
    }
    note = await NoteRepository(db).update_fields(note, changes)
    await db.commit()
    return NoteEnvelope(note=NoteResponse.model_validate(note))


@router.post("/{note_id}/finalize", response_model=NoteEnvelope)
async def finalize_note(
    note_id: UUID,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Mark a draft note final."""
    note = await _get_owned_note(db, note_id, caller)
    note = await _advance_status(db, note, "final", caller)
    return NoteEnvelope(note=NoteResponse.model_validate(note), message="Note finalized")


@router.post("/{note_id}/sign", response_model=NoteEnvelope)
async def sign_note(
    note_id: UUID,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Sign a draft or final note."""
    note = await _get_owned_note(db, note_id, caller)
    note = await _advance_status(db, note, "signed", caller)
    return NoteEnvelope(note=NoteResponse.model_validate(note), message="Note signed successfully")
