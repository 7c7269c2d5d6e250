# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Repository for Session operations."""
from datetime import datetime, timezone
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import and_, desc, exists, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from mindscribe.models import database as db_models
from mindscribe.services.session_state import SessionPhase, SessionState


def _state_clause(state: SessionState):
    """WHERE clause matching rows currently in state."""
    transcription_status = db_models.Session.transcription_status
    return and_(
        db_models.Session.status == state.status,
        transcription_status.is_(None)
        if state.transcription_status is None
        else transcription_status == state.transcription_status,
    )


class SessionRepository:
    """Repository for Session operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        patient_id: UUID,
        user_id: UUID,
        state: SessionState = SessionState(SessionPhase.RECORDING),
    ) -> db_models.Session:
        """Create a new session starting now."""
        session = db_models.Session(
            patient_id=patient_id,
            user_id=user_id,
            status=state.status,
            transcription_status=state.transcription_status,
        )
        self.db.add(session)
        await self.db.flush()
        return await self.get_by_id(session.id)

    async def get_by_id(self, session_id: UUID) -> Optional[db_models.Session]:
        """Get session by ID, always re-reading persisted columns."""
        result = await self.db.execute(
            select(db_models.Session)
            .options(selectinload(db_models.Session.patient))
            .where(db_models.Session.id == session_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_for_user(self, session_id: UUID, user_id: UUID) -> Optional[db_models.Session]:
        """Get a session only if it belongs to the given clinician."""
        session = await self.get_by_id(session_id)
        if session is None or session.user_id != user_id:
            return None
        return session

    async def list_for_user(
        self,
        user_id: UUID,
        patient_id: Optional[UUID] = None,
        status: Optional[str] = None,
    ) -> List[db_models.Session]:
        """List sessions owned by a clinician, newest first."""
        query = (
            select(db_models.Session)
            .options(selectinload(db_models.Session.patient))
            .where(db_models.Session.user_id == user_id)
        )

        if patient_id:
            query = query.where(db_models.Session.patient_id == patient_id)
        if status:
            query = query.where(db_models.Session.status == status)

        query = query.order_by(desc(db_models.Session.start_time))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_in_phases(self, phases: Iterable[SessionPhase]) -> List[db_models.Session]:
        """List sessions currently in any of the given phases."""
        clauses = [_state_clause(SessionState(phase)) for phase in phases]
        result = await self.db.execute(select(db_models.Session).where(or_(*clauses)))
        return list(result.scalars().all())

    async def compare_and_set_state(
        self,
        session_id: UUID,
        expected: SessionState,
        target: SessionState,
        **fields,
    ) -> bool:
        """
        Move a session from expected to target in one conditional UPDATE.

        Args:
            session_id: Session UUID
            expected: State the row must currently be in
            target: State to write (already validated by the state machine)
            **fields: Extra columns to write in the same statement

        Returns:
            True if the row was in expected and has been updated
        """
        values = {
            "status": target.status,
            "transcription_status": target.transcription_status,
            "transcription_error": target.error,
            **fields,
        }
        result = await self.db.execute(
            update(db_models.Session)
            .where(db_models.Session.id == session_id, _state_clause(expected))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def update_end_time(self, session_id: UUID, end_time: datetime) -> None:
        """Set the session's end time."""
        await self.db.execute(
            update(db_models.Session)
            .where(db_models.Session.id == session_id)
            .values(end_time=end_time)
            .execution_options(synchronize_session=False)
        )

    async def claim_note_generation(self, session_id: UUID) -> bool:
        """
        Atomically claim automatic note generation for a completed session.

        The claim succeeds only for a completed session that has at least one
        transcript segment, has no clinical note yet and has never been
        claimed before.

        Returns:
            True if this caller won the claim
        """
        completed = SessionState(SessionPhase.COMPLETED)
        has_segments = exists().where(
            db_models.TranscriptSegment.session_id == db_models.Session.id
        )
        has_notes = exists().where(db_models.ClinicalNote.session_id == db_models.Session.id)

        result = await self.db.execute(
            update(db_models.Session)
            .where(
                db_models.Session.id == session_id,
                _state_clause(completed),
                db_models.Session.note_generation_started_at.is_(None),
                has_segments,
                ~has_notes,
            )
            .values(note_generation_started_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
