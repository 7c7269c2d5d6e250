# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Repository for ClinicalNote operations."""
from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from mindscribe.models import database as db_models
from mindscribe.models.database.notes_model import NOTE_FIELDS


class NoteRepository:
    """Repository for ClinicalNote operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        session_id: UUID,
        user_id: UUID,
        note_type: str,
        fields: Dict[str, Optional[str]],
        status: str = "draft",
    ) -> db_models.ClinicalNote:
        """Create a note, keeping only the fields that belong to its type."""
        note = db_models.ClinicalNote(
            session_id=session_id,
            user_id=user_id,
            type=note_type,
            status=status,
            **{name: fields.get(name) for name in NOTE_FIELDS[note_type]},
        )
        self.db.add(note)
        await self.db.flush()
        await self.db.refresh(note)
        return note

    async def get_by_id(self, note_id: UUID) -> Optional[db_models.ClinicalNote]:
        """Get note by ID."""
        result = await self.db.execute(
            select(db_models.ClinicalNote)
            .where(db_models.ClinicalNote.id == note_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_by_session(self, session_id: UUID) -> List[db_models.ClinicalNote]:
        """List all notes for a session, newest first."""
        result = await self.db.execute(
            select(db_models.ClinicalNote)
            .where(db_models.ClinicalNote.session_id == session_id)
            .order_by(desc(db_models.ClinicalNote.created_at))
        )
        return list(result.scalars().all())

    async def update_fields(
        self, note: db_models.ClinicalNote, fields: Dict[str, Optional[str]]
    ) -> db_models.ClinicalNote:
        """Overwrite the given type fields of a note."""
        for name, value in fields.items():
            setattr(note, name, value)
        await self.db.flush()
        await self.db.refresh(note)
        return note

    async def update_status(
        self, note: db_models.ClinicalNote, status: str
    ) -> db_models.ClinicalNote:
        """Set note status, stamping signed_at when it becomes signed."""
        note.status = status
        if status == "signed":
            note.signed_at = datetime.now(timezone.utc)
        await self.db.flush()
        await self.db.refresh(note)
        return note
