# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Pydantic schemas for notes domain."""
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from mindscribe.models.database.notes_model import ALL_NOTE_FIELDS, NOTE_FIELDS


class NoteType(str, Enum):
    """Supported clinical note templates."""

    SOAP = "soap"
    DARE = "dare"

    @property
    def fields(self) -> tuple:
        return NOTE_FIELDS[self.value]


class NoteFields(BaseModel):
    """The eight template fields; only four are meaningful for a given type."""

    subjective: Optional[str] = None
    objective: Optional[str] = None
    assessment: Optional[str] = None
    plan: Optional[str] = None
    description: Optional[str] = None
    action: Optional[str] = None
    response: Optional[str] = None
    evaluation: Optional[str] = None

    def for_type(self, note_type: NoteType) -> Dict[str, Optional[str]]:
        """Return only the fields that belong to note_type."""
        return {name: getattr(self, name) for name in note_type.fields}


class PatientContext(BaseModel):
    """Minimal patient context passed to note generation."""

    name: str = "Unknown"
    history: Optional[str] = None


class NoteGenerateRequest(BaseModel):
    """Request to generate a clinical note from a session transcript."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: UUID = Field(..., alias="sessionId")
    note_type: NoteType = Field(..., alias="noteType")


class NoteCreate(NoteFields):
    """Manual note creation request."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: UUID = Field(..., alias="sessionId")
    type: NoteType


class NoteUpdate(NoteFields):
    """Note field edits. Unknown or off-type fields are ignored."""


class NoteResponse(NoteFields):
    """Clinical note as stored."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    session_id: UUID
    user_id: UUID
    type: NoteType
    status: str
    signed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class NoteEnvelope(BaseModel):
    """Single note response."""

    note: NoteResponse
    message: Optional[str] = None


class NoteListResponse(BaseModel):
    """Note listing response."""

    notes: List[NoteResponse]


__all__ = [
    "ALL_NOTE_FIELDS",
    "NoteType",
    "NoteFields",
    "PatientContext",
    "NoteGenerateRequest",
    "NoteCreate",
    "NoteUpdate",
    "NoteResponse",
    "NoteEnvelope",
    "NoteListResponse",
]
