# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Pydantic schemas for session domain."""
from datetime import date, datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class SessionCreate(BaseModel):
    """Session creation request."""

    model_config = ConfigDict(populate_by_name=True)

    patient_id: UUID = Field(..., alias="patientId")


class SessionUpdate(BaseModel):
    """Session update request. Status changes go through the state machine."""

    model_config = ConfigDict(populate_by_name=True)

    status: Optional[Literal["recording", "cancelled"]] = None
    end_time: Optional[datetime] = Field(None, alias="endTime")


class SessionResponse(BaseModel):
    """Session with its lifecycle columns and patient summary."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    patient_id: UUID
    user_id: UUID
    session_date: date = Field(..., serialization_alias="date")
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: Optional[int] = None
    status: str
    transcription_status: Optional[str] = None
    transcription_error: Optional[str] = None
    recording_path: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    client_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, session) -> "SessionResponse":
        patient = session.patient
        return cls(
            id=session.id,
            patient_id=session.patient_id,
            user_id=session.user_id,
            session_date=session.session_date,
            start_time=session.start_time,
            end_time=session.end_time,
            duration=session.duration,
            status=session.status,
            transcription_status=session.transcription_status,
            transcription_error=session.transcription_error,
            recording_path=session.recording_path,
            first_name=patient.first_name if patient else None,
            last_name=patient.last_name if patient else None,
            client_id=patient.client_id if patient else None,
            created_at=session.created_at,
            updated_at=session.updated_at,
        )


class SessionEnvelope(BaseModel):
    """Single session response."""

    session: SessionResponse


class SessionCreateResponse(BaseModel):
    """Session creation response."""

    model_config = ConfigDict(populate_by_name=True)

    session: SessionResponse
    session_id: UUID = Field(..., alias="sessionId")


class SessionListResponse(BaseModel):
    """Session listing response."""

    sessions: List[SessionResponse]


class RecordingUploadResponse(BaseModel):
    """Recording upload acknowledgement."""

    message: str
    session: SessionResponse
