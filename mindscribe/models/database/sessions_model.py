# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Session SQLAlchemy model."""
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import Date, DateTime, Enum, ForeignKey, Integer, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mindscribe.database import Base

SESSION_STATUSES = ("scheduled", "recording", "processing", "completed", "failed", "cancelled")
TRANSCRIPTION_STATUSES = ("pending", "in_progress", "completed", "failed")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Session(Base):
    """One recorded or uploaded therapy encounter and its processing record."""

    __tablename__ = "sessions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    patient_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    session_date: Mapped[date] = mapped_column(
        "date", Date, nullable=False, default=lambda: _utcnow().date()
    )
    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    duration: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(
        Enum(*SESSION_STATUSES, name="session_status"),
        default="scheduled",
        nullable=False,
    )
    transcription_status: Mapped[Optional[str]] = mapped_column(
        Enum(*TRANSCRIPTION_STATUSES, name="transcription_status"),
        nullable=True,
    )
    transcription_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    recording_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    note_generation_started_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # Relationships
    patient: Mapped["Patient"] = relationship("Patient", back_populates="sessions")
    owner: Mapped["User"] = relationship("User", back_populates="sessions")
    segments: Mapped[list["TranscriptSegment"]] = relationship(
        "TranscriptSegment",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="TranscriptSegment.start_time",
    )
    notes: Mapped[list["ClinicalNote"]] = relationship(
        "ClinicalNote", back_populates="session", cascade="all, delete-orphan"
    )
