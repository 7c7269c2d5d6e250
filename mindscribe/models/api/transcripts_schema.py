# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Pydantic schemas for transcript domain."""
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

Speaker = Literal["therapist", "client"]


class ProviderUtterance(BaseModel):
    """Utterance as reported by the transcription provider (offsets in ms)."""

    speaker: Optional[str] = None
    text: str = ""
    start: float = 0
    end: float = 0
    confidence: Optional[float] = None


class ProviderTranscript(BaseModel):
    """Transcription job snapshot returned by the provider."""

    id: str
    status: Literal["queued", "processing", "completed", "error"]
    text: Optional[str] = None
    utterances: Optional[List[ProviderUtterance]] = None
    audio_duration: Optional[float] = None
    error: Optional[str] = None


class Utterance(BaseModel):
    """Normalized speaker-labeled utterance (offsets in seconds)."""

    speaker: Speaker = Field(..., description="Domain speaker role")
    text: str = Field(..., description="Utterance text")
    start_time: float = Field(..., description="Start offset in seconds")
    end_time: float = Field(..., description="End offset in seconds")
    confidence: Optional[float] = Field(None, description="Provider confidence 0-1")


class SegmentResponse(BaseModel):
    """Persisted transcript segment."""

    id: UUID
    speaker: Speaker
    text: str
    time: str = Field(..., description="Start offset formatted as MM:SS")
    start_time: float
    end_time: float
    confidence: Optional[float] = None


class SegmentListResponse(BaseModel):
    """Ordered segments of a session."""

    segments: List[SegmentResponse]
    count: int
