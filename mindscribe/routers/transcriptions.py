# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Transcript segment router."""
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mindscribe.database import get_db
from mindscribe.deps import CallerContext, get_caller
from mindscribe.exceptions import NotFoundError
from mindscribe.models.api import SegmentListResponse, SegmentResponse
from mindscribe.repositories import SessionRepository, TranscriptRepository
from mindscribe.utils.timecodes import format_timecode

router = APIRouter(prefix="/api/transcriptions", tags=["transcriptions"])


@router.get("/{session_id}/segments", response_model=SegmentListResponse)
async def list_segments(
    session_id: UUID,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Get a session's transcript segments ordered by start time."""
    if await SessionRepository(db).get_for_user(session_id, caller.user_id) is None:
        raise NotFoundError("Session not found")

    segments = await TranscriptRepository(db).list_by_session(session_id)
    return SegmentListResponse(
        segments=[
            SegmentResponse(
                id=segment.id,
                speaker=segment.speaker,
                text=segment.text,
                time=format_timecode(segment.start_time),
                start_time=segment.start_time,
                end_time=segment.end_time,
                confidence=segment.confidence,
            )
            for segment in segments
        ],
        count=len(segments),
    )
