# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Repository for TranscriptSegment operations."""
from typing import List, Sequence
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from mindscribe.models import database as db_models
from mindscribe.models.api.transcripts_schema import Utterance


class TranscriptRepository:
    """Repository for transcript segment reads and bulk writes."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def replace_for_session(
        self, session_id: UUID, utterances: Sequence[Utterance]
    ) -> List[db_models.TranscriptSegment]:
        """
        Replace all segments of a session with utterances.

        Existing rows are removed first so replaying the write for the same
        session never duplicates segments. Insertion order follows
        utterances.

        Args:
            session_id: Session UUID
            utterances: Normalized utterances in transcript order

        Returns:
            Created TranscriptSegment instances
        """
        await self.db.execute(
            delete(db_models.TranscriptSegment).where(
                db_models.TranscriptSegment.session_id == session_id
            )
        )

        segments = [
            db_models.TranscriptSegment(
                session_id=session_id,
                position=index,
                speaker=utterance.speaker,
                text=utterance.text,
                start_time=utterance.start_time,
                end_time=utterance.end_time,
                confidence=utterance.confidence,
            )
            for index, utterance in enumerate(utterances)
        ]
        self.db.add_all(segments)
        await self.db.flush()
        return segments

    async def list_by_session(self, session_id: UUID) -> List[db_models.TranscriptSegment]:
        """Get all segments for a session ordered by start time."""
        result = await self.db.execute(
            select(db_models.TranscriptSegment)
            .where(db_models.TranscriptSegment.session_id == session_id)
            .order_by(
                db_models.TranscriptSegment.start_time,
                db_models.TranscriptSegment.position,
            )
        )
        return list(result.scalars().all())
