# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Repository for User operations."""
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mindscribe.models import database as db_models


class UserRepository:
    """Repository for User operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        email: str,
        first_name: str,
        last_name: str,
        title: Optional[str] = None,
        user_id: Optional[UUID] = None,
    ) -> db_models.User:
        """Create a new clinician."""
        user = db_models.User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            title=title,
        )
        if user_id is not None:
            user.id = user_id
        self.db.add(user)
        await self.db.flush()
        await self.db.refresh(user)
        return user

    async def get_by_id(self, user_id: UUID) -> Optional[db_models.User]:
        """Get user by ID."""
        result = await self.db.execute(select(db_models.User).where(db_models.User.id == user_id))
        return result.scalar_one_or_none()
