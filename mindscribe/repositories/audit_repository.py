# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Repository for AuditLog operations."""
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from mindscribe.models import database as db_models


class AuditRepository:
    """Append-only access to the audit log."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        action: str,
        user_id: Optional[UUID] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[UUID] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> db_models.AuditLog:
        """Append an audit event. Committed together with the caller's work."""
        entry = db_models.AuditLog(
            action=action,
            user_id=user_id,
            resource_type=resource_type,
            resource_id=resource_id,
            details=details or {},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def list_for_resource(self, resource_id: UUID) -> List[db_models.AuditLog]:
        """List audit events for a resource, newest first."""
        result = await self.db.execute(
            select(db_models.AuditLog)
            .where(db_models.AuditLog.resource_id == resource_id)
            .order_by(desc(db_models.AuditLog.created_at))
        )
        return list(result.scalars().all())
