# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Repository for Patient operations."""
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mindscribe.models import database as db_models


class PatientRepository:
    """Repository for Patient operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, user_id: UUID, **fields) -> db_models.Patient:
        """Create a new patient for a clinician."""
        patient = db_models.Patient(user_id=user_id, **fields)
        self.db.add(patient)
        await self.db.flush()
        await self.db.refresh(patient)
        return patient

    async def get_by_id(self, patient_id: UUID) -> Optional[db_models.Patient]:
        """Get patient by ID."""
        result = await self.db.execute(
            select(db_models.Patient).where(db_models.Patient.id == patient_id)
        )
        return result.scalar_one_or_none()

    async def get_by_client_id(self, client_id: str) -> Optional[db_models.Patient]:
        """Get patient by their clinic-facing client ID."""
        result = await self.db.execute(
            select(db_models.Patient).where(db_models.Patient.client_id == client_id)
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: UUID) -> List[db_models.Patient]:
        """List a clinician's patients by last name."""
        result = await self.db.execute(
            select(db_models.Patient)
            .where(db_models.Patient.user_id == user_id)
            .order_by(db_models.Patient.last_name, db_models.Patient.first_name)
        )
        return list(result.scalars().all())

    async def update(self, patient: db_models.Patient, **fields) -> db_models.Patient:
        """Update patient fields."""
        for name, value in fields.items():
            setattr(patient, name, value)
        await self.db.flush()
        await self.db.refresh(patient)
        return patient
