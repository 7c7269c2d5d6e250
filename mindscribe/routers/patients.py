# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Patient management router."""
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from mindscribe.database import get_db
from mindscribe.deps import CallerContext, get_caller
from mindscribe.exceptions import InputValidationError, NotFoundError
from mindscribe.models.api import (
    PatientCreate,
    PatientEnvelope,
    PatientListResponse,
    PatientResponse,
    PatientUpdate,
)
from mindscribe.repositories import PatientRepository

router = APIRouter(prefix="/api/patients", tags=["patients"])


async def _get_owned_patient(repo: PatientRepository, patient_id: UUID, caller: CallerContext):
    patient = await repo.get_by_id(patient_id)
    if patient is None or patient.user_id != caller.user_id:
        raise NotFoundError("Patient not found")
    return patient


@router.get("", response_model=PatientListResponse)
async def list_patients(
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """List the caller's patients."""
    patients = await PatientRepository(db).list_for_user(caller.user_id)
    return PatientListResponse(patients=[PatientResponse.model_validate(p) for p in patients])


@router.get("/{patient_id}", response_model=PatientEnvelope)
async def get_patient(
    patient_id: UUID,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Get a patient by ID."""
    patient = await _get_owned_patient(PatientRepository(db), patient_id, caller)
    return PatientEnvelope(patient=PatientResponse.model_validate(patient))


@router.post("", response_model=PatientEnvelope, status_code=status.HTTP_201_CREATED)
async def create_patient(
    payload: PatientCreate,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Create a patient. Client IDs are unique across the practice."""
    repo = PatientRepository(db)
    if await repo.get_by_client_id(payload.client_id):
        raise InputValidationError(f"Client ID {payload.client_id} is already in use")

    patient = await repo.create(caller.user_id, **payload.model_dump())
    await db.commit()
    return PatientEnvelope(patient=PatientResponse.model_validate(patient))


@router.put("/{patient_id}", response_model=PatientEnvelope)
async def update_patient(
    patient_id: UUID,
    payload: PatientUpdate,
    caller: CallerContext = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Update a patient's details."""
    repo = PatientRepository(db)
    patient = await _get_owned_patient(repo, patient_id, caller)
    patient = await repo.update(patient, **payload.model_dump(exclude_unset=True))
    await db.commit()
    return PatientEnvelope(patient=PatientResponse.model_validate(patient))
