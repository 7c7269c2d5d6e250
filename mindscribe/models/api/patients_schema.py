# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Pydantic schemas for patient domain."""
from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class PatientCreate(BaseModel):
    """Patient creation request."""

    model_config = ConfigDict(populate_by_name=True)

    first_name: str = Field(..., min_length=1, alias="firstName")
    last_name: str = Field(..., min_length=1, alias="lastName")
    client_id: str = Field(..., min_length=1, alias="clientId")
    date_of_birth: date = Field(..., alias="dateOfBirth")
    email: Optional[str] = None
    phone: Optional[str] = None
    history: Optional[str] = None


class PatientUpdate(BaseModel):
    """Patient update request."""

    model_config = ConfigDict(populate_by_name=True)

    first_name: Optional[str] = Field(None, min_length=1, alias="firstName")
    last_name: Optional[str] = Field(None, min_length=1, alias="lastName")
    date_of_birth: Optional[date] = Field(None, alias="dateOfBirth")
    email: Optional[str] = None
    phone: Optional[str] = None
    history: Optional[str] = None


class PatientResponse(BaseModel):
    """Patient as stored."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    first_name: str
    last_name: str
    client_id: str
    date_of_birth: date
    email: Optional[str] = None
    phone: Optional[str] = None
    history: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class PatientEnvelope(BaseModel):
    """Single patient response."""

    patient: PatientResponse


class PatientListResponse(BaseModel):
    """Patient listing response."""

    patients: List[PatientResponse]
