# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Public API for SQLAlchemy models."""
from mindscribe.models.database.audit_model import AuditLog
from mindscribe.models.database.notes_model import ClinicalNote
from mindscribe.models.database.patients_model import Patient
from mindscribe.models.database.sessions_model import Session
from mindscribe.models.database.transcripts_model import TranscriptSegment
from mindscribe.models.database.users_model import User

__all__ = [
    "User",
    "Patient",
    "Session",
    "TranscriptSegment",
    "ClinicalNote",
    "AuditLog",
]
