# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Repository pattern implementations for database access."""
from mindscribe.repositories.audit_repository import AuditRepository
from mindscribe.repositories.note_repository import NoteRepository
from mindscribe.repositories.patient_repository import PatientRepository
from mindscribe.repositories.session_repository import SessionRepository
from mindscribe.repositories.transcript_repository import TranscriptRepository
from mindscribe.repositories.user_repository import UserRepository

__all__ = [
    "AuditRepository",
    "NoteRepository",
    "PatientRepository",
    "SessionRepository",
    "TranscriptRepository",
    "UserRepository",
]
