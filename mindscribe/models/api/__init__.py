# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Public API for Pydantic schemas."""
from mindscribe.models.api.common_schema import ErrorResponse, HealthResponse
from mindscribe.models.api.notes_schema import (
    NoteCreate,
    NoteEnvelope,
    NoteFields,
    NoteGenerateRequest,
    NoteListResponse,
    NoteResponse,
    NoteType,
    NoteUpdate,
    PatientContext,
)
from mindscribe.models.api.patients_schema import (
    PatientCreate,
    PatientEnvelope,
    PatientListResponse,
    PatientResponse,
    PatientUpdate,
)
from mindscribe.models.api.sessions_schema import (
    RecordingUploadResponse,
    SessionCreate,
    SessionCreateResponse,
    SessionEnvelope,
    SessionListResponse,
    SessionResponse,
    SessionUpdate,
)
from mindscribe.models.api.transcripts_schema import (
    ProviderTranscript,
    ProviderUtterance,
    SegmentListResponse,
    SegmentResponse,
    Utterance,
)

__all__ = [
    # Transcripts
    "ProviderUtterance",
    "ProviderTranscript",
    "Utterance",
    "SegmentResponse",
    "SegmentListResponse",
    # Sessions
    "SessionCreate",
    "SessionUpdate",
    "SessionResponse",
    "SessionEnvelope",
    "SessionCreateResponse",
    "SessionListResponse",
    "RecordingUploadResponse",
    # Notes
    "NoteType",
    "NoteFields",
    "PatientContext",
    "NoteGenerateRequest",
    "NoteCreate",
    "NoteUpdate",
    "NoteResponse",
    "NoteEnvelope",
    "NoteListResponse",
    # Patients
    "PatientCreate",
    "PatientUpdate",
    "PatientResponse",
    "PatientEnvelope",
    "PatientListResponse",
    # Common
    "ErrorResponse",
    "HealthResponse",
]
