# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Domain exceptions raised by gateways, the pipeline and repositories."""
from typing import Optional


class ScribeError(Exception):
    """Base class for all MindScribe errors."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, provider_message: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.provider_message = provider_message


class InputValidationError(ScribeError):
    """Required input missing or malformed."""

    status_code = 400
    code = "validation_error"


class NotFoundError(ScribeError):
    """Referenced session, note or patient does not exist."""

    status_code = 404
    code = "not_found"


class IllegalTransition(ScribeError):
    """Requested state change is not allowed from the current state."""

    status_code = 409
    code = "illegal_transition"


class UpstreamError(ScribeError):
    """Base class for third-party provider failures."""

    status_code = 502
    code = "upstream_error"


class UpstreamUnavailable(UpstreamError):
    """Provider could not be reached or answered with a server error."""

    status_code = 503
    code = "upstream_unavailable"


class UpstreamRejected(UpstreamError):
    """Provider refused the request (bad payload, bad reference, bad credentials)."""

    code = "upstream_rejected"


class TranscriptionFailed(UpstreamError):
    """Transcription job reached the provider's error state."""

    code = "transcription_failed"


class TranscriptionTimeout(UpstreamError):
    """Transcription job did not reach a terminal state in time."""

    code = "transcription_timeout"


class GenerationFailed(UpstreamError):
    """Note generation call failed or returned nothing usable."""

    code = "generation_failed"
