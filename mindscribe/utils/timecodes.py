# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Utilities for working with transcript timestamps."""
from datetime import datetime, timezone
from typing import Optional


def format_timecode(seconds: float) -> str:
    """Format seconds into MM:SS, or HH:MM:SS past the first hour."""

    if not isinstance(seconds, (int, float)) or seconds < 0:
        return "00:00"

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)

    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def ms_to_seconds(milliseconds: Optional[float]) -> float:
    """Convert a provider millisecond offset to seconds."""
    if milliseconds is None:
        return 0.0
    return round(float(milliseconds) / 1000.0, 3)


def elapsed_seconds(start: datetime, end: datetime) -> int:
    """Whole seconds between two timestamps; naive values are taken as UTC."""
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    if end.tzinfo is None:
        end = end.replace(tzinfo=timezone.utc)
    return max(0, int((end - start).total_seconds()))
