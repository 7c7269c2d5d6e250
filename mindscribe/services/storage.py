# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Local file storage for session recordings."""
import logging
import uuid
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os

from mindscribe.exceptions import InputValidationError

logger = logging.getLogger(__name__)

ALLOWED_AUDIO_TYPES = frozenset(
    {
        "audio/webm",
        "audio/mp4",
        "audio/mpeg",
        "audio/wav",
        "audio/x-m4a",
        "audio/m4a",
        "application/octet-stream",
    }
)
ALLOWED_AUDIO_EXTENSIONS = frozenset({".mp3", ".wav", ".m4a", ".webm", ".mp4"})


def validate_audio_upload(
    filename: Optional[str], content_type: Optional[str], size: int, max_size: int
) -> None:
    """
    Check an uploaded recording against the allow-lists and size limit.

    A file is accepted when either its MIME type or its extension is allowed.

    Raises:
        InputValidationError: Empty, oversized or non-audio upload
    """
    if size == 0:
        raise InputValidationError("No audio file provided")

    if size > max_size:
        raise InputValidationError(
            f"File too large. Maximum size: {max_size // (1024 * 1024)}MB"
        )

    extension = Path(filename or "").suffix.lower()
    mime_type = (content_type or "").split(";")[0].strip().lower()
    if mime_type not in ALLOWED_AUDIO_TYPES and extension not in ALLOWED_AUDIO_EXTENSIONS:
        raise InputValidationError("Invalid file type. Only audio files are allowed.")


class StorageManager:
    """Manages local file storage operations."""

    def __init__(self, base_path: str = "./uploads"):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    async def save_file(
        self, file_content: bytes, filename: str, subfolder: Optional[str] = None
    ) -> str:
        """Save file content under a unique recording name and return its path."""
        unique_filename = f"recording-{uuid.uuid4()}{Path(filename).suffix.lower()}"

        if subfolder:
            save_dir = self.base_path / subfolder
            save_dir.mkdir(parents=True, exist_ok=True)
            file_path = save_dir / unique_filename
        else:
            file_path = self.base_path / unique_filename

        async with aiofiles.open(file_path, "wb") as f:
            await f.write(file_content)

        logger.info(f"Stored recording {file_path} ({len(file_content)} bytes)")
        return str(file_path)

    async def read_file(self, file_path: str) -> bytes:
        """Read file content."""
        async with aiofiles.open(file_path, "rb") as f:
            return await f.read()

    async def delete_file(self, file_path: str) -> bool:
        """Delete a file, returning False if it was already gone."""
        try:
            await aiofiles.os.remove(file_path)
            return True
        except FileNotFoundError:
            return False

    async def file_exists(self, file_path: str) -> bool:
        """Check if file exists."""
        return await aiofiles.os.path.exists(file_path)
