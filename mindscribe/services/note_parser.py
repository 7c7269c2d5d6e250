# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Parse LLM output into structured SOAP/DARE note fields.

Two strategies are tried in order: strict JSON extraction, then header-based
section slicing. Both return the same ``NoteFields`` shape, and a field that
neither strategy can fill is returned as an empty string.
"""
import json
import logging
import re
from typing import Any, Dict, Optional

from mindscribe.models.api.notes_schema import NoteFields, NoteType
from mindscribe.models.database.notes_model import ALL_NOTE_FIELDS

logger = logging.getLogger(__name__)

_DECODER = json.JSONDecoder()
_DECORATION = "[ \t#>*_-]*"

# One-letter abbreviations per template, e.g. "S:" for subjective
_ABBREVIATIONS = {
    "subjective": "s",
    "objective": "o",
    "assessment": "a",
    "plan": "p",
    "description": "d",
    "action": "a",
    "response": "r",
    "evaluation": "e",
}


def _header_regex(names) -> re.Pattern:
    """Build a pattern matching any of ``names`` used as a section header.

    A full name counts as a header when followed by a colon, or when it sits
    alone on its own line. An abbreviation counts only at the start of a line
    followed by a colon.
    """
    alternatives = []
    for name in names:
        alternatives.append(rf"\b{name}[ \t*_]*:")
        alternatives.append(rf"^{_DECORATION}{name}[ \t*_]*$")
        alternatives.append(rf"^{_DECORATION}{_ABBREVIATIONS[name]}[ \t*_]*:")
    return re.compile("|".join(alternatives), re.IGNORECASE | re.MULTILINE)


_FIELD_HEADERS = {name: _header_regex([name]) for name in ALL_NOTE_FIELDS}
_ANY_HEADER = _header_regex(ALL_NOTE_FIELDS)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, list):
        return "\n".join(_as_text(item) for item in value if item is not None)
    if isinstance(value, dict):
        return "\n".join(f"{key}: {_as_text(item)}" for key, item in value.items())
    return str(value)


def _first_json_object(content: str) -> Optional[Dict[str, Any]]:
    """Decode the first ``{...}`` block that is a complete JSON object."""
    start = content.find("{")
    while start != -1:
        try:
            data, _ = _DECODER.raw_decode(content, start)
        except json.JSONDecodeError:
            data = None
        if isinstance(data, dict):
            return data
        start = content.find("{", start + 1)
    return None


def parse_json_fields(content: str, note_type: NoteType) -> Optional[Dict[str, str]]:
    """Extract fields from the first ``{...}`` block, or None if it is not JSON."""
    data = _first_json_object(content)
    if data is None:
        return None

    lowered = {str(key).lower(): value for key, value in data.items()}
    return {name: _as_text(lowered.get(name)) for name in note_type.fields}


def extract_section(content: str, name: str) -> str:
    """Return the text after the ``name`` header up to the next known header."""
    header = _FIELD_HEADERS[name].search(content)
    if not header:
        return ""

    start = header.end()
    following = _ANY_HEADER.search(content, start)
    end = following.start() if following else len(content)
    return content[start:end].strip(" \t\r\n*_:-#")


def parse_section_fields(content: str, note_type: NoteType) -> Dict[str, str]:
    """Extract fields by scanning for section headers."""
    return {name: extract_section(content, name) for name in note_type.fields}


def parse_note_content(content: str, note_type: NoteType) -> NoteFields:
    """
    Parse raw model output into note fields.

    Args:
        content: Raw completion text
        note_type: Template the model was asked to fill

    Returns:
        NoteFields with the four fields of ``note_type`` set (possibly empty)
    """
    fields = parse_json_fields(content, note_type)
    if fields is None:
        logger.info(f"Model output for {note_type.value} note was not JSON, scanning headers")
        fields = parse_section_fields(content, note_type)

    missing = [name for name, value in fields.items() if not value]
    if missing:
        logger.warning(f"Could not parse note sections: {', '.join(missing)}")

    return NoteFields(**fields)
