# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Session lifecycle state machine.

A session's lifecycle is persisted as two columns, ``status`` and
``transcription_status``. This module maps every legal pair onto a single
``SessionPhase`` and owns the only table of allowed transitions. All writes to
those two columns go through :func:`transition` first.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from mindscribe.exceptions import IllegalTransition


class SessionPhase(str, Enum):
    """Composite lifecycle phase of a session."""

    SCHEDULED = "scheduled"
    RECORDING = "recording"
    AWAITING_TRANSCRIPTION = "awaiting_transcription"
    QUEUED = "queued"
    TRANSCRIBING = "transcribing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


# phase -> (status, transcription_status)
_COLUMNS: Dict[SessionPhase, Tuple[str, Optional[str]]] = {
    SessionPhase.SCHEDULED: ("scheduled", None),
    SessionPhase.RECORDING: ("recording", None),
    SessionPhase.AWAITING_TRANSCRIPTION: ("processing", None),
    SessionPhase.QUEUED: ("processing", "pending"),
    SessionPhase.TRANSCRIBING: ("processing", "in_progress"),
    SessionPhase.COMPLETED: ("completed", "completed"),
    SessionPhase.FAILED: ("failed", "failed"),
    SessionPhase.CANCELLED: ("cancelled", None),
}

_PHASES_BY_COLUMNS = {columns: phase for phase, columns in _COLUMNS.items()}

ALLOWED_TRANSITIONS: Dict[SessionPhase, FrozenSet[SessionPhase]] = {
    SessionPhase.SCHEDULED: frozenset(
        {
            SessionPhase.RECORDING,
            SessionPhase.AWAITING_TRANSCRIPTION,
            SessionPhase.CANCELLED,
        }
    ),
    SessionPhase.RECORDING: frozenset(
        {SessionPhase.AWAITING_TRANSCRIPTION, SessionPhase.CANCELLED}
    ),
    SessionPhase.AWAITING_TRANSCRIPTION: frozenset({SessionPhase.QUEUED, SessionPhase.FAILED}),
    SessionPhase.QUEUED: frozenset({SessionPhase.TRANSCRIBING, SessionPhase.FAILED}),
    SessionPhase.TRANSCRIBING: frozenset({SessionPhase.COMPLETED, SessionPhase.FAILED}),
    # Out of a failure: a fresh upload, or the clinician gives up
    SessionPhase.FAILED: frozenset({SessionPhase.AWAITING_TRANSCRIPTION, SessionPhase.CANCELLED}),
    SessionPhase.COMPLETED: frozenset(),
    SessionPhase.CANCELLED: frozenset(),
}

IN_FLIGHT_PHASES = frozenset(
    {SessionPhase.AWAITING_TRANSCRIPTION, SessionPhase.QUEUED, SessionPhase.TRANSCRIBING}
)


@dataclass(frozen=True)
class SessionState:
    """A session phase plus the failure reason when the phase is FAILED."""

    phase: SessionPhase
    error: Optional[str] = None

    @property
    def status(self) -> str:
        return _COLUMNS[self.phase][0]

    @property
    def transcription_status(self) -> Optional[str]:
        return _COLUMNS[self.phase][1]

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self.phase]

    @classmethod
    def from_columns(
        cls,
        status: str,
        transcription_status: Optional[str],
        error: Optional[str] = None,
    ) -> "SessionState":
        """Rebuild the state from persisted columns.

        Raises:
            IllegalTransition: If the column pair does not name a known phase
        """
        phase = _PHASES_BY_COLUMNS.get((status, transcription_status))
        if phase is None:
            raise IllegalTransition(
                f"Unknown session state: status={status!r}, "
                f"transcription_status={transcription_status!r}"
            )
        return cls(phase=phase, error=error if phase is SessionPhase.FAILED else None)

    @classmethod
    def of(cls, session) -> "SessionState":
        """Read the state of a Session row."""
        return cls.from_columns(
            session.status, session.transcription_status, session.transcription_error
        )


def can_transition(current: SessionPhase, target: SessionPhase) -> bool:
    """Return True if ``target`` is reachable from ``current`` in one step."""
    return target in ALLOWED_TRANSITIONS[current]


def transition(
    current: SessionState, target: SessionPhase, error: Optional[str] = None
) -> SessionState:
    """Validate a single step of the lifecycle and return the new state.

    Args:
        current: State the session is in now
        target: Phase to move to
        error: Failure reason, required when moving to FAILED

    Returns:
        The new SessionState

    Raises:
        IllegalTransition: If the step is not in ALLOWED_TRANSITIONS
    """
    if not can_transition(current.phase, target):
        raise IllegalTransition(
            f"Cannot move session from {current.phase.value} to {target.value}"
        )
    if target is SessionPhase.FAILED:
        return SessionState(phase=target, error=error or "Unknown error")
    return SessionState(phase=target)
