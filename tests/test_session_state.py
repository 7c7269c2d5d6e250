# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

import pytest

from mindscribe.exceptions import IllegalTransition
from mindscribe.services.session_state import (
    ALLOWED_TRANSITIONS,
    SessionPhase,
    SessionState,
    can_transition,
    transition,
)


def test_happy_path_walks_through_every_in_flight_phase() -> None:
    state = SessionState(SessionPhase.RECORDING)
    for phase in (
        SessionPhase.AWAITING_TRANSCRIPTION,
        SessionPhase.QUEUED,
        SessionPhase.TRANSCRIBING,
        SessionPhase.COMPLETED,
    ):
        state = transition(state, phase)

    assert state.status == "completed"
    assert state.transcription_status == "completed"
    assert state.is_terminal


@pytest.mark.parametrize(
    "current,target",
    [
        (SessionPhase.COMPLETED, SessionPhase.TRANSCRIBING),
        (SessionPhase.COMPLETED, SessionPhase.AWAITING_TRANSCRIPTION),
        (SessionPhase.FAILED, SessionPhase.QUEUED),
        (SessionPhase.QUEUED, SessionPhase.COMPLETED),
        (SessionPhase.RECORDING, SessionPhase.TRANSCRIBING),
        (SessionPhase.CANCELLED, SessionPhase.RECORDING),
        (SessionPhase.TRANSCRIBING, SessionPhase.QUEUED),
    ],
)
def test_illegal_transitions_are_rejected(current, target) -> None:
    with pytest.raises(IllegalTransition):
        transition(SessionState(current), target)


def test_failed_state_keeps_reason() -> None:
    state = transition(SessionState(SessionPhase.TRANSCRIBING), SessionPhase.FAILED, "bad audio")

    assert state.status == "failed"
    assert state.transcription_status == "failed"
    assert state.error == "bad audio"


def test_failed_state_without_reason_gets_placeholder() -> None:
    state = transition(SessionState(SessionPhase.QUEUED), SessionPhase.FAILED)
    assert state.error == "Unknown error"


def test_failure_can_be_retried_or_cancelled() -> None:
    failed = SessionState(SessionPhase.FAILED, error="timeout")
    assert ALLOWED_TRANSITIONS[SessionPhase.FAILED] == {
        SessionPhase.AWAITING_TRANSCRIPTION,
        SessionPhase.CANCELLED,
    }

    state = transition(failed, SessionPhase.AWAITING_TRANSCRIPTION)
    assert state.error is None
    assert state.transcription_status is None

    cancelled = transition(failed, SessionPhase.CANCELLED)
    assert cancelled.status == "cancelled"
    assert cancelled.error is None


def test_completed_and_cancelled_are_terminal() -> None:
    for phase in SessionPhase:
        expected = phase in (SessionPhase.COMPLETED, SessionPhase.CANCELLED)
        assert SessionState(phase).is_terminal is expected


def test_transcription_status_never_regresses() -> None:
    order = {None: 0, "pending": 1, "in_progress": 2, "completed": 3, "failed": 3}
    for current, targets in ALLOWED_TRANSITIONS.items():
        for target in targets:
            if target is SessionPhase.AWAITING_TRANSCRIPTION:
                # a new upload resets the transcription sub-state
                continue
            before = SessionState(current).transcription_status
            after = SessionState(target).transcription_status
            assert order[after] >= order[before]


def test_from_columns_round_trips_every_phase() -> None:
    for phase in SessionPhase:
        state = SessionState(phase)
        assert SessionState.from_columns(state.status, state.transcription_status).phase is phase


def test_from_columns_rejects_unknown_pair() -> None:
    with pytest.raises(IllegalTransition):
        SessionState.from_columns("completed", "in_progress")


def test_from_columns_drops_error_outside_failed() -> None:
    state = SessionState.from_columns("recording", None, "stale error")
    assert state.error is None


def test_can_transition() -> None:
    assert can_transition(SessionPhase.SCHEDULED, SessionPhase.CANCELLED)
    assert not can_transition(SessionPhase.COMPLETED, SessionPhase.FAILED)
