"""Tests for the upload state machine table."""

from __future__ import annotations

import pytest

from stowctl.models.progress import TaskState
from stowctl.uploaders.states import (
    TRANSITIONS,
    Effect,
    Event,
    InternalState,
    transition,
)


class TestTransition:
    """Tests for transition()."""

    @pytest.mark.parametrize(
        "state,event,expected",
        [
            (InternalState.RUNNING, Event.PAUSE, InternalState.PAUSING),
            (InternalState.PAUSED, Event.RESUME, InternalState.RUNNING),
            (InternalState.PAUSING, Event.RESUME, InternalState.RUNNING),
            (InternalState.RUNNING, Event.CANCEL, InternalState.CANCELING),
            (InternalState.PAUSING, Event.CANCEL, InternalState.CANCELING),
            (InternalState.PAUSING, Event.CALL_CANCELED, InternalState.PAUSED),
            (InternalState.CANCELING, Event.CALL_CANCELED, InternalState.CANCELED),
            (InternalState.CANCELING, Event.CALL_FAILED, InternalState.ERROR),
            (InternalState.RUNNING, Event.FINALIZED, InternalState.SUCCESS),
            (InternalState.RUNNING, Event.METADATA_FETCHED, InternalState.SUCCESS),
        ],
    )
    def test_accepted(self, state, event, expected):
        result = transition(state, event)

        assert result.accepted is True
        assert result.state is expected

    @pytest.mark.parametrize(
        "state,event",
        [
            (InternalState.PAUSED, Event.CANCEL),
            (InternalState.PAUSED, Event.PAUSE),
            (InternalState.PAUSING, Event.PAUSE),
            (InternalState.RUNNING, Event.RESUME),
            (InternalState.CANCELING, Event.RESUME),
            (InternalState.PAUSING, Event.FINALIZED),
            (InternalState.PAUSING, Event.EARLY_FINALIZE),
        ],
    )
    def test_rejected_leaves_state(self, state, event):
        result = transition(state, event)

        assert result.accepted is False
        assert result.state is state
        assert result.effects == ()

    @pytest.mark.parametrize(
        "state", [InternalState.SUCCESS, InternalState.CANCELED, InternalState.ERROR]
    )
    def test_terminal_states_accept_nothing(self, state):
        for event in Event:
            assert transition(state, event).accepted is False

    def test_no_transition_leaves_a_terminal_state(self):
        for (state, _event), (_target, _effects) in TRANSITIONS.items():
            assert not state.is_terminal

    def test_interrupted_while_running_refetches(self):
        result = transition(InternalState.RUNNING, Event.CALL_CANCELED)

        assert result.effects == (Effect.REFETCH_STATUS, Effect.START)

    def test_interrupted_metadata_fetch_does_not_refetch(self):
        result = transition(InternalState.RUNNING, Event.METADATA_INTERRUPTED)

        assert Effect.REFETCH_STATUS not in result.effects

    def test_resume_from_paused_notifies_before_start(self):
        result = transition(InternalState.PAUSED, Event.RESUME)

        assert result.effects == (Effect.NOTIFY, Effect.START)

    def test_cancel_settles_with_canceled_error(self):
        result = transition(InternalState.CANCELING, Event.STEP_COMPLETED)

        assert result.effects == (Effect.SET_CANCELED_ERROR, Effect.NOTIFY)

    def test_every_terminal_transition_notifies(self):
        for target, effects in TRANSITIONS.values():
            if target.is_terminal:
                assert Effect.NOTIFY in effects


class TestExternalState:
    """Tests for the externally reported state."""

    @pytest.mark.parametrize(
        "state,expected",
        [
            (InternalState.RUNNING, TaskState.RUNNING),
            (InternalState.PAUSING, TaskState.RUNNING),
            (InternalState.CANCELING, TaskState.RUNNING),
            (InternalState.PAUSED, TaskState.PAUSED),
            (InternalState.SUCCESS, TaskState.SUCCESS),
            (InternalState.CANCELED, TaskState.CANCELED),
            (InternalState.ERROR, TaskState.ERROR),
        ],
    )
    def test_mapping(self, state, expected):
        assert state.external is expected

    def test_terminal_flags_agree(self):
        for state in InternalState:
            assert state.is_terminal == state.external.is_terminal
