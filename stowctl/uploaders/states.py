"""Upload task state machine.

The transition table is a pure function of (state, event) so it can be
tested without a backend. The task applies the returned effects in order.

    Event                 From                          To         Effects
    --------------------  ----------------------------  ---------  ----------------------------
    PAUSE                 RUNNING                       PAUSING    cancel call
    RESUME                PAUSED                        RUNNING    notify, start
    RESUME                PAUSING                       RUNNING    -
    CANCEL                RUNNING, PAUSING              CANCELING  cancel call
    CALL_CANCELED         RUNNING                       RUNNING    refetch status, start
    CALL_CANCELED         PAUSING                       PAUSED     notify
    CALL_CANCELED         CANCELING                     CANCELED   canceled error, notify
    METADATA_INTERRUPTED  RUNNING                       RUNNING    start
    METADATA_INTERRUPTED  PAUSING                       PAUSED     notify
    METADATA_INTERRUPTED  CANCELING                     CANCELED   canceled error, notify
    STEP_COMPLETED        RUNNING                       RUNNING    start
    STEP_COMPLETED        PAUSING                       PAUSED     notify
    STEP_COMPLETED        CANCELING                     CANCELED   canceled error, notify
    CALL_FAILED           RUNNING, PAUSING, CANCELING   ERROR      store error, notify
    EARLY_FINALIZE        RUNNING                       RUNNING    fetch metadata, start
    FINALIZED             RUNNING                       SUCCESS    store metadata, notify
    METADATA_FETCHED      RUNNING                       SUCCESS    store metadata, notify
"""

from __future__ import annotations

from enum import Enum
from typing import NamedTuple

from stowctl.models.progress import TaskState


class InternalState(Enum):
    """Internal task states, including the transient PAUSING and CANCELING."""

    RUNNING = "running"
    PAUSING = "pausing"
    PAUSED = "paused"
    CANCELING = "canceling"
    CANCELED = "canceled"
    ERROR = "error"
    SUCCESS = "success"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES

    @property
    def external(self) -> TaskState:
        """State as reported in snapshots."""
        return _EXTERNAL[self]


TERMINAL_STATES = frozenset(
    {InternalState.CANCELED, InternalState.ERROR, InternalState.SUCCESS}
)

# A task that is still winding down reports as running until the call returns
_EXTERNAL = {
    InternalState.RUNNING: TaskState.RUNNING,
    InternalState.PAUSING: TaskState.RUNNING,
    InternalState.CANCELING: TaskState.RUNNING,
    InternalState.PAUSED: TaskState.PAUSED,
    InternalState.CANCELED: TaskState.CANCELED,
    InternalState.ERROR: TaskState.ERROR,
    InternalState.SUCCESS: TaskState.SUCCESS,
}


class Event(Enum):
    """Inputs to the state machine."""

    PAUSE = "pause"
    RESUME = "resume"
    CANCEL = "cancel"
    CALL_CANCELED = "call_canceled"
    METADATA_INTERRUPTED = "metadata_interrupted"
    STEP_COMPLETED = "step_completed"
    CALL_FAILED = "call_failed"
    EARLY_FINALIZE = "early_finalize"
    FINALIZED = "finalized"
    METADATA_FETCHED = "metadata_fetched"


class Effect(Enum):
    """Side effects the task performs after a transition, in order."""

    CANCEL_CALL = "cancel_call"
    REFETCH_STATUS = "refetch_status"
    FETCH_METADATA = "fetch_metadata"
    SET_CANCELED_ERROR = "set_canceled_error"
    SET_ERROR = "set_error"
    STORE_METADATA = "store_metadata"
    NOTIFY = "notify"
    START = "start"


class Transition(NamedTuple):
    """Outcome of applying one event."""

    state: InternalState
    effects: tuple[Effect, ...]
    accepted: bool


_S = InternalState
_E = Event
_F = Effect

_TO_PAUSED = (_S.PAUSED, (_F.NOTIFY,))
_TO_CANCELED = (_S.CANCELED, (_F.SET_CANCELED_ERROR, _F.NOTIFY))
_TO_ERROR = (_S.ERROR, (_F.SET_ERROR, _F.NOTIFY))
_TO_SUCCESS = (_S.SUCCESS, (_F.STORE_METADATA, _F.NOTIFY))

TRANSITIONS: dict[tuple[InternalState, Event], tuple[InternalState, tuple[Effect, ...]]] = {
    (_S.RUNNING, _E.PAUSE): (_S.PAUSING, (_F.CANCEL_CALL,)),
    (_S.PAUSED, _E.RESUME): (_S.RUNNING, (_F.NOTIFY, _F.START)),
    (_S.PAUSING, _E.RESUME): (_S.RUNNING, ()),
    (_S.RUNNING, _E.CANCEL): (_S.CANCELING, (_F.CANCEL_CALL,)),
    (_S.PAUSING, _E.CANCEL): (_S.CANCELING, (_F.CANCEL_CALL,)),
    (_S.RUNNING, _E.CALL_CANCELED): (_S.RUNNING, (_F.REFETCH_STATUS, _F.START)),
    (_S.PAUSING, _E.CALL_CANCELED): _TO_PAUSED,
    (_S.CANCELING, _E.CALL_CANCELED): _TO_CANCELED,
    (_S.RUNNING, _E.METADATA_INTERRUPTED): (_S.RUNNING, (_F.START,)),
    (_S.PAUSING, _E.METADATA_INTERRUPTED): _TO_PAUSED,
    (_S.CANCELING, _E.METADATA_INTERRUPTED): _TO_CANCELED,
    (_S.RUNNING, _E.STEP_COMPLETED): (_S.RUNNING, (_F.START,)),
    (_S.PAUSING, _E.STEP_COMPLETED): _TO_PAUSED,
    (_S.CANCELING, _E.STEP_COMPLETED): _TO_CANCELED,
    (_S.RUNNING, _E.CALL_FAILED): _TO_ERROR,
    (_S.PAUSING, _E.CALL_FAILED): _TO_ERROR,
    (_S.CANCELING, _E.CALL_FAILED): _TO_ERROR,
    (_S.RUNNING, _E.EARLY_FINALIZE): (_S.RUNNING, (_F.FETCH_METADATA, _F.START)),
    (_S.RUNNING, _E.FINALIZED): _TO_SUCCESS,
    (_S.RUNNING, _E.METADATA_FETCHED): _TO_SUCCESS,
}


def transition(state: InternalState, event: Event) -> Transition:
    """Apply ``event`` to ``state``.

    Events the current state does not allow are ignored: the state is
    returned unchanged with no effects and ``accepted`` False.
    """
    target = TRANSITIONS.get((state, event))
    if target is None:
        return Transition(state, (), False)
    new_state, effects = target
    return Transition(new_state, effects, True)
