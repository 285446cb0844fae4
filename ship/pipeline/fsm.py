"""Minimal step state machine.

The current step is read from the state, its handler runs and either
advances to a new state or finishes. Any handler error stops the machine.
"""

from __future__ import annotations

from collections.abc import Callable, Hashable, Mapping
from dataclasses import dataclass
from typing import TypeVar

from ship.core.result import Err, Ok, Result

S = TypeVar("S")


@dataclass(frozen=True, slots=True)
class StepAdvance[S]:
    state: S


@dataclass(frozen=True, slots=True)
class StepFinish:
    pass


type StepOutcome[S] = StepAdvance[S] | StepFinish

FINISH = StepFinish()


def advance[S](state: S) -> StepAdvance[S]:
    return StepAdvance(state=state)


def run_state_machine[S, K: Hashable, E](
    *,
    initial_state: S,
    get_step: Callable[[S], K],
    handlers: Mapping[K, Callable[[S], Result[StepOutcome[S], E]]],
    unknown_step: Callable[[K], E],
    on_advance: Callable[[S], None] | None = None,
) -> Result[S, E]:
    """Run handlers until one finishes; returns the state that finished."""
    current = initial_state

    while True:
        step = get_step(current)
        handler = handlers.get(step)
        if handler is None:
            return Err(unknown_step(step))

        outcome = handler(current)
        if isinstance(outcome, Err):
            return outcome

        if isinstance(outcome.value, StepFinish):
            return Ok(current)

        current = outcome.value.state
        if on_advance is not None:
            on_advance(current)
