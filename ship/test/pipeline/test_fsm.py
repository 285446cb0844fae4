from __future__ import annotations

from dataclasses import dataclass, replace

from ship.core.result import Err, Ok, Result
from ship.pipeline.fsm import FINISH, StepOutcome, advance, run_state_machine


@dataclass(frozen=True, slots=True)
class _State:
    step: str
    counter: int


def test_run_state_machine_advances_and_reports() -> None:
    seen: list[_State] = []

    def step_a(s: _State) -> Result[StepOutcome[_State], str]:
        return Ok(advance(replace(s, step="b", counter=s.counter + 1)))

    def step_b(s: _State) -> Result[StepOutcome[_State], str]:
        return Ok(FINISH)

    result = run_state_machine(
        initial_state=_State(step="a", counter=0),
        get_step=lambda s: s.step,
        handlers={"a": step_a, "b": step_b},
        unknown_step=lambda step: f"unknown {step}",
        on_advance=seen.append,
    )

    assert result == Ok(_State(step="b", counter=1))
    assert seen == [_State(step="b", counter=1)]


def test_run_state_machine_unknown_step_fails() -> None:
    result = run_state_machine(
        initial_state=_State(step="missing", counter=0),
        get_step=lambda s: s.step,
        handlers={},
        unknown_step=lambda step: f"unknown {step}",
    )
    assert result == Err("unknown missing")


def test_run_state_machine_propagates_handler_error() -> None:
    calls: list[str] = []

    def bad_step(s: _State) -> Result[StepOutcome[_State], str]:
        calls.append(s.step)
        return Err("boom")

    result = run_state_machine(
        initial_state=_State(step="a", counter=0),
        get_step=lambda s: s.step,
        handlers={"a": bad_step},
        unknown_step=lambda step: f"unknown {step}",
    )
    assert result == Err("boom")
    assert calls == ["a"]
