"""Result type for explicit error handling.

Pipeline steps return ``Ok(value)`` or ``Err(error)`` instead of raising, so a
failing branch is just data the coordinator can collect and report.

Usage:
    match stamp_version(path, "1.2.3", style):
        case Ok(stamped):
            console.success(f"stamped {stamped}")
        case Err(error):
            console.error(error.pretty())
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Ok[T]:
    """Successful result holding ``value``."""

    value: T

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err[E]:
    """Failed result holding ``error``."""

    error: E

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


type Result[T, E] = Ok[T] | Err[E]
