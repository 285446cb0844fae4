"""Error types for the release pipeline.

Each pipeline stage has its own error type; the coordinator surfaces them
unchanged so the CLI can render a precise cause and pick an exit code.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

FetchErrorKind = Literal["ref_not_found", "clone_failed", "artifact_missing", "store_failed"]
PackageBuildErrorKind = Literal[
    "toolchain_missing",
    "tool_failed",
    "output_missing",
    "layout_failed",
]
PublishErrorKind = Literal[
    "credentials_missing",
    "already_published",
    "auth_failed",
    "rejected",
    "network",
]


def _with_hint(message: str, hint: str | None) -> str:
    if hint:
        return f"{message} (hint: {hint})"
    return message


@dataclass(frozen=True, slots=True)
class RequestError:
    """Invalid invocation input, detected before any stage runs."""

    message: str
    hint: str | None = None

    def pretty(self) -> str:
        return _with_hint(self.message, self.hint)


@dataclass(frozen=True, slots=True)
class FetchError:
    kind: FetchErrorKind
    message: str
    hint: str | None = None

    def pretty(self) -> str:
        return _with_hint(self.message, self.hint)


@dataclass(frozen=True, slots=True)
class MetadataFormatError:
    path: Path
    pattern: str
    message: str

    def pretty(self) -> str:
        return f"{self.message}: {self.path} (expected a line matching {self.pattern})"


@dataclass(frozen=True, slots=True)
class PackageBuildError:
    target: str
    kind: PackageBuildErrorKind
    message: str
    returncode: int | None = None
    hint: str | None = None

    def pretty(self) -> str:
        msg = f"[{self.target}] {self.message}"
        if self.returncode is not None:
            msg += f" (exit {self.returncode})"
        return _with_hint(msg, self.hint)


@dataclass(frozen=True, slots=True)
class PublishError:
    kind: PublishErrorKind
    message: str
    hint: str | None = None

    def pretty(self) -> str:
        return _with_hint(self.message, self.hint)


@dataclass(frozen=True, slots=True)
class BranchFailures:
    """One or more packaging branches failed; nothing was published."""

    errors: tuple[PipelineError, ...]

    def pretty(self) -> str:
        n = len(self.errors)
        lines = [f"{n} packaging branch{'es' if n != 1 else ''} failed; publish skipped"]
        lines += [f"  - {e.pretty()}" for e in self.errors]
        return "\n".join(lines)


PipelineError = (
    RequestError
    | FetchError
    | MetadataFormatError
    | PackageBuildError
    | PublishError
    | BranchFailures
)
