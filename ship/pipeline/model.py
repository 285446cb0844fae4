from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from ship.core.config import InputSpec
from ship.pipeline.errors import PipelineError, PublishError


@dataclass(frozen=True, slots=True)
class PipelineRequest:
    """What to release. Immutable once the pipeline starts."""

    ref: str
    package_version: str
    publish: bool
    # None means the repository ship is invoked from.
    repository: str | None = None


@dataclass(frozen=True, slots=True)
class BuildTarget:
    """One platform/runtime combination; one fan-out branch builds it."""

    name: str
    os: str
    arch: str
    platform_tag: str
    runtime_version: str
    # Prebuilt artifacts this target needs, names and destinations already rendered.
    inputs: tuple[InputSpec, ...] = ()


@dataclass(frozen=True, slots=True)
class Artifact:
    """A named, immutable output of one packaging branch."""

    name: str
    filename: str
    payload: bytes = field(repr=False)
    origin_target: BuildTarget

    @property
    def sha256(self) -> str:
        return hashlib.sha256(self.payload).hexdigest()

    @property
    def size(self) -> int:
        return len(self.payload)


@dataclass(frozen=True, slots=True)
class PublishOutcome:
    succeeded: bool
    remote_location: str | None = None
    error: PublishError | None = None

    @classmethod
    def dry_run(cls) -> PublishOutcome:
        return cls(succeeded=True, remote_location=None)

    @classmethod
    def published(cls, remote_location: str) -> PublishOutcome:
        return cls(succeeded=True, remote_location=remote_location)

    @classmethod
    def failed(cls, error: PublishError) -> PublishOutcome:
        return cls(succeeded=False, error=error)


@dataclass(frozen=True, slots=True)
class BranchResult:
    """Terminal status of one packaging branch: exactly one of artifact/error is set."""

    target: BuildTarget
    artifact: Artifact | None = None
    error: PipelineError | None = None

    @property
    def ok(self) -> bool:
        return self.artifact is not None


class Stage(Enum):
    FETCHING = "fetching"
    STAMPING = "stamping"
    PACKAGING = "packaging"
    AGGREGATING = "aggregating"
    PUBLISHING = "publishing"
    DONE = "done"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (Stage.DONE, Stage.FAILED)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class PipelineRun:
    """State threaded through the pipeline state machine.

    Each stage handler returns a new instance; nothing is mutated in place.
    """

    request: PipelineRequest
    stage: Stage = Stage.FETCHING
    targets: tuple[BuildTarget, ...] = ()
    source_root: Path | None = None
    branches: tuple[BranchResult, ...] = ()
    artifacts: tuple[Artifact, ...] = ()
    dist_paths: tuple[Path, ...] = ()
    outcome: PublishOutcome | None = None
    # Set once the run reaches FAILED.
    failed_at: Stage | None = None
    error: PipelineError | None = None

    @property
    def failed_branches(self) -> tuple[BranchResult, ...]:
        return tuple(b for b in self.branches if not b.ok)
