"""Error presentation utilities.

Centralized error formatting and exit code mapping for consistent UX.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ship.core.config import ConfigError
from ship.core.errors import ExitCode
from ship.output.console import Style
from ship.pipeline.errors import (
    BranchFailures,
    FetchError,
    MetadataFormatError,
    PackageBuildError,
    PipelineError,
    PublishError,
    RequestError,
)

if TYPE_CHECKING:
    from ship.output.console import ConsoleProtocol

__all__ = ["print_pipeline_error", "pipeline_exit_code"]


def _hint(console: ConsoleProtocol, hint: str | None) -> None:
    if hint:
        console.print(f"hint: {hint}", Style.DIM)


def print_pipeline_error(error: PipelineError | ConfigError, console: ConsoleProtocol) -> None:
    """Print a pipeline error to the console with appropriate formatting."""
    match error:
        case ConfigError(message=message, path=path):
            console.error(f"invalid config: {message}" + (f" ({path})" if path else ""))
        case RequestError(message=message, hint=hint):
            console.error(message)
            _hint(console, hint)
        case FetchError(message=message, hint=hint):
            console.error(message)
            _hint(console, hint)
        case MetadataFormatError(path=path, pattern=pattern, message=message):
            console.error(f"{message}: {path}")
            console.print(f"expected a line matching {pattern}", Style.DIM)
        case PackageBuildError(target=target, message=message, returncode=rc, hint=hint):
            suffix = f" (exit {rc})" if rc is not None else ""
            console.error(f"[{target}] {message}{suffix}")
            _hint(console, hint)
        case PublishError(message=message, hint=hint):
            console.error(message)
            _hint(console, hint)
        case BranchFailures(errors=errors):
            console.error(f"{len(errors)} packaging branch(es) failed; nothing was published")
            for e in errors:
                print_pipeline_error(e, console)


def pipeline_exit_code(error: PipelineError | ConfigError) -> int:
    """Get exit code for a pipeline error."""
    match error:
        case ConfigError() | RequestError():
            return int(ExitCode.USER_ERROR)
        case FetchError(kind="artifact_missing" | "ref_not_found"):
            return int(ExitCode.USER_ERROR)
        case FetchError(kind="clone_failed"):
            return int(ExitCode.NETWORK_ERROR)
        case FetchError():
            return int(ExitCode.IO_ERROR)
        case MetadataFormatError():
            return int(ExitCode.IO_ERROR)
        case PackageBuildError(kind="toolchain_missing"):
            return int(ExitCode.ENV_ERROR)
        case PackageBuildError():
            return int(ExitCode.BUILD_ERROR)
        case PublishError(kind="credentials_missing"):
            return int(ExitCode.ENV_ERROR)
        case PublishError(kind="network"):
            return int(ExitCode.NETWORK_ERROR)
        case PublishError():
            return int(ExitCode.PUBLISH_ERROR)
        case BranchFailures():
            return int(ExitCode.BUILD_ERROR)
    # Fallback for exhaustiveness
    return int(ExitCode.BUILD_ERROR)
