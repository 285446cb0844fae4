"""Tests for ship.output.errors module."""

from __future__ import annotations

from pathlib import Path

import pytest

from ship.core.config import ConfigError
from ship.core.errors import ExitCode
from ship.output.console import MockConsole
from ship.output.errors import pipeline_exit_code, print_pipeline_error
from ship.pipeline.errors import (
    BranchFailures,
    FetchError,
    MetadataFormatError,
    PackageBuildError,
    PipelineError,
    PublishError,
    RequestError,
)


@pytest.mark.parametrize(
    ("error", "code"),
    [
        (RequestError(message="bad version"), ExitCode.USER_ERROR),
        (FetchError(kind="ref_not_found", message="x"), ExitCode.USER_ERROR),
        (FetchError(kind="artifact_missing", message="x"), ExitCode.USER_ERROR),
        (FetchError(kind="clone_failed", message="x"), ExitCode.NETWORK_ERROR),
        (FetchError(kind="store_failed", message="x"), ExitCode.IO_ERROR),
        (MetadataFormatError(path=Path("setup.py"), pattern="p", message="x"), ExitCode.IO_ERROR),
        (PackageBuildError(target="t", kind="toolchain_missing", message="x"), ExitCode.ENV_ERROR),
        (PackageBuildError(target="t", kind="tool_failed", message="x"), ExitCode.BUILD_ERROR),
        (PublishError(kind="credentials_missing", message="x"), ExitCode.ENV_ERROR),
        (PublishError(kind="network", message="x"), ExitCode.NETWORK_ERROR),
        (PublishError(kind="already_published", message="x"), ExitCode.PUBLISH_ERROR),
        (PublishError(kind="auth_failed", message="x"), ExitCode.PUBLISH_ERROR),
        (BranchFailures(errors=()), ExitCode.BUILD_ERROR),
    ],
)
def test_exit_code_mapping(error: PipelineError, code: ExitCode) -> None:
    assert pipeline_exit_code(error) == int(code)


def test_every_error_is_non_zero() -> None:
    assert pipeline_exit_code(ConfigError("bad")) != 0


def test_print_with_hint() -> None:
    console = MockConsole()
    print_pipeline_error(
        RequestError(message="invalid package version: 'v1.2.3'", hint="drop the leading 'v'"),
        console,
    )
    assert console.messages == [
        "error: invalid package version: 'v1.2.3'",
        "hint: drop the leading 'v'",
    ]


def test_print_build_error_with_exit_code() -> None:
    console = MockConsole()
    print_pipeline_error(
        PackageBuildError(
            target="linux-x86_64-py3.10",
            kind="tool_failed",
            message="bdist_wheel failed",
            returncode=1,
        ),
        console,
    )
    assert console.messages[0] == "error: [linux-x86_64-py3.10] bdist_wheel failed (exit 1)"


def test_print_branch_failures_lists_each() -> None:
    console = MockConsole()
    failures = BranchFailures(
        errors=(
            PackageBuildError(target="a", kind="tool_failed", message="one"),
            PackageBuildError(target="b", kind="toolchain_missing", message="two"),
        )
    )
    print_pipeline_error(failures, console)
    assert console.count(console.outputs[0].style) == 3
    assert console.find("[a] one") and console.find("[b] two")
