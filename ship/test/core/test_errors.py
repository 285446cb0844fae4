"""Tests for ship.core.errors module."""

from ship.core.errors import ExitCode


def test_exit_codes_are_stable() -> None:
    """CI jobs branch on these values; they must never change."""
    assert int(ExitCode.OK) == 0
    assert int(ExitCode.USER_ERROR) == 1
    assert int(ExitCode.ENV_ERROR) == 2
    assert int(ExitCode.BUILD_ERROR) == 3
    assert int(ExitCode.NETWORK_ERROR) == 4
    assert int(ExitCode.IO_ERROR) == 5
    assert int(ExitCode.PUBLISH_ERROR) == 6


def test_str() -> None:
    assert str(ExitCode.BUILD_ERROR) == "build error"
