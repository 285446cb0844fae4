"""Subprocess execution with Result-based error handling.

Every external tool the pipeline drives (git, python/setuptools, twine) goes
through ``run`` so failures come back as data:

    result = run(["git", "rev-parse", "HEAD"], cwd=checkout)
    match result:
        case Ok(stdout):
            sha = stdout.strip()
        case Err(error):
            print(f"git failed: {error.stderr}")
"""

from __future__ import annotations

import subprocess
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from ship.core.result import Err, Ok, Result

__all__ = ["ProcessError", "format_command", "redact", "run"]

_REDACTED = "***"


@dataclass(frozen=True, slots=True)
class ProcessError:
    """Error from a failed subprocess execution.

    Attributes:
        command: The command that was executed.
        returncode: Exit code, or -1 when the process could not be started or timed out.
        stdout: Standard output (may be empty).
        stderr: Standard error (contains error details).
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    def __str__(self) -> str:
        cmd_str = " ".join(self.command[:3])
        if len(self.command) > 3:
            cmd_str += " ..."
        return f"{cmd_str} failed (exit {self.returncode})"

    @property
    def output(self) -> str:
        """stderr and stdout combined, for matching tool error messages."""
        return f"{self.stderr}\n{self.stdout}".strip()


def redact(text: str, secrets: Iterable[str]) -> str:
    """Mask every secret value occurring in ``text``."""
    for secret in secrets:
        if secret:
            text = text.replace(secret, _REDACTED)
    return text


def format_command(cmd: Iterable[str], *, secrets: Iterable[str] = ()) -> str:
    """Render a command for display with every secret value masked."""
    return redact(" ".join(cmd), secrets)


def run(
    cmd: list[str],
    cwd: Path,
    env: dict[str, str] | None = None,
    *,
    timeout: float | None = None,
) -> Result[str, ProcessError]:
    """Execute a command and return stdout or error.

    Args:
        cmd: Command and arguments to execute.
        cwd: Working directory for the command.
        env: Full environment (inherits the current one if None).
        timeout: Maximum seconds to wait (None for no limit).

    Returns:
        Ok(stdout) on success, Err(ProcessError) on failure.
    """
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=env,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        partial = e.stdout if isinstance(e.stdout, str) else ""
        return Err(ProcessError(tuple(cmd), -1, partial, f"Command timed out after {timeout}s"))
    except OSError as e:
        return Err(ProcessError(tuple(cmd), -1, "", str(e)))

    if proc.returncode != 0:
        return Err(ProcessError(tuple(cmd), proc.returncode, proc.stdout, proc.stderr))
    return Ok(proc.stdout)
