"""Git repository abstraction.

All operations return Result types; nothing here raises on git failure.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from ship.core.result import Err, Ok, Result
from ship.platform.process import ProcessError
from ship.platform.process import run as run_process

_GIT_TIMEOUT_SECONDS = 60.0
_GIT_NETWORK_TIMEOUT_SECONDS = 10 * 60.0

__all__ = ["GitError", "Repository", "is_github_slug", "repository_url"]

_SLUG_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*/[A-Za-z0-9][A-Za-z0-9_.-]*$")
_NETWORK_COMMANDS = {"clone", "fetch", "pull", "push", "ls-remote"}


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git subcommand that failed
        message: Error message (git's stderr when available)
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1


def is_github_slug(repository: str) -> bool:
    return _SLUG_RE.match(repository) is not None


def repository_url(repository: str, *, cwd: Path) -> str:
    """Turn ``owner/name`` into a GitHub URL; URLs and paths pass through.

    A slug that names an existing local directory is treated as a path.
    """
    if is_github_slug(repository) and not (cwd / repository).exists():
        return f"https://github.com/{repository}.git"
    if "://" in repository or repository.startswith("git@"):
        return repository
    return str((cwd / repository).resolve())


def _git_error(command: str, e: ProcessError, fallback: str) -> GitError:
    return GitError(
        command=command,
        message=e.stderr.strip() or e.stdout.strip() or fallback,
        returncode=e.returncode,
    )


class Repository:
    """A local git checkout.

    Attributes:
        path: Path to the working tree root
        env: Environment for every git invocation (e.g. GIT_SSH_COMMAND), or None to inherit
    """

    def __init__(self, path: Path, env: Mapping[str, str] | None = None) -> None:
        self.path = path
        self.env = dict(env) if env is not None else None

    @classmethod
    def clone(
        cls,
        url: str,
        dest: Path,
        *,
        env: Mapping[str, str] | None = None,
        no_checkout: bool = False,
    ) -> Result[Repository, GitError]:
        """Clone ``url`` into ``dest`` (whose parent must exist)."""
        cmd = ["git", "clone", "--quiet"]
        if no_checkout:
            cmd.append("--no-checkout")
        cmd += [url, str(dest)]
        result = run_process(
            cmd,
            cwd=dest.parent,
            env=dict(env) if env is not None else None,
            timeout=_GIT_NETWORK_TIMEOUT_SECONDS,
        )
        if isinstance(result, Err):
            return Err(_git_error("clone", result.error, f"clone failed: {url}"))
        return Ok(cls(dest, env))

    @classmethod
    def toplevel(cls, cwd: Path) -> Result[Path, GitError]:
        """Return the root of the working tree containing ``cwd``."""
        result = run_process(
            ["git", "rev-parse", "--show-toplevel"], cwd=cwd, timeout=_GIT_TIMEOUT_SECONDS
        )
        if isinstance(result, Err):
            return Err(_git_error("rev-parse", result.error, f"not a git repository: {cwd}"))
        return Ok(Path(result.value.strip()))

    def resolve_commit(self, ref: str) -> Result[str, GitError]:
        """Resolve a tag, commit or branch to a commit sha.

        Branches other than the default one only exist as ``origin/<ref>``
        right after a clone, so that form is tried second.
        """
        last: GitError | None = None
        for candidate in (ref, f"origin/{ref}"):
            result = self._run(["rev-parse", "--verify", "--quiet", f"{candidate}^{{commit}}"])
            match result:
                case Ok(stdout):
                    return Ok(stdout.strip())
                case Err(e):
                    last = _git_error("rev-parse", e, f"unknown revision: {ref}")
        assert last is not None
        return Err(last)

    def checkout_detached(self, ref: str) -> Result[str, GitError]:
        """Check out ``ref`` as a detached HEAD; returns the commit sha."""
        sha = self.resolve_commit(ref)
        if isinstance(sha, Err):
            return sha
        result = self._run(["checkout", "--quiet", "--detach", sha.value])
        if isinstance(result, Err):
            return Err(_git_error("checkout", result.error, f"checkout failed: {ref}"))
        return sha

    def is_clean(self) -> bool:
        """True if the working tree has no changes; False if status fails."""
        result = self._run(["status", "--porcelain"])
        match result:
            case Ok(stdout):
                return stdout.strip() == ""
            case Err(_):
                return False

    def remote_tag_exists(self, tag: str, remote: str = "origin") -> Result[bool, GitError]:
        result = self._run(["ls-remote", "--tags", remote, f"refs/tags/{tag}"])
        if isinstance(result, Err):
            return Err(_git_error("ls-remote", result.error, f"cannot list tags of {remote}"))
        return Ok(bool(result.value.strip()))

    def configure_identity(self, name: str, email: str) -> Result[None, GitError]:
        for key, value in (("user.name", name), ("user.email", email)):
            result = self._run(["config", key, value])
            if isinstance(result, Err):
                return Err(_git_error("config", result.error, f"git config {key} failed"))
        return Ok(None)

    def commit_all(self, message: str) -> Result[str, GitError]:
        """Stage everything and commit; returns the new commit sha."""
        for args in (["add", "--all"], ["commit", "--quiet", "-m", message]):
            result = self._run(args)
            if isinstance(result, Err):
                return Err(_git_error(args[0], result.error, f"git {args[0]} failed"))
        return self.resolve_commit("HEAD")

    def tag(self, tag: str, message: str) -> Result[None, GitError]:
        result = self._run(["tag", "-a", tag, "-m", message])
        if isinstance(result, Err):
            return Err(_git_error("tag", result.error, f"failed to create tag {tag}"))
        return Ok(None)

    def push(self, *refspecs: str, remote: str = "origin") -> Result[None, GitError]:
        """Push all refspecs in one atomic transaction: either every ref updates or none."""
        result = self._run(["push", "--quiet", "--atomic", remote, *refspecs])
        if isinstance(result, Err):
            return Err(_git_error("push", result.error, f"push failed: {' '.join(refspecs)}"))
        return Ok(None)

    def current_branch(self) -> str | None:
        """Current branch name, or None on detached HEAD or error."""
        result = self._run(["rev-parse", "--abbrev-ref", "HEAD"])
        match result:
            case Ok(stdout):
                branch = stdout.strip()
                return None if branch == "HEAD" else branch
            case Err(_):
                return None

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        timeout = (
            _GIT_NETWORK_TIMEOUT_SECONDS
            if args and args[0] in _NETWORK_COMMANDS
            else _GIT_TIMEOUT_SECONDS
        )
        return run_process(
            ["git", "-C", str(self.path), *args], cwd=self.path, env=self.env, timeout=timeout
        )
