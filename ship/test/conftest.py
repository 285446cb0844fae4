"""Shared fixtures: real git repositories in tmp_path."""

from __future__ import annotations

import subprocess
from collections.abc import Callable, Mapping
from pathlib import Path

import pytest


def git(cwd: Path, *args: str) -> str:
    proc = subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=True
    )
    return proc.stdout.strip()


@pytest.fixture(autouse=True)
def _git_identity(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Isolate git from the user's config and give commits an identity."""
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(tmp_path / ".gitconfig-global"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")


MakeRepo = Callable[[Path, Mapping[str, str | bytes]], Path]


@pytest.fixture
def make_repo() -> MakeRepo:
    """Create a git repository on branch ``main`` with one commit of ``files``."""

    def _make(path: Path, files: Mapping[str, str | bytes]) -> Path:
        path.mkdir(parents=True, exist_ok=True)
        git(path, "init", "--quiet", "-b", "main")
        for rel, content in files.items():
            p = path / rel
            p.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                p.write_bytes(content)
            else:
                p.write_text(content, encoding="utf-8")
        git(path, "add", "--all")
        git(path, "commit", "--quiet", "-m", "initial")
        return path

    return _make


@pytest.fixture
def make_bare() -> Callable[[Path, Path], Path]:
    """Bare clone of a repository, usable as a push target."""

    def _make(src: Path, dest: Path) -> Path:
        subprocess.run(
            ["git", "clone", "--quiet", "--bare", str(src), str(dest)],
            capture_output=True,
            check=True,
        )
        return dest

    return _make


@pytest.fixture
def run_git() -> Callable[..., str]:
    return git
