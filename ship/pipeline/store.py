"""Name-keyed artifact store.

Hands artifacts from the jobs that produce them to the jobs that consume
them (prebuilt bindings into packaging branches, packaged outputs into the
publisher). Layout:

    <root>/<name>/<relative files...>
    <root>/<name>/.sha256        "<sha256>  <relative path>" per file

An artifact is immutable once stored: putting the same content again is a
no-op, putting different content under an existing name is an error.
"""

from __future__ import annotations

import hashlib
import os
import re
import shutil
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from ship.core.result import Err, Ok, Result
from ship.pipeline.errors import FetchError
from ship.pipeline.model import Artifact

__all__ = ["ArtifactStore", "StoredArtifact"]

_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
_MANIFEST = ".sha256"


@dataclass(frozen=True, slots=True)
class StoredArtifact:
    name: str
    files: tuple[tuple[str, str], ...]  # (relative path, sha256), sorted by path

    @property
    def digest(self) -> str:
        h = hashlib.sha256()
        for rel, sha in self.files:
            h.update(f"{sha}  {rel}\n".encode())
        return h.hexdigest()

    def manifest_text(self) -> str:
        return "".join(f"{sha}  {rel}\n" for rel, sha in self.files)


def _sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def _valid_rel(rel: str) -> bool:
    p = PurePosixPath(rel)
    return bool(rel) and not p.is_absolute() and ".." not in p.parts and p.name != _MANIFEST


def _store_error(message: str, hint: str | None = None) -> Err[FetchError]:
    return Err(FetchError(kind="store_failed", message=message, hint=hint))


class ArtifactStore:
    """Directory-backed artifact store, safe for concurrent writers."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def path_for(self, name: str) -> Path:
        return self.root / name

    def has(self, name: str) -> bool:
        return (self.path_for(name) / _MANIFEST).is_file()

    def names(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(p.name for p in self.root.iterdir() if (p / _MANIFEST).is_file())

    def read(self, name: str) -> Result[StoredArtifact, FetchError]:
        manifest = self.path_for(name) / _MANIFEST
        if not manifest.is_file():
            known = ", ".join(self.names()) or "none"
            return Err(
                FetchError(
                    kind="artifact_missing",
                    message=f"artifact not found: {name}",
                    hint=f"available: {known}",
                )
            )

        files: list[tuple[str, str]] = []
        for line in manifest.read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            sha, sep, rel = line.partition("  ")
            if not sep or not _valid_rel(rel):
                return _store_error(f"corrupt manifest for artifact {name}", str(manifest))
            files.append((rel, sha))
        return Ok(StoredArtifact(name=name, files=tuple(sorted(files))))

    def put(self, name: str, files: Mapping[str, bytes]) -> Result[StoredArtifact, FetchError]:
        if not _NAME_RE.match(name):
            return _store_error(f"invalid artifact name: {name!r}")
        if not files:
            return _store_error(f"artifact {name} has no files")
        for rel in files:
            if not _valid_rel(rel):
                return _store_error(f"invalid file path in artifact {name}: {rel!r}")

        stored = StoredArtifact(
            name=name,
            files=tuple(sorted((rel, _sha256_bytes(data)) for rel, data in files.items())),
        )

        if self.has(name):
            return self._same_or_conflict(stored)

        self.root.mkdir(parents=True, exist_ok=True)
        staging = self.root / f".staging-{name}-{uuid.uuid4().hex}"
        try:
            for rel, data in files.items():
                dest = staging / rel
                dest.parent.mkdir(parents=True, exist_ok=True)
                dest.write_bytes(data)
            (staging / _MANIFEST).write_text(stored.manifest_text(), encoding="utf-8")
            os.rename(staging, self.path_for(name))
        except OSError as e:
            shutil.rmtree(staging, ignore_errors=True)
            # Lost a race against a concurrent put of the same name.
            if self.has(name):
                return self._same_or_conflict(stored)
            return _store_error(f"failed to store artifact {name}", str(e))

        return Ok(stored)

    def put_artifact(self, artifact: Artifact) -> Result[StoredArtifact, FetchError]:
        return self.put(artifact.name, {artifact.filename: artifact.payload})

    def put_paths(self, name: str, paths: list[Path]) -> Result[StoredArtifact, FetchError]:
        """Store files from disk; directories contribute their contents recursively."""
        files: dict[str, bytes] = {}
        try:
            for p in paths:
                if p.is_dir():
                    for child in sorted(p.rglob("*")):
                        if child.is_file():
                            files[child.relative_to(p).as_posix()] = child.read_bytes()
                elif p.is_file():
                    files[p.name] = p.read_bytes()
                else:
                    return _store_error(f"no such file: {p}")
        except OSError as e:
            return _store_error(f"failed to read files for artifact {name}", str(e))
        return self.put(name, files)

    def get(self, name: str, dest: Path) -> Result[list[Path], FetchError]:
        """Copy an artifact's files into ``dest``, verifying their checksums.

        Existing files in ``dest`` with the same relative path are overwritten.
        """
        stored = self.read(name)
        if isinstance(stored, Err):
            return stored

        src_root = self.path_for(name)
        out: list[Path] = []
        try:
            for rel, sha in stored.value.files:
                src = src_root / rel
                if _sha256_file(src) != sha:
                    return _store_error(f"checksum mismatch in artifact {name}: {rel}")
                target = dest / rel
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(src, target)
                out.append(target)
        except OSError as e:
            return _store_error(f"failed to retrieve artifact {name}", str(e))
        return Ok(out)

    def _same_or_conflict(self, stored: StoredArtifact) -> Result[StoredArtifact, FetchError]:
        existing = self.read(stored.name)
        if isinstance(existing, Err):
            return existing
        if existing.value.digest == stored.digest:
            return existing
        return _store_error(
            f"artifact {stored.name} already exists with different content",
            "artifacts are immutable; use a new name or clear the store",
        )
