"""Per-target packaging.

A packager turns the (already stamped) source checkout into one artifact for
one build target. Every call works in its own ``workdir`` and never writes to
the source checkout, so branches can run concurrently.
"""

from __future__ import annotations

import io
import os
import shutil
import stat
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Protocol
from zipfile import ZIP_DEFLATED, ZipFile, ZipInfo

from ship.core.config import Profile
from ship.core.result import Err, Ok, Result
from ship.git.repository import Repository
from ship.output.console import ConsoleProtocol, Style
from ship.pipeline.errors import FetchError, PackageBuildError
from ship.pipeline.fetcher import fetch_inputs, remove_matching
from ship.pipeline.model import Artifact, BuildTarget
from ship.pipeline.store import ArtifactStore
from ship.pipeline.timeouts import WHEEL_BUILD_TIMEOUT_SECONDS
from ship.pipeline.version import PackageVersion
from ship.platform.process import format_command
from ship.platform.process import run as run_process

__all__ = [
    "BranchError",
    "BundlePackager",
    "Packager",
    "WheelPackager",
    "zip_tree",
    "REPRODUCIBLE_EPOCH",
]

BranchError = FetchError | PackageBuildError

# 1980-01-01, the earliest timestamp a ZIP entry can carry.
REPRODUCIBLE_EPOCH = 315532800
_ZIP_DATE_TIME = (1980, 1, 1, 0, 0, 0)

_WHEEL_IGNORE = shutil.ignore_patterns("build", "dist", "*.egg-info", "__pycache__")


class Packager(Protocol):
    def package(
        self,
        *,
        source_root: Path,
        target: BuildTarget,
        version: PackageVersion,
        artifact_name: str,
        workdir: Path,
    ) -> Result[Artifact, BranchError]: ...


def _fresh_dir(path: Path) -> None:
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True)


def _tail(text: str, lines: int = 5) -> str | None:
    kept = [ln for ln in text.strip().splitlines() if ln.strip()][-lines:]
    return "\n".join(kept) or None


def zip_tree(root: Path, *, exclude_dirs: frozenset[str] = frozenset({".git"})) -> bytes:
    """Zip ``root`` deterministically: sorted entries, fixed timestamps, modes kept."""
    files = sorted(
        p
        for p in root.rglob("*")
        if p.is_file() and not exclude_dirs.intersection(p.relative_to(root).parts)
    )
    buf = io.BytesIO()
    with ZipFile(buf, "w", compression=ZIP_DEFLATED) as zf:
        for p in files:
            info = ZipInfo(p.relative_to(root).as_posix(), date_time=_ZIP_DATE_TIME)
            info.compress_type = ZIP_DEFLATED
            mode = stat.S_IMODE(p.stat().st_mode)
            info.external_attr = (stat.S_IFREG | mode) << 16
            zf.writestr(info, p.read_bytes())
    return buf.getvalue()


def _place(src: Path, dest: Path) -> None:
    """Copy a file or directory to ``dest``, replacing whatever is there."""
    if dest.is_dir() and not dest.is_symlink():
        shutil.rmtree(dest)
    elif dest.exists() or dest.is_symlink():
        dest.unlink()
    dest.parent.mkdir(parents=True, exist_ok=True)
    if src.is_dir():
        shutil.copytree(src, dest)
    else:
        shutil.copy2(src, dest)


class WheelPackager:
    """Builds a platform wheel with ``setup.py bdist_wheel --plat-name``."""

    def __init__(
        self,
        profile: Profile,
        *,
        store: ArtifactStore,
        console: ConsoleProtocol,
        find_executable: Callable[[str], str | None] = shutil.which,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._profile = profile
        self._store = store
        self._console = console
        self._which = find_executable
        self._env = dict(env) if env is not None else dict(os.environ)

    def interpreter_for(self, target: BuildTarget) -> str:
        return f"python{target.runtime_version}"

    def package(
        self,
        *,
        source_root: Path,
        target: BuildTarget,
        version: PackageVersion,
        artifact_name: str,
        workdir: Path,
    ) -> Result[Artifact, BranchError]:
        pkg_src = source_root / self._profile.package_dir
        if not (pkg_src / "setup.py").is_file():
            return Err(
                PackageBuildError(
                    target=target.name,
                    kind="layout_failed",
                    message=f"setup.py not found in {pkg_src}",
                )
            )

        _fresh_dir(workdir)
        pkg = workdir / "pkg"
        dist = workdir / "dist"
        shutil.copytree(pkg_src, pkg, ignore=_WHEEL_IGNORE)

        fetched = fetch_inputs(self._store, target.inputs, pkg)
        if isinstance(fetched, Err):
            return fetched
        for removed in remove_matching(pkg, self._profile.clean):
            self._console.print(f"[{target.name}] removed {removed.relative_to(pkg)}", Style.DIM)

        interpreter = self.interpreter_for(target)
        python = self._which(interpreter)
        if python is None:
            return Err(
                PackageBuildError(
                    target=target.name,
                    kind="toolchain_missing",
                    message=f"{interpreter}: missing",
                    hint=f"install Python {target.runtime_version} with setuptools and wheel",
                )
            )

        cmd = [
            python,
            "setup.py",
            "bdist_wheel",
            "--plat-name",
            target.platform_tag,
            "--dist-dir",
            str(dist),
        ]
        env = dict(self._env)
        env["SOURCE_DATE_EPOCH"] = str(REPRODUCIBLE_EPOCH)
        self._console.print(f"[{target.name}] {format_command(cmd)}", Style.DIM)
        result = run_process(cmd, cwd=pkg, env=env, timeout=WHEEL_BUILD_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            e = result.error
            return Err(
                PackageBuildError(
                    target=target.name,
                    kind="tool_failed",
                    message="bdist_wheel failed",
                    returncode=e.returncode,
                    hint=_tail(e.stderr) or _tail(e.stdout),
                )
            )

        wheels = sorted(dist.glob("*.whl"))
        if len(wheels) != 1:
            return Err(
                PackageBuildError(
                    target=target.name,
                    kind="output_missing",
                    message=f"expected exactly one wheel in {dist}, found {len(wheels)}",
                )
            )

        wheel = wheels[0]
        return Ok(
            Artifact(
                name=artifact_name,
                filename=wheel.name,
                payload=wheel.read_bytes(),
                origin_target=target,
            )
        )


class BundlePackager:
    """Assembles a package inside a checkout of the downstream packaging repo.

    The downstream repository keeps everything the profile does not import
    (README, CI files, history); imported paths replace their counterparts.
    """

    def __init__(
        self,
        profile: Profile,
        *,
        store: ArtifactStore,
        console: ConsoleProtocol,
        downstream_url: str,
        git_env: Mapping[str, str] | None = None,
    ) -> None:
        self._profile = profile
        self._store = store
        self._console = console
        self._downstream_url = downstream_url
        self._git_env = git_env

    def package(
        self,
        *,
        source_root: Path,
        target: BuildTarget,
        version: PackageVersion,
        artifact_name: str,
        workdir: Path,
    ) -> Result[Artifact, BranchError]:
        _fresh_dir(workdir)
        bundle = workdir / "bundle"

        self._console.print(f"[{target.name}] git clone {self._downstream_url}", Style.DIM)
        repo = Repository.clone(self._downstream_url, bundle, env=self._git_env)
        if isinstance(repo, Err):
            return Err(
                FetchError(
                    kind="clone_failed",
                    message=f"failed to clone {self._downstream_url}",
                    hint=repo.error.message,
                )
            )

        for imp in self._profile.imports:
            src = source_root / imp.source
            if not src.exists():
                return Err(
                    PackageBuildError(
                        target=target.name,
                        kind="layout_failed",
                        message=f"import source missing: {imp.source}",
                    )
                )
            _place(src, bundle / imp.dest)

        fetched = fetch_inputs(self._store, target.inputs, bundle)
        if isinstance(fetched, Err):
            return fetched

        remove_matching(bundle, self._profile.clean)

        for ren in self._profile.renames:
            src = bundle / ren.source
            if not src.exists():
                return Err(
                    PackageBuildError(
                        target=target.name,
                        kind="layout_failed",
                        message=f"cannot rename missing file: {ren.source}",
                    )
                )
            dest = bundle / ren.dest
            dest.parent.mkdir(parents=True, exist_ok=True)
            os.replace(src, dest)

        return Ok(
            Artifact(
                name=artifact_name,
                filename=f"{artifact_name}.zip",
                payload=zip_tree(bundle),
                origin_target=target,
            )
        )
