"""Publishing of packaged artifacts.

Publishing is the only step with external side effects. It runs once, after
every packaging branch succeeded, and is never retried automatically: a
failure is reported and the release is re-run by hand.

Publishing the same version twice must fail loudly. Both publishers check the
remote for the version before changing anything and report
``already_published`` if it is there.
"""

from __future__ import annotations

import io
import os
import re
import shutil
import stat
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Protocol
from zipfile import ZipFile

from ship.core.config import ChannelSpec, Profile
from ship.core.result import Err
from ship.git.repository import Repository
from ship.output.console import ConsoleProtocol, Style
from ship.pipeline.credentials import Credentials
from ship.pipeline.errors import PublishError, PublishErrorKind
from ship.pipeline.model import Artifact, PublishOutcome
from ship.pipeline.timeouts import UPLOAD_TIMEOUT_SECONDS
from ship.pipeline.version import PackageVersion
from ship.platform.http import HttpClient
from ship.platform.process import ProcessError, format_command, redact
from ship.platform.process import run as run_process

__all__ = [
    "GitTagPublisher",
    "IndexPublisher",
    "Publisher",
    "publish_artifacts",
    "wheel_project_name",
]

_AUTH_MARKERS = (
    "httperror: 401",
    "httperror: 403",
    "401 unauthorized",
    "403 forbidden",
    "invalid or non-existent authentication",
)
_DUPLICATE_MARKERS = ("file already exists", "already exists")


class Publisher(Protocol):
    def publish(
        self,
        artifacts: Sequence[Artifact],
        *,
        version: PackageVersion,
        workdir: Path,
    ) -> PublishOutcome: ...


def publish_artifacts(
    publisher: Publisher,
    artifacts: Sequence[Artifact],
    *,
    publish: bool,
    version: PackageVersion,
    workdir: Path,
) -> PublishOutcome:
    """Publish, or report a dry run without touching the publisher."""
    if not publish:
        return PublishOutcome.dry_run()
    return publisher.publish(artifacts, version=version, workdir=workdir)


def _fail(kind: PublishErrorKind, message: str, hint: str | None = None) -> PublishOutcome:
    return PublishOutcome.failed(PublishError(kind=kind, message=message, hint=hint))


def _fresh_dir(path: Path) -> None:
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True)


def wheel_project_name(filename: str) -> str:
    """Normalized (PEP 503) project name from a wheel filename."""
    dist = filename.split("-", 1)[0]
    return re.sub(r"[-_.]+", "-", dist).lower()


class IndexPublisher:
    """Uploads wheels to a PyPI-compatible index with twine."""

    def __init__(
        self,
        channel: ChannelSpec,
        *,
        credentials: Credentials,
        http: HttpClient,
        console: ConsoleProtocol,
        twine: Sequence[str] = (sys.executable, "-m", "twine"),
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._channel = channel
        self._credentials = credentials
        self._http = http
        self._console = console
        self._twine = tuple(twine)
        self._env = dict(env) if env is not None else dict(os.environ)

    def version_url(self, project: str, version: PackageVersion) -> str | None:
        if self._channel.json_api is None:
            return None
        return f"{self._channel.json_api.rstrip('/')}/{project}/{version}/json"

    def remote_location(self, project: str, version: PackageVersion) -> str:
        if self._channel.project_url is None:
            return self._channel.url
        return f"{self._channel.project_url.rstrip('/')}/{project}/{version}/"

    def publish(
        self,
        artifacts: Sequence[Artifact],
        *,
        version: PackageVersion,
        workdir: Path,
    ) -> PublishOutcome:
        token = self._credentials.index_token
        if token is None:
            return _fail(
                "credentials_missing",
                f"no API token for {self._channel.name}",
                "set PYPI_API_TOKEN",
            )
        if not artifacts:
            return _fail("rejected", "nothing to publish")

        projects = {wheel_project_name(a.filename) for a in artifacts}
        if len(projects) != 1:
            names = ", ".join(sorted(projects))
            return _fail("rejected", f"artifacts span several projects: {names}")
        project = projects.pop()

        url = self.version_url(project, version)
        if url is not None:
            existing = self._http.get_json(url)
            if not isinstance(existing, Err):
                return _fail(
                    "already_published",
                    f"{project} {version} is already on {self._channel.name}",
                    "bump the package version; published files cannot be replaced",
                )
            if not existing.error.not_found:
                return _fail(
                    "network",
                    f"cannot check {self._channel.name} for {project} {version}",
                    str(existing.error),
                )

        upload_dir = workdir / "upload"
        _fresh_dir(upload_dir)
        files: list[str] = []
        for a in sorted(artifacts, key=lambda a: a.filename):
            path = upload_dir / a.filename
            path.write_bytes(a.payload)
            files.append(str(path))

        cmd = [
            *self._twine,
            "upload",
            "--non-interactive",
            "--disable-progress-bar",
            "--repository-url",
            self._channel.url,
            *files,
        ]
        env = dict(self._env)
        env["TWINE_USERNAME"] = "__token__"
        env["TWINE_PASSWORD"] = token

        self._console.print(format_command(cmd, secrets=self._credentials.secrets), Style.DIM)
        result = run_process(cmd, cwd=workdir, env=env, timeout=UPLOAD_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            return self._upload_failure(result.error)

        return PublishOutcome.published(self.remote_location(project, version))

    def _upload_failure(self, error: ProcessError) -> PublishOutcome:
        text = error.output.lower()
        detail = redact(error.output, self._credentials.secrets) or None
        name = self._channel.name
        if any(m in text for m in _AUTH_MARKERS):
            return _fail("auth_failed", f"{name} rejected the credentials", detail)
        if any(m in text for m in _DUPLICATE_MARKERS):
            return _fail("already_published", f"{name} already has these files", detail)
        return _fail("rejected", f"upload to {name} failed (exit {error.returncode})", detail)


def _extract(payload: bytes, dest: Path) -> None:
    with ZipFile(io.BytesIO(payload)) as zf:
        for info in zf.infolist():
            target = zf.extract(info, dest)
            mode = (info.external_attr >> 16) & 0o777
            if mode:
                os.chmod(target, mode | stat.S_IRUSR)


def _clear_worktree(root: Path) -> None:
    for child in root.iterdir():
        if child.name == ".git":
            continue
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()


class GitTagPublisher:
    """Commits a bundle to the downstream repository and tags the release."""

    def __init__(
        self,
        profile: Profile,
        *,
        downstream_url: str,
        credentials: Credentials,
        console: ConsoleProtocol,
        author_name: str = "github-actions",
        author_email: str = "github-actions@github.com",
    ) -> None:
        self._profile = profile
        self._url = downstream_url
        self._git_env = credentials.git_env()
        self._console = console
        self._author = (author_name, author_email)

    def publish(
        self,
        artifacts: Sequence[Artifact],
        *,
        version: PackageVersion,
        workdir: Path,
    ) -> PublishOutcome:
        if len(artifacts) != 1:
            return _fail("rejected", f"expected one bundle to publish, got {len(artifacts)}")
        bundle = artifacts[0]
        tag = version.to_tag(self._profile.tag_prefix)

        checkout = workdir / "publish"
        if checkout.exists():
            shutil.rmtree(checkout)
        workdir.mkdir(parents=True, exist_ok=True)

        self._console.print(f"git clone {self._url}", Style.DIM)
        cloned = Repository.clone(self._url, checkout, env=self._git_env)
        if isinstance(cloned, Err):
            return _fail("network", f"failed to clone {self._url}", cloned.error.message)
        repo = cloned.value

        exists = repo.remote_tag_exists(tag)
        if isinstance(exists, Err):
            return _fail("network", f"cannot list tags of {self._url}", exists.error.message)
        if exists.value:
            return _fail(
                "already_published",
                f"tag {tag} already exists in {self._url}",
                "bump the package version; release tags are never moved",
            )

        branch = repo.current_branch()
        if branch is None:
            return _fail("rejected", f"{self._url} has no default branch checked out")

        _clear_worktree(checkout)
        _extract(bundle.payload, checkout)

        identity = repo.configure_identity(*self._author)
        if isinstance(identity, Err):
            return _fail("rejected", "git identity setup failed", identity.error.message)

        label = self._profile.package_label or self._profile.name
        if repo.is_clean():
            self._console.warning(f"{self._url} already matches the bundle; tagging only")
        else:
            self._console.print(f"git commit -m 'Update {label} to version {tag}'", Style.DIM)
            committed = repo.commit_all(f"Update {label} to version {tag}")
            if isinstance(committed, Err):
                return _fail("rejected", "git commit failed", committed.error.message)

        tagged = repo.tag(tag, tag)
        if isinstance(tagged, Err):
            return _fail("rejected", f"failed to create tag {tag}", tagged.error.message)

        self._console.print(f"git push --atomic origin HEAD:{branch} refs/tags/{tag}", Style.DIM)
        pushed = repo.push(f"HEAD:refs/heads/{branch}", f"refs/tags/{tag}")
        if isinstance(pushed, Err):
            message = pushed.error.message
            lowered = message.lower()
            if "permission" in lowered or "denied" in lowered or "authentication" in lowered:
                return _fail("auth_failed", f"push to {self._url} was denied", message)
            if "already exists" in lowered:
                return _fail(
                    "already_published", f"tag {tag} already exists in {self._url}", message
                )
            return _fail("rejected", f"push to {self._url} failed", message)

        return PublishOutcome.published(tag)
