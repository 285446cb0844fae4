"""Construction of the packager and publisher a profile asks for."""

from __future__ import annotations

from pathlib import Path

from ship.core.config import Profile
from ship.core.result import Err, Ok, Result
from ship.git.repository import repository_url
from ship.output.console import ConsoleProtocol
from ship.pipeline.credentials import Credentials
from ship.pipeline.errors import RequestError
from ship.pipeline.packager import BundlePackager, Packager, WheelPackager
from ship.pipeline.publisher import GitTagPublisher, IndexPublisher, Publisher
from ship.pipeline.store import ArtifactStore
from ship.platform.http import HttpClient


def _downstream_url(profile: Profile, *, cwd: Path) -> Result[str, RequestError]:
    if not profile.downstream:
        return Err(RequestError(message=f"profile {profile.name} has no downstream repository"))
    return Ok(repository_url(profile.downstream, cwd=cwd))


def make_packager(
    profile: Profile,
    *,
    store: ArtifactStore,
    console: ConsoleProtocol,
    credentials: Credentials,
    cwd: Path,
) -> Result[Packager, RequestError]:
    match profile.packager:
        case "wheel":
            return Ok(WheelPackager(profile, store=store, console=console))
        case "bundle":
            url = _downstream_url(profile, cwd=cwd)
            if isinstance(url, Err):
                return url
            return Ok(
                BundlePackager(
                    profile,
                    store=store,
                    console=console,
                    downstream_url=url.value,
                    git_env=credentials.git_env(),
                )
            )


def make_publisher(
    profile: Profile,
    *,
    console: ConsoleProtocol,
    credentials: Credentials,
    http: HttpClient,
    cwd: Path,
    channel: str | None = None,
) -> Result[Publisher, RequestError]:
    spec = profile.channel(channel)
    if spec is None:
        known = ", ".join(profile.channel_names) or "none"
        return Err(
            RequestError(
                message=f"unknown channel for profile {profile.name}: {channel}",
                hint=f"available: {known}",
            )
        )

    match profile.publisher:
        case "index":
            return Ok(IndexPublisher(spec, credentials=credentials, http=http, console=console))
        case "git-tag":
            # The channel names the repository the release tag is pushed to.
            return Ok(
                GitTagPublisher(
                    profile,
                    downstream_url=repository_url(spec.url, cwd=cwd),
                    credentials=credentials,
                    console=console,
                )
            )
