"""Typed configuration loading and access.

A pipeline is driven by a *profile*: where the package lives in the source
tree, which metadata file carries the version, the build matrix, which
prebuilt artifacts each target needs and where the result is published.

Built-in profiles live in ``ship.core.defaults``; ``ship.toml`` can override
any key of a built-in profile or declare new ones:

    [pipeline]
    jobs = 4

    [profiles.python]
    package_dir = "bindings/python"
    default_channel = "testpypi"
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Literal, cast

from .result import Err, Ok, Result
from .structured import (
    StrDict,
    as_str_dict,
    get_int,
    get_list,
    get_str,
    get_str_list,
    get_table,
)

__all__ = [
    "ChannelSpec",
    "Config",
    "ConfigError",
    "ImportSpec",
    "InputSpec",
    "MatrixEntry",
    "PackagerKind",
    "PipelineSettings",
    "Profile",
    "PublisherKind",
    "RenameSpec",
    "VersionStyleName",
    "load_config",
    "load_config_or_default",
    "DEFAULT_JOBS",
    "DEFAULT_STORE_DIR",
    "DEFAULT_WORK_DIR",
    "DEFAULT_OUTPUT_DIR",
]

PackagerKind = Literal["wheel", "bundle"]
PublisherKind = Literal["index", "git-tag"]
VersionStyleName = Literal["setup-py", "pubspec"]

_PACKAGER_KINDS: tuple[PackagerKind, ...] = ("wheel", "bundle")
_PUBLISHER_KINDS: tuple[PublisherKind, ...] = ("index", "git-tag")
_VERSION_STYLES: tuple[VersionStyleName, ...] = ("setup-py", "pubspec")

DEFAULT_JOBS = 4
DEFAULT_STORE_DIR = ".ship/artifacts"
DEFAULT_WORK_DIR = ".ship/work"
DEFAULT_OUTPUT_DIR = ".ship/dist"


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None

    def pretty(self) -> str:
        if self.path is not None:
            return f"{self.message} ({self.path})"
        return self.message


@dataclass(frozen=True, slots=True)
class InputSpec:
    """A prebuilt artifact a target needs, and where it lands in the workdir.

    Both fields may reference ``{arch}``, ``{os}``, ``{runtime}``.
    """

    name: str
    dest: str


@dataclass(frozen=True, slots=True)
class ImportSpec:
    """Copy ``source`` (relative to the source checkout) to ``dest``.

    An existing ``dest`` is replaced, not merged.
    """

    source: str
    dest: str


@dataclass(frozen=True, slots=True)
class RenameSpec:
    source: str
    dest: str


@dataclass(frozen=True, slots=True)
class MatrixEntry:
    """One row of the build matrix: ``archs x runtimes`` targets."""

    os: str
    platform_tag: str  # may reference {arch}
    archs: tuple[str, ...]
    runtimes: tuple[str, ...]
    inputs: tuple[InputSpec, ...] = ()


@dataclass(frozen=True, slots=True)
class ChannelSpec:
    """A publish destination.

    For index publishers ``url`` is the upload endpoint and ``json_api`` the
    read API used to detect an already published version. For git-tag
    publishers ``url`` is the downstream repository.
    """

    name: str
    url: str
    json_api: str | None = None
    project_url: str | None = None


@dataclass(frozen=True, slots=True)
class Profile:
    name: str
    packager: PackagerKind
    publisher: PublisherKind
    metadata: str
    version_style: VersionStyleName
    artifact_name: str
    target_name: str
    matrix: tuple[MatrixEntry, ...]
    channels: tuple[ChannelSpec, ...]
    default_channel: str
    package_dir: str = ""
    downstream: str | None = None
    imports: tuple[ImportSpec, ...] = ()
    renames: tuple[RenameSpec, ...] = ()
    clean: tuple[str, ...] = ()
    tag_prefix: str = ""
    package_label: str = ""

    def channel(self, name: str | None = None) -> ChannelSpec | None:
        wanted = name or self.default_channel
        for ch in self.channels:
            if ch.name == wanted:
                return ch
        return None

    @property
    def channel_names(self) -> tuple[str, ...]:
        return tuple(ch.name for ch in self.channels)


@dataclass(frozen=True, slots=True)
class PipelineSettings:
    jobs: int = DEFAULT_JOBS
    store_dir: str = DEFAULT_STORE_DIR
    work_dir: str = DEFAULT_WORK_DIR
    output_dir: str = DEFAULT_OUTPUT_DIR


def _default_profiles() -> dict[str, Profile]:
    from .defaults import builtin_profiles

    return builtin_profiles()


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    pipeline: PipelineSettings = field(default_factory=PipelineSettings)
    profiles: Mapping[str, Profile] = field(default_factory=_default_profiles)

    def profile(self, name: str) -> Profile | None:
        return self.profiles.get(name)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from parsed TOML, layering over the built-in profiles.

        Raises:
            ValueError: On a structurally invalid profile or pipeline table.
        """
        pipeline_tbl: StrDict = get_table(data, "pipeline") or {}
        jobs = get_int(pipeline_tbl, "jobs")
        if jobs is not None and jobs < 1:
            raise ValueError(f"pipeline.jobs must be >= 1 (got {jobs})")

        pipeline = PipelineSettings(
            jobs=jobs or DEFAULT_JOBS,
            store_dir=get_str(pipeline_tbl, "store") or DEFAULT_STORE_DIR,
            work_dir=get_str(pipeline_tbl, "workdir") or DEFAULT_WORK_DIR,
            output_dir=get_str(pipeline_tbl, "output") or DEFAULT_OUTPUT_DIR,
        )

        profiles = dict(_default_profiles())
        profiles_tbl: StrDict = get_table(data, "profiles") or {}
        for name, raw in profiles_tbl.items():
            tbl = as_str_dict(raw)
            if tbl is None:
                raise ValueError(f"profiles.{name} must be a table")
            profiles[name] = _parse_profile(name, tbl, base=profiles.get(name))

        return cls(pipeline=pipeline, profiles=profiles)


def _choice[T: str](value: str | None, allowed: tuple[T, ...], what: str) -> T | None:
    if value is None:
        return None
    if value not in allowed:
        raise ValueError(f"{what} must be one of {', '.join(allowed)} (got {value!r})")
    return cast(T, value)


def _parse_pairs[T](
    tbl: Mapping[str, object],
    key: str,
    *,
    left: str,
    right: str,
    make: Callable[[str, str], T],
) -> tuple[T, ...] | None:
    items = get_list(tbl, key)
    if items is None:
        return None
    out: list[T] = []
    for item in items:
        d = as_str_dict(item)
        if d is None:
            raise ValueError(f"{key} entries must be tables")
        a = get_str(d, left)
        b = get_str(d, right)
        if a is None or b is None:
            raise ValueError(f"{key} entries need '{left}' and '{right}'")
        out.append(make(a, b))
    return tuple(out)


def _parse_matrix(tbl: Mapping[str, object]) -> tuple[MatrixEntry, ...] | None:
    items = get_list(tbl, "matrix")
    if items is None:
        return None
    out: list[MatrixEntry] = []
    for item in items:
        d = as_str_dict(item)
        if d is None:
            raise ValueError("matrix entries must be tables")
        os_name = get_str(d, "os")
        tag = get_str(d, "platform_tag")
        if os_name is None or tag is None:
            raise ValueError("matrix entries need 'os' and 'platform_tag'")
        archs = get_str_list(d, "arch")
        runtimes = get_str_list(d, "runtime")
        if not archs or not runtimes:
            raise ValueError(f"matrix entry {os_name}: 'arch' and 'runtime' must be non-empty")
        inputs = _parse_pairs(d, "inputs", left="name", right="dest", make=InputSpec) or ()
        out.append(
            MatrixEntry(
                os=os_name,
                platform_tag=tag,
                archs=tuple(archs),
                runtimes=tuple(runtimes),
                inputs=inputs,
            )
        )
    return tuple(out)


def _parse_channels(tbl: Mapping[str, object]) -> tuple[ChannelSpec, ...] | None:
    channels_tbl = get_table(tbl, "channels")
    if channels_tbl is None:
        return None
    out: list[ChannelSpec] = []
    for name, raw in channels_tbl.items():
        d = as_str_dict(raw)
        if d is None:
            raise ValueError(f"channels.{name} must be a table")
        url = get_str(d, "url")
        if url is None:
            raise ValueError(f"channels.{name} needs 'url'")
        out.append(
            ChannelSpec(
                name=name,
                url=url,
                json_api=get_str(d, "json_api"),
                project_url=get_str(d, "project_url"),
            )
        )
    return tuple(out)


def _parse_profile(name: str, tbl: StrDict, *, base: Profile | None) -> Profile:
    packager = _choice(get_str(tbl, "packager"), _PACKAGER_KINDS, f"profiles.{name}.packager")
    publisher = _choice(get_str(tbl, "publisher"), _PUBLISHER_KINDS, f"profiles.{name}.publisher")
    style = _choice(
        get_str(tbl, "version_style"), _VERSION_STYLES, f"profiles.{name}.version_style"
    )
    metadata = get_str(tbl, "metadata")
    artifact_name = get_str(tbl, "artifact_name")
    target_name = get_str(tbl, "target_name")
    matrix = _parse_matrix(tbl)
    channels = _parse_channels(tbl)
    default_channel = get_str(tbl, "default_channel")
    imports = _parse_pairs(tbl, "imports", left="source", right="dest", make=ImportSpec)
    renames = _parse_pairs(tbl, "renames", left="source", right="dest", make=RenameSpec)
    clean = get_str_list(tbl, "clean")

    if base is None:
        missing = [
            key
            for key, value in (
                ("packager", packager),
                ("publisher", publisher),
                ("metadata", metadata),
                ("version_style", style),
                ("artifact_name", artifact_name),
                ("target_name", target_name),
                ("matrix", matrix),
                ("channels", channels),
            )
            if value is None
        ]
        if missing:
            raise ValueError(f"profiles.{name} is missing: {', '.join(missing)}")
        assert packager and publisher and metadata and style and artifact_name and target_name
        assert matrix is not None and channels is not None
        base = Profile(
            name=name,
            packager=packager,
            publisher=publisher,
            metadata=metadata,
            version_style=style,
            artifact_name=artifact_name,
            target_name=target_name,
            matrix=matrix,
            channels=channels,
            default_channel=default_channel or (channels[0].name if channels else ""),
        )

    profile = replace(
        base,
        name=name,
        packager=packager or base.packager,
        publisher=publisher or base.publisher,
        metadata=metadata or base.metadata,
        version_style=style or base.version_style,
        artifact_name=artifact_name or base.artifact_name,
        target_name=target_name or base.target_name,
        matrix=matrix if matrix is not None else base.matrix,
        channels=channels if channels is not None else base.channels,
        default_channel=default_channel or base.default_channel,
        package_dir=get_str(tbl, "package_dir") or base.package_dir,
        downstream=get_str(tbl, "downstream") or base.downstream,
        imports=imports if imports is not None else base.imports,
        renames=renames if renames is not None else base.renames,
        clean=tuple(clean) if clean is not None else base.clean,
        tag_prefix=get_str(tbl, "tag_prefix") or base.tag_prefix,
        package_label=get_str(tbl, "package_label") or base.package_label,
    )

    if profile.channel() is None:
        raise ValueError(
            f"profiles.{name}.default_channel '{profile.default_channel}' is not a declared channel"
        )
    if profile.packager == "bundle" and profile.downstream is None:
        raise ValueError(f"profiles.{name}: bundle packager needs 'downstream'")
    return profile


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    import tomllib

    try:
        data_obj: object = tomllib.loads(path.read_bytes().decode("utf-8"))
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ConfigError("Config root must be a TOML table", path=path))
    return Ok(data)


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse ``ship.toml``.

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))


def load_config_or_default(path: Path) -> Result[Config, ConfigError]:
    """Like ``load_config`` but a missing file yields the built-in config."""
    if not path.exists():
        return Ok(Config())
    return load_config(path)
