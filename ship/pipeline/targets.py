"""Build matrix expansion.

Every (arch, runtime) pair of every matrix row becomes one ``BuildTarget``;
templates in the profile are rendered with ``{os}``, ``{arch}``,
``{runtime}``, ``{platform_tag}`` and, for artifact names, ``{version}``.
"""

from __future__ import annotations

from fnmatch import fnmatchcase

from ship.core.config import InputSpec, Profile
from ship.core.result import Err, Ok, Result
from ship.pipeline.errors import RequestError
from ship.pipeline.model import BuildTarget
from ship.pipeline.version import PackageVersion


def _fields(os_name: str, arch: str, runtime: str) -> dict[str, str]:
    return {"os": os_name, "arch": arch, "runtime": runtime}


def _render(template: str, fields: dict[str, str], *, what: str) -> Result[str, RequestError]:
    try:
        return Ok(template.format(**fields))
    except (KeyError, IndexError, ValueError) as e:
        return Err(RequestError(message=f"invalid {what} template {template!r}: {e}"))


def plan_targets(
    profile: Profile,
    *,
    only: str | None = None,
) -> Result[tuple[BuildTarget, ...], RequestError]:
    """Expand the profile's matrix, optionally keeping names matching the ``only`` glob."""
    targets: list[BuildTarget] = []
    seen: set[str] = set()

    for entry in profile.matrix:
        for arch in entry.archs:
            for runtime in entry.runtimes:
                fields = _fields(entry.os, arch, runtime)
                tag = _render(entry.platform_tag, fields, what="platform tag")
                if isinstance(tag, Err):
                    return tag
                fields["platform_tag"] = tag.value

                name = _render(profile.target_name, fields, what="target name")
                if isinstance(name, Err):
                    return name
                if name.value in seen:
                    return Err(
                        RequestError(
                            message=f"duplicate target name: {name.value}",
                            hint="target_name must distinguish every matrix combination",
                        )
                    )
                seen.add(name.value)

                inputs: list[InputSpec] = []
                for spec in entry.inputs:
                    input_name = _render(spec.name, fields, what="input name")
                    if isinstance(input_name, Err):
                        return input_name
                    input_dest = _render(spec.dest, fields, what="input destination")
                    if isinstance(input_dest, Err):
                        return input_dest
                    inputs.append(InputSpec(name=input_name.value, dest=input_dest.value))

                targets.append(
                    BuildTarget(
                        name=name.value,
                        os=entry.os,
                        arch=arch,
                        platform_tag=tag.value,
                        runtime_version=runtime,
                        inputs=tuple(inputs),
                    )
                )

    if only is not None:
        targets = [t for t in targets if fnmatchcase(t.name, only)]
        if not targets:
            return Err(RequestError(message=f"no target matches {only!r}"))

    if not targets:
        return Err(RequestError(message=f"profile {profile.name} has an empty build matrix"))

    return Ok(tuple(targets))


def artifact_name(
    profile: Profile,
    target: BuildTarget,
    version: PackageVersion,
) -> Result[str, RequestError]:
    fields = _fields(target.os, target.arch, target.runtime_version)
    fields["platform_tag"] = target.platform_tag
    fields["version"] = str(version)
    return _render(profile.artifact_name, fields, what="artifact name")


def required_inputs(targets: tuple[BuildTarget, ...]) -> list[str]:
    """Distinct input artifact names across all targets, in first-seen order."""
    names: dict[str, None] = {}
    for t in targets:
        for spec in t.inputs:
            names.setdefault(spec.name)
    return list(names)
