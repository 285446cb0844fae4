"""Built-in release profiles.

``python`` builds one wheel per (platform, interpreter) and uploads them to a
package index; ``flutter`` assembles a single package inside the downstream
packaging repository and tags a release there.
"""

from __future__ import annotations

from .config import ChannelSpec, ImportSpec, InputSpec, MatrixEntry, Profile, RenameSpec

PYTHON_RUNTIMES = ("3.8", "3.9", "3.10", "3.11", "3.12")

_BINDINGS_DIR = "src/breez_sdk"

PYPI = ChannelSpec(
    name="pypi",
    url="https://upload.pypi.org/legacy/",
    json_api="https://pypi.org/pypi",
    project_url="https://pypi.org/project",
)
TEST_PYPI = ChannelSpec(
    name="testpypi",
    url="https://test.pypi.org/legacy/",
    json_api="https://test.pypi.org/pypi",
    project_url="https://test.pypi.org/project",
)

FLUTTER_DOWNSTREAM = "breez/breez-sdk-flutter"


def python_profile() -> Profile:
    return Profile(
        name="python",
        packager="wheel",
        publisher="index",
        package_dir="libs/sdk-bindings/bindings-python",
        metadata="libs/sdk-bindings/bindings-python/setup.py",
        version_style="setup-py",
        target_name="{os}-{arch}-py{runtime}",
        artifact_name="python-wheel-{runtime}-{platform_tag}",
        matrix=(
            MatrixEntry(
                os="macos",
                platform_tag="macosx_11_0_universal2",
                archs=("universal2",),
                runtimes=PYTHON_RUNTIMES,
                inputs=(
                    InputSpec(name="sdk-bindings-darwin-universal", dest=_BINDINGS_DIR),
                    InputSpec(name="bindings-python", dest=_BINDINGS_DIR),
                ),
            ),
            MatrixEntry(
                os="linux",
                platform_tag="manylinux_2_31_{arch}",
                archs=("x86_64", "aarch64"),
                runtimes=PYTHON_RUNTIMES,
                inputs=(
                    InputSpec(name="sdk-bindings-{arch}-unknown-linux-gnu", dest=_BINDINGS_DIR),
                    InputSpec(name="bindings-python", dest=_BINDINGS_DIR),
                ),
            ),
        ),
        # Static archives ship next to the shared library; wheels only need the latter.
        clean=(f"{_BINDINGS_DIR}/*.a",),
        channels=(PYPI, TEST_PYPI),
        default_channel="pypi",
        package_label="Breez SDK Python bindings",
    )


def flutter_profile() -> Profile:
    return Profile(
        name="flutter",
        packager="bundle",
        publisher="git-tag",
        downstream=FLUTTER_DOWNSTREAM,
        metadata="libs/sdk-flutter/pubspec.yaml",
        version_style="pubspec",
        target_name="flutter-{runtime}",
        artifact_name="breez-sdk-flutter-{version}",
        matrix=(
            MatrixEntry(
                os="any",
                platform_tag="any",
                archs=("any",),
                runtimes=("stable",),
                inputs=(
                    InputSpec(
                        name="sdk-bindings-android-jniLibs", dest="android/src/main/jniLibs"
                    ),
                    InputSpec(name="bindings-swift", dest="ios/bindings-swift/Sources/BreezSDK"),
                    InputSpec(name="bindings-kotlin", dest="android/src/main/kotlin/breez_sdk"),
                ),
            ),
        ),
        imports=(
            ImportSpec(source="libs/sdk-flutter/ios", dest="ios"),
            ImportSpec(source="libs/sdk-flutter/android", dest="android"),
            ImportSpec(source="libs/sdk-flutter/lib", dest="lib"),
            ImportSpec(source="libs/sdk-flutter/pubspec.yaml", dest="pubspec.yaml"),
            ImportSpec(source="libs/sdk-flutter/pubspec.lock", dest="pubspec.lock"),
        ),
        clean=("ios/breez_sdk.podspec.dev",),
        renames=(
            RenameSpec(source="ios/breez_sdk.podspec.production", dest="ios/breez_sdk.podspec"),
        ),
        channels=(ChannelSpec(name="origin", url=FLUTTER_DOWNSTREAM),),
        default_channel="origin",
        tag_prefix="v",
        package_label="Breez SDK Flutter package",
    )


def builtin_profiles() -> dict[str, Profile]:
    return {p.name: p for p in (python_profile(), flutter_profile())}
