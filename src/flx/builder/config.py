"""
Build configuration: default path layout and `[tool.flx]` manifest loading.

Every default path is a pure function of a single build-output directory so
that a build can be described completely by one `BuildConfig` value.
"""

from pathlib import Path
import tomllib
from typing import Any, Self

from attrs import define, field

from .exceptions import BuildError
from .models import BuildMode, KernelMode, PrecompiledMode, SnapshotMode

DEFAULT_MAIN_PATH = "lib/main.dart"
DEFAULT_MANIFEST_PATH = "pyproject.toml"
DEFAULT_PACKAGES_PATH = ".packages"
DEFAULT_BUILD_DIR = "build"
DEFAULT_PRIVATE_KEY_PATH = "keys/flx-private.key"
DEFAULT_PUBLIC_KEY_PATH = "keys/flx-public.key"

MODES: dict[str, type] = {
    "kernel": KernelMode,
    "snapshot": SnapshotMode,
    "precompiled": PrecompiledMode,
}


@define(frozen=True, slots=True)
class BuildPaths:
    output_path: Path
    snapshot_path: Path
    depfile_path: Path
    kernel_path: Path
    frontend_depfile_path: Path
    incremental_byte_store_dir: Path
    asset_dir: Path

    @classmethod
    def from_build_dir(cls, build_dir: Path | str, **overrides: Path | None) -> Self:
        build_dir = Path(build_dir)
        defaults = {
            "output_path": build_dir / "app.flx",
            "snapshot_path": build_dir / "snapshot_blob.bin",
            "depfile_path": build_dir / "snapshot_blob.bin.d",
            "kernel_path": build_dir / "app.dill",
            "frontend_depfile_path": build_dir / "frontend_server.d",
            "incremental_byte_store_dir": build_dir / "incremental_compiler_bytestore",
            "asset_dir": build_dir / "flutter_assets",
        }
        for name, value in overrides.items():
            if name not in defaults:
                raise TypeError(f"Unknown build path: {name}")
            if value is not None:
                defaults[name] = Path(value)
        return cls(**defaults)

    @property
    def fingerprint_path(self) -> Path:
        return Path(f"{self.depfile_path}.fingerprint")


@define(frozen=True, slots=True)
class BuildConfig:
    paths: BuildPaths
    mode: BuildMode = field(factory=KernelMode)
    main_path: str = DEFAULT_MAIN_PATH
    working_dir: Path | None = None
    packages_path: Path = field(default=Path(DEFAULT_PACKAGES_PATH), converter=Path)
    private_key_path: Path | None = None

    @property
    def asset_working_dir(self) -> Path:
        return self.working_dir if self.working_dir is not None else self.paths.asset_dir


def mode_from_config(name: str, conf: dict[str, Any]) -> BuildMode:
    """Builds the tagged build mode named by `name` from its manifest options."""
    if name not in MODES:
        raise BuildError(
            f"Unknown build mode '{name}'. Expected one of: {', '.join(sorted(MODES))}."
        )
    if name == "kernel":
        return KernelMode(
            track_widget_creation=bool(conf.get("track_widget_creation", False)),
            file_system_roots=tuple(conf.get("file_system_roots", ())),
            file_system_scheme=conf.get("file_system_scheme"),
        )
    if name == "precompiled":
        snapshot = conf.get("snapshot_path")
        dylib = conf.get("native_library_path")
        return PrecompiledMode(
            snapshot_path=Path(snapshot) if snapshot else None,
            native_library_path=Path(dylib) if dylib else None,
        )
    return SnapshotMode()


def load_manifest_config(pyproject_path: Path) -> dict[str, Any]:
    """Returns the `[tool.flx]` table of a pyproject.toml manifest."""
    with pyproject_path.open("rb") as f:
        pyproject_data = tomllib.load(f)

    flx_conf = pyproject_data.get("tool", {}).get("flx", {})
    if not flx_conf:
        raise BuildError("A [tool.flx] section was not found in pyproject.toml.")
    return flx_conf
