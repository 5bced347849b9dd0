"""Tests for default path layout and manifest configuration."""

from pathlib import Path

import pytest

from flx.builder.config import BuildConfig, BuildPaths, load_manifest_config, mode_from_config
from flx.builder.exceptions import BuildError
from flx.builder.models import KernelMode, PrecompiledMode, SnapshotMode


def test_default_paths_derive_from_build_dir() -> None:
    paths = BuildPaths.from_build_dir("out")
    assert paths.output_path == Path("out/app.flx")
    assert paths.snapshot_path == Path("out/snapshot_blob.bin")
    assert paths.depfile_path == Path("out/snapshot_blob.bin.d")
    assert paths.kernel_path == Path("out/app.dill")
    assert paths.frontend_depfile_path == Path("out/frontend_server.d")
    assert paths.fingerprint_path == Path("out/snapshot_blob.bin.d.fingerprint")
    assert paths.asset_dir == Path("out/flutter_assets")


def test_paths_accept_overrides() -> None:
    paths = BuildPaths.from_build_dir("out", output_path=Path("dist/my.flx"), kernel_path=None)
    assert paths.output_path == Path("dist/my.flx")
    assert paths.kernel_path == Path("out/app.dill")
    with pytest.raises(TypeError, match="Unknown build path"):
        BuildPaths.from_build_dir("out", bogus=Path("x"))


def test_build_config_defaults() -> None:
    config = BuildConfig(paths=BuildPaths.from_build_dir("out"))
    assert config.main_path == "lib/main.dart"
    assert config.mode == KernelMode()
    assert config.asset_working_dir == Path("out/flutter_assets")
    assert BuildConfig(paths=config.paths, working_dir=Path("stage")).asset_working_dir == Path(
        "stage"
    )


def test_mode_from_config() -> None:
    kernel = mode_from_config(
        "kernel", {"track_widget_creation": True, "file_system_roots": ["/r"]}
    )
    assert kernel == KernelMode(track_widget_creation=True, file_system_roots=("/r",))
    assert mode_from_config("snapshot", {}) == SnapshotMode()
    assert mode_from_config("precompiled", {"native_library_path": "aot/libapp.so"}) == (
        PrecompiledMode(native_library_path=Path("aot/libapp.so"))
    )
    with pytest.raises(BuildError, match="Unknown build mode 'jit'"):
        mode_from_config("jit", {})


def test_load_manifest_config(tmp_path: Path) -> None:
    manifest = tmp_path / "pyproject.toml"
    manifest.write_text('[tool.flx]\nmain = "lib/app.dart"\n')
    assert load_manifest_config(manifest) == {"main": "lib/app.dart"}

    manifest.write_text("[project]\nname = 'app'\n")
    with pytest.raises(BuildError, match=r"A \[tool.flx\] section was not found"):
        load_manifest_config(manifest)
