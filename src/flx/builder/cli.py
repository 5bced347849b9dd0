"""The `flxbuild` command-line interface."""

import importlib.metadata
import os
from pathlib import Path
import shutil
from typing import Any

import click

from .artifacts import ENGINE_DIR_ENV_VAR, Artifacts
from .compiler import KernelCompiler, Snapshotter
from .config import (
    DEFAULT_BUILD_DIR,
    DEFAULT_MAIN_PATH,
    DEFAULT_MANIFEST_PATH,
    DEFAULT_PACKAGES_PATH,
    DEFAULT_PRIVATE_KEY_PATH,
    DEFAULT_PUBLIC_KEY_PATH,
    MODES,
    BuildConfig,
    BuildPaths,
    load_manifest_config,
    mode_from_config,
)
from .crypto import verify_archive_signature, write_key_pair
from .depfile import write_depfile
from .exceptions import BuildError, SigningError, ToolExit, VerificationError
from .packaging.assets import AssetBundle, CommandAssetBundle, ManifestAssetBundle
from .packaging.orchestrator import BuildOrchestrator
from .packaging.reader import ArchiveReader

try:
    __version__ = importlib.metadata.version("flx-builder")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0-dev"


def _resolve(base: Path, value: str | Path) -> Path:
    path = Path(value)
    return path if path.is_absolute() else base / path


def _make_asset_bundle(flx_conf: dict[str, Any], manifest_dir: Path) -> AssetBundle:
    asset_command = flx_conf.get("asset_command")
    if asset_command:
        return CommandAssetBundle(list(asset_command), cwd=manifest_dir)
    return ManifestAssetBundle(flx_conf.get("assets", []), base_dir=manifest_dir)


@click.group(context_settings=dict(help_option_names=["-h", "--help"]))
@click.version_option(
    __version__,
    "-V",
    "--version",
    prog_name="flxbuild",
    message="%(prog)s version %(version)s",
)
def cli() -> None:
    """Application archive build tool."""
    pass


@cli.command("build")
@click.option(
    "--manifest",
    "pyproject_toml_path",
    default=DEFAULT_MANIFEST_PATH,
    type=click.Path(exists=True, dir_okay=False, resolve_path=True),
    help="Path to the pyproject.toml manifest file.",
)
@click.option("--target", "main", help="Override the entry point from pyproject.toml.")
@click.option(
    "--mode",
    type=click.Choice(sorted(MODES)),
    help="Override the build mode from pyproject.toml.",
)
@click.option(
    "--build-dir",
    type=click.Path(file_okay=False, resolve_path=True),
    help="Override the build output directory from pyproject.toml.",
)
@click.option(
    "--out",
    type=click.Path(dir_okay=False, resolve_path=True),
    help="Override the archive output path.",
)
@click.option(
    "--engine-dir",
    type=click.Path(file_okay=False, resolve_path=True),
    help=f"Engine artifact directory. Defaults to ${ENGINE_DIR_ENV_VAR}.",
)
@click.option(
    "--private-key-path",
    type=click.Path(dir_okay=False, resolve_path=True),
    help="Sign the archive with this private key.",
)
@click.option(
    "--depfile",
    type=click.Path(dir_okay=False, resolve_path=True),
    help="Write the archive's input dependencies to this depfile.",
)
@click.pass_context
def build_command(
    ctx: click.Context,
    pyproject_toml_path: str,
    main: str | None,
    mode: str | None,
    build_dir: str | None,
    out: str | None,
    engine_dir: str | None,
    private_key_path: str | None,
    depfile: str | None,
) -> None:
    """Builds the application archive."""
    click.echo("🚀 Building application archive...")
    try:
        manifest_path = Path(pyproject_toml_path)
        manifest_dir = manifest_path.parent
        flx_conf = load_manifest_config(manifest_path)
        compiler_conf = flx_conf.get("compiler", {})
        signing_conf = flx_conf.get("signing", {})

        final_build_dir = _resolve(
            manifest_dir, build_dir or flx_conf.get("build_dir", DEFAULT_BUILD_DIR)
        )
        final_out = out or flx_conf.get("output_path")
        paths = BuildPaths.from_build_dir(
            final_build_dir,
            output_path=_resolve(manifest_dir, final_out) if final_out else None,
        )

        mode_name = mode or flx_conf.get("mode", "kernel")
        if mode_name == "precompiled":
            mode_conf = {
                key: str(_resolve(manifest_dir, value))
                for key, value in flx_conf.get("precompiled", {}).items()
            }
        else:
            mode_conf = compiler_conf
        build_mode = mode_from_config(mode_name, mode_conf)

        final_key = private_key_path or signing_conf.get("private_key_path")
        final_key_path = _resolve(manifest_dir, final_key) if final_key else None
        if final_key_path is not None and not final_key_path.exists():
            raise click.UsageError(
                f"Private key not found at '{final_key_path}'. Please run `flxbuild keygen` to generate keys."
            )

        final_engine_dir = (
            engine_dir or flx_conf.get("engine_dir") or os.environ.get(ENGINE_DIR_ENV_VAR)
        )
        artifacts = Artifacts(_resolve(manifest_dir, final_engine_dir)) if final_engine_dir else None

        config = BuildConfig(
            paths=paths,
            mode=build_mode,
            main_path=str(_resolve(manifest_dir, main or flx_conf.get("main", DEFAULT_MAIN_PATH))),
            working_dir=_resolve(manifest_dir, flx_conf["working_dir"])
            if "working_dir" in flx_conf
            else None,
            packages_path=_resolve(manifest_dir, flx_conf.get("packages", DEFAULT_PACKAGES_PATH)),
            private_key_path=final_key_path,
        )
        orchestrator = BuildOrchestrator(
            config=config,
            asset_bundle=_make_asset_bundle(flx_conf, manifest_dir),
            artifacts=artifacts,
            compiler=KernelCompiler(artifacts, compiler_conf.get("command"))
            if artifacts
            else None,
            snapshotter=Snapshotter(artifacts, compiler_conf.get("snapshotter"))
            if artifacts
            else None,
        )
        result = orchestrator.build()

        if depfile:
            write_depfile(Path(depfile), [str(result.output_path)], result.dependencies)

        if result.compiler_invoked:
            click.echo("Compiled kernel.")
        elif result.kernel_path is not None:
            click.secho("Skipping compilation. Fingerprint match.", fg="yellow")
        click.secho(f"✅ Archive built successfully: {result.output_path}", fg="green")

    except ToolExit as e:
        click.secho(f"❌ Build failed:\n{e.message}", fg="red", err=True)
        if e.exit_code:
            ctx.exit(e.exit_code)
        raise click.Abort() from e
    except BuildError as e:
        click.secho(f"❌ Build failed:\n{e}", fg="red", err=True)
        raise click.Abort() from e


@cli.command()
@click.option(
    "--out-dir",
    default="keys",
    type=click.Path(file_okay=False, writable=True, resolve_path=True),
    help="Directory to save the RSA key pair.",
)
def keygen(out_dir: str) -> None:
    """Generates an RSA key pair for archive signing."""
    out_path = Path(out_dir)
    try:
        write_key_pair(
            out_path / Path(DEFAULT_PRIVATE_KEY_PATH).name,
            out_path / Path(DEFAULT_PUBLIC_KEY_PATH).name,
        )
    except SigningError as e:
        click.secho(
            f"⚠️  Keys already exist. To regenerate, please delete them first.\n{e}",
            fg="yellow",
        )
        return
    click.secho(f"✅ Signing key pair generated in '{out_dir}'.", fg="green")


@cli.command("verify")
@click.argument(
    "archive_file",
    type=click.Path(exists=True, dir_okay=False, resolve_path=True),
    default=None,
    required=False,
)
@click.option(
    "--public-key-path", type=click.Path(exists=True, dir_okay=False, resolve_path=True)
)
def verify_command(archive_file: str | None, public_key_path: str | None) -> None:
    """Verifies an application archive and, if a key is known, its signature."""
    final_archive = Path(archive_file) if archive_file else None
    final_public_key = Path(public_key_path) if public_key_path else None

    if not final_archive:
        manifest_path = Path(DEFAULT_MANIFEST_PATH)
        if not manifest_path.exists():
            raise click.UsageError(
                "Cannot find pyproject.toml to determine defaults. Please provide the archive file directly."
            )
        try:
            flx_conf = load_manifest_config(manifest_path)
        except BuildError as e:
            raise click.UsageError(str(e)) from e
        manifest_dir = manifest_path.parent
        final_archive = _resolve(
            manifest_dir,
            flx_conf.get("output_path")
            or BuildPaths.from_build_dir(flx_conf.get("build_dir", DEFAULT_BUILD_DIR)).output_path,
        )
        pub_key = flx_conf.get("signing", {}).get("public_key_path")
        if not final_public_key and pub_key:
            final_public_key = _resolve(manifest_dir, pub_key)

    click.echo(f"🔍 Verifying archive '{final_archive}'...")
    try:
        reader = ArchiveReader(final_archive)
        click.echo(reader.get_info())
        if final_public_key:
            verify_archive_signature(final_archive, final_public_key)
            click.secho("✅ Signature verification successful.", fg="green")
        else:
            click.secho("i️ No public key configured, signature not checked.", fg="yellow")
    except (FileNotFoundError, VerificationError) as e:
        click.secho(f"❌ Verification failed: {e}", fg="red", err=True)
        raise click.Abort() from e


@cli.command("info")
@click.argument("archive_file", type=click.Path(exists=True, dir_okay=False, resolve_path=True))
@click.option("--entry", "entry_name", help="Print the contents of a single entry instead.")
def info_command(archive_file: str, entry_name: str | None) -> None:
    """Lists the entries of an application archive."""
    try:
        reader = ArchiveReader(Path(archive_file))
        if entry_name:
            click.echo(reader.read(entry_name), nl=False)
        else:
            click.echo(reader.get_info())
            for name, size in sorted(reader.entries.items()):
                click.echo(f"    {name} ({size} bytes)")
    except KeyError as e:
        raise click.UsageError(f"Entry '{entry_name}' not found in archive.") from e
    except VerificationError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        raise click.Abort() from e


@cli.command("clean")
@click.option(
    "--build-dir",
    default=DEFAULT_BUILD_DIR,
    type=click.Path(file_okay=False, resolve_path=True),
    help="Build output directory to remove.",
)
def clean_command(build_dir: str) -> None:
    """Removes build outputs, including the compilation fingerprint."""
    click.echo("🧹 Cleaning build outputs...")
    build_path = Path(build_dir)
    if build_path.exists():
        shutil.rmtree(build_path)
        click.secho(f"✅ Removed build directory: {build_path}", fg="green")
    else:
        click.secho("i️ Build directory not found, nothing to clean.", fg="yellow")


main = cli
