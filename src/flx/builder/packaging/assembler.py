"""Merges asset entries and compiled artifacts into a single archive."""

from collections.abc import Mapping
from pathlib import Path

from pyvider.telemetry import logger

from ..artifacts import Artifact, Artifacts
from ..exceptions import ArchiveEntryCollisionError, ToolExit
from ..models import ContentSource, FileContent
from .zip import ZipBuilder

# Entry names agreed upon with the runtime that loads the archive.
KERNEL_KEY = "kernel_blob.bin"
PLATFORM_KERNEL_KEY = "platform.dill"
SNAPSHOT_KEY = "snapshot_blob.bin"
DYLIB_KEY = "libapp.so"

RESERVED_ENTRY_NAMES = frozenset({KERNEL_KEY, PLATFORM_KERNEL_KEY, SNAPSHOT_KEY, DYLIB_KEY})


def _reserved_entries(
    artifacts: Artifacts | None,
    kernel_content: ContentSource | None,
    snapshot_file: Path | None,
    dylib_file: Path | None,
) -> dict[str, ContentSource]:
    reserved: dict[str, ContentSource] = {}
    if kernel_content is not None:
        if artifacts is None:
            raise ToolExit("An engine artifact directory is required to package a kernel.")
        reserved[KERNEL_KEY] = kernel_content
        reserved[PLATFORM_KERNEL_KEY] = FileContent(
            artifacts.get_artifact_path(Artifact.PLATFORM_KERNEL_DILL).absolute()
        )
    if snapshot_file is not None:
        reserved[SNAPSHOT_KEY] = FileContent(snapshot_file.absolute())
    if dylib_file is not None:
        reserved[DYLIB_KEY] = FileContent(dylib_file.absolute())
    return reserved


def assemble(
    *,
    asset_entries: Mapping[str, ContentSource],
    output_path: Path,
    working_dir: Path,
    artifacts: Artifacts | None = None,
    kernel_content: ContentSource | None = None,
    snapshot_file: Path | None = None,
    dylib_file: Path | None = None,
    zip_builder: ZipBuilder | None = None,
) -> tuple[Path, set[str]]:
    """
    Writes the archive at `output_path` and returns that path together with
    the file dependencies of its asset entries. Compiled artifacts are added
    under reserved names and are not part of the returned dependencies.

    Raises ArchiveEntryCollisionError if an asset uses a reserved name that
    this call is about to fill.
    """
    logger.debug(f"Building {output_path}")

    reserved = _reserved_entries(artifacts, kernel_content, snapshot_file, dylib_file)
    collisions = sorted(set(asset_entries) & set(reserved))
    if collisions:
        raise ArchiveEntryCollisionError(
            f"Asset entries collide with reserved archive entries: {', '.join(collisions)}"
        )

    builder = zip_builder or ZipBuilder()
    builder.entries.update(asset_entries)
    builder.entries.update(reserved)

    file_dependencies: set[str] = set()
    for content in asset_entries.values():
        file_dependencies.update(content.file_dependencies)

    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ToolExit(
            f"Could not create output directory '{output_path.parent}': {e}", exit_code=1
        ) from e

    logger.debug(f"Encoding zip file to {output_path}")
    try:
        builder.create_zip(output_path, working_dir)
    except OSError as e:
        raise ToolExit(f"Failed to write archive '{output_path}': {e}", exit_code=1) from e
    logger.debug(f"Built {output_path}.")
    return output_path, file_dependencies
