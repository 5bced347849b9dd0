"""
Subprocess boundaries for the frontend (kernel) compiler and the script
snapshotter. Both tools are opaque: only their exit status, their stdout
protocol and the files they write are observed.
"""

from collections.abc import Sequence
from pathlib import Path
import shutil
import subprocess

from pyvider.telemetry import logger

from .artifacts import Artifact, Artifacts
from .exceptions import BuildError


def _find_dart_vm() -> str:
    dart = shutil.which("dart")
    if not dart:
        raise BuildError("Dart VM not found in PATH. Please install the Dart SDK.")
    return dart


def _run(command: list[str], cwd: Path | None = None) -> subprocess.CompletedProcess[str]:
    logger.debug(f"Running command: {' '.join(command)}")
    result = subprocess.run(
        command, capture_output=True, text=True, cwd=cwd, check=False
    )
    if result.stderr:
        logger.debug("Command stderr", output=result.stderr.strip())
    return result


def parse_compiler_output(stdout: str) -> str | None:
    """
    Extracts the output filename from the frontend compiler's stdout.

    The compiler announces `result <boundary>`, prints diagnostics, and ends
    with `<boundary> <output filename>`. An empty filename means the
    compilation failed.
    """
    boundary: str | None = None
    for line in stdout.splitlines():
        if boundary is None:
            if line.startswith("result "):
                boundary = line[len("result ") :].strip()
            continue
        if line.startswith(boundary):
            filename = line[len(boundary) :].strip()
            return filename or None
        logger.debug("compiler", message=line)
    return None


class KernelCompiler:
    """Drives the frontend server to compile an entry point to a kernel file."""

    def __init__(self, artifacts: Artifacts, command: Sequence[str] | None = None) -> None:
        self.artifacts = artifacts
        self.command = list(command) if command else None

    def _base_command(self) -> list[str]:
        if self.command:
            return list(self.command)
        snapshot = self.artifacts.get_artifact_path(Artifact.FRONTEND_SERVER_SNAPSHOT)
        return [_find_dart_vm(), str(snapshot)]

    def compile(
        self,
        *,
        sdk_root: Path,
        main_path: str,
        output_file_path: Path,
        depfile_path: Path,
        incremental_compiler_byte_store_path: Path | None = None,
        packages_path: Path | None = None,
        track_widget_creation: bool = False,
        file_system_roots: Sequence[str] = (),
        file_system_scheme: str | None = None,
    ) -> str | None:
        """Returns the path of the produced kernel file, or None on failure."""
        command = self._base_command() + [
            "--sdk-root",
            str(sdk_root),
            "--strong",
            "--target=flutter",
            "--output-dill",
            str(output_file_path),
            "--depfile",
            str(depfile_path),
        ]
        if incremental_compiler_byte_store_path is not None:
            command.extend(["--byte-store", str(incremental_compiler_byte_store_path)])
        if packages_path is not None:
            command.extend(["--packages", str(packages_path)])
        if track_widget_creation:
            command.append("--track-widget-creation")
        for root in file_system_roots:
            command.extend(["--filesystem-root", root])
        if file_system_scheme:
            command.extend(["--filesystem-scheme", file_system_scheme])
        command.append(main_path)

        try:
            result = _run(command)
        except OSError as e:
            logger.error("Could not start the frontend compiler.", error=str(e))
            return None
        if result.returncode != 0:
            logger.error(
                "Frontend compiler exited with a non-zero status.",
                exit_code=result.returncode,
                stderr=result.stderr.strip(),
            )
            return None
        return parse_compiler_output(result.stdout)


class Snapshotter:
    """Runs the snapshot generator to produce a script snapshot."""

    def __init__(self, artifacts: Artifacts, command: Sequence[str] | None = None) -> None:
        self.artifacts = artifacts
        self.command = list(command) if command else None

    def build_script_snapshot(
        self,
        *,
        main_path: str,
        snapshot_path: Path,
        depfile_path: Path,
        packages_path: Path,
    ) -> int:
        """Returns the snapshot generator's exit code."""
        base = self.command or [str(self.artifacts.get_artifact_path(Artifact.SNAPSHOTTER))]
        command = base + [
            "--snapshot_kind=script",
            f"--script_snapshot={snapshot_path}",
            f"--packages={packages_path}",
            f"--dependencies={depfile_path}",
            main_path,
        ]
        try:
            result = _run(command)
        except OSError as e:
            logger.error("Could not start the snapshot generator.", error=str(e))
            return 1
        return result.returncode
