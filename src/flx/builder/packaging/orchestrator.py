"""Core logic for building an application archive from compiled code and assets."""

from pathlib import Path

from pyvider.telemetry import logger

from ..artifacts import Artifact, Artifacts
from ..compiler import KernelCompiler, Snapshotter
from ..config import BuildConfig
from ..crypto import sign_archive
from ..depfile import write_depfile
from ..exceptions import ToolExit
from ..models import (
    BuildResult,
    FileContent,
    KernelMode,
    PrecompiledMode,
    SnapshotMode,
)
from .assembler import assemble
from .assets import AssetBundle, build_assets
from .fingerprint import FingerprintCache


def ensure_directory_exists(file_path: Path) -> None:
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ToolExit(
            f"Failed to create directory '{file_path.parent}': {e}", exit_code=1
        ) from e


class BuildOrchestrator:
    """
    Runs one build: the mode's compilation step, then asset bundling, then
    assembly. Each stage consumes the previous stage's output, and the first
    fatal error aborts the build with a ToolExit.
    """

    def __init__(
        self,
        config: BuildConfig,
        asset_bundle: AssetBundle,
        artifacts: Artifacts | None = None,
        compiler: KernelCompiler | None = None,
        snapshotter: Snapshotter | None = None,
    ) -> None:
        self.config = config
        self.asset_bundle = asset_bundle
        self.artifacts = artifacts
        self.compiler = compiler
        self.snapshotter = snapshotter

    def _require_artifacts(self) -> Artifacts:
        if self.artifacts is None:
            raise ToolExit(
                "An engine artifact directory is required for this build mode.",
                exit_code=1,
            )
        return self.artifacts

    def build_script_snapshot(self) -> Path:
        paths = self.config.paths
        ensure_directory_exists(paths.snapshot_path)
        snapshotter = self.snapshotter or Snapshotter(self._require_artifacts())
        result = snapshotter.build_script_snapshot(
            main_path=self.config.main_path,
            snapshot_path=paths.snapshot_path,
            depfile_path=paths.depfile_path,
            packages_path=self.config.packages_path,
        )
        if result != 0:
            raise ToolExit(
                f"Failed to run the Flutter compiler. Exit code: {result}",
                exit_code=result,
            )
        return paths.snapshot_path

    def _kernel_properties(self, mode: KernelMode) -> dict[str, str]:
        # Every option that changes the compiler's output belongs here.
        return {
            "entryPoint": self.config.main_path,
            "packagesPath": str(self.config.packages_path),
            "trackWidgetCreation": str(mode.track_widget_creation).lower(),
            "fileSystemRoots": ",".join(sorted(mode.file_system_roots)),
            "fileSystemScheme": mode.file_system_scheme or "",
        }

    def build_kernel(self, mode: KernelMode) -> tuple[Path, bool]:
        """
        Returns the kernel file path and whether the compiler had to run. The
        compiler is skipped when the recorded fingerprint still matches.
        """
        paths = self.config.paths
        main_path = self.config.main_path
        artifacts = self._require_artifacts()
        cache = FingerprintCache(
            depfile_path=paths.depfile_path,
            input_paths=[main_path],
            properties=self._kernel_properties(mode),
            output_paths=[paths.kernel_path],
        )

        compiled = cache.should_rebuild()
        if compiled:
            ensure_directory_exists(paths.kernel_path)
            compiler = self.compiler or KernelCompiler(artifacts)
            kernel_filename = compiler.compile(
                sdk_root=artifacts.get_artifact_path(Artifact.PATCHED_SDK),
                incremental_compiler_byte_store_path=paths.incremental_byte_store_dir.absolute(),
                main_path=str(Path(main_path).absolute()),
                output_file_path=paths.kernel_path,
                depfile_path=paths.depfile_path,
                packages_path=self.config.packages_path,
                track_widget_creation=mode.track_widget_creation,
                file_system_roots=mode.file_system_roots,
                file_system_scheme=mode.file_system_scheme,
            )
            if kernel_filename is None:
                raise ToolExit(f"Compiler failed on {main_path}")
            cache.persist()
        else:
            kernel_filename = str(paths.kernel_path)

        frontend_server = artifacts.get_artifact_path(Artifact.FRONTEND_SERVER_SNAPSHOT)
        write_depfile(
            paths.frontend_depfile_path,
            [paths.frontend_depfile_path.name],
            [str(frontend_server)],
        )
        return Path(kernel_filename), compiled

    def build(self) -> BuildResult:
        mode = self.config.mode
        paths = self.config.paths
        logger.info("Orchestrator starting build...", mode=type(mode).__name__)

        kernel_path: Path | None = None
        snapshot_file: Path | None = None
        dylib_file: Path | None = None
        compiled = False

        if isinstance(mode, SnapshotMode):
            snapshot_file = self.build_script_snapshot()
        elif isinstance(mode, KernelMode):
            kernel_path, compiled = self.build_kernel(mode)
        elif isinstance(mode, PrecompiledMode):
            snapshot_file = mode.snapshot_path
            dylib_file = mode.native_library_path
        else:
            raise TypeError(f"Unsupported build mode: {mode!r}")

        working_dir = self.config.asset_working_dir
        assets = build_assets(
            self.asset_bundle,
            working_dir=working_dir,
            packages_path=self.config.packages_path,
        )
        if assets is None:
            raise ToolExit(f"Error building assets for {paths.output_path}", exit_code=1)

        output_path, dependencies = assemble(
            asset_entries=assets.entries,
            output_path=paths.output_path,
            working_dir=working_dir,
            artifacts=self.artifacts,
            kernel_content=FileContent(kernel_path.absolute()) if kernel_path else None,
            snapshot_file=snapshot_file,
            dylib_file=dylib_file,
        )

        signature_path = None
        if self.config.private_key_path is not None:
            signature_path = sign_archive(output_path, self.config.private_key_path)
            logger.info("Signed archive", signature=str(signature_path))

        logger.info("Build complete", output=str(output_path), compiled=compiled)
        return BuildResult(
            output_path=output_path,
            dependencies=frozenset(dependencies),
            compiler_invoked=compiled,
            kernel_path=kernel_path,
            signature_path=signature_path,
        )
