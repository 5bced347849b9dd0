"""Lookup of engine and SDK artifacts by name."""

import enum
from pathlib import Path

ENGINE_DIR_ENV_VAR = "FLX_ENGINE_DIR"


class Artifact(enum.Enum):
    PATCHED_SDK = "flutter_patched_sdk"
    PLATFORM_KERNEL_DILL = "flutter_patched_sdk/platform.dill"
    FRONTEND_SERVER_SNAPSHOT = "frontend_server.dart.snapshot"
    SNAPSHOTTER = "gen_snapshot"


class Artifacts:
    """Resolves artifact paths relative to an engine artifact directory."""

    def __init__(self, engine_dir: Path | str) -> None:
        self.engine_dir = Path(engine_dir)

    def get_artifact_path(self, artifact: Artifact) -> Path:
        return self.engine_dir / artifact.value
