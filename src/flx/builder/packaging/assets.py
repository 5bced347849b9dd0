"""
Asset bundle providers. A bundle resolves the declared assets of an
application into archive entries, each knowing the files it was built from.
"""

import json
from pathlib import Path
import subprocess
from typing import Protocol

from pyvider.telemetry import logger

from ..models import ContentSource, FileContent, StringContent


class AssetBundle(Protocol):
    entries: dict[str, ContentSource]

    def build(self, working_dir: Path, packages_path: Path) -> int:
        """Populates `entries`; returns 0 on success."""
        ...


class ManifestAssetBundle:
    """
    Resolves asset declarations from the manifest. A declared directory
    contributes every file beneath it; entry names are POSIX paths relative
    to `base_dir`.
    """

    def __init__(self, assets: list[str], base_dir: Path) -> None:
        self.assets = list(assets)
        self.base_dir = base_dir
        self.entries: dict[str, ContentSource] = {}

    def build(self, working_dir: Path, packages_path: Path) -> int:
        entries: dict[str, ContentSource] = {}
        for declared in self.assets:
            asset_path = self.base_dir / declared
            if asset_path.is_dir():
                files = sorted(p for p in asset_path.rglob("*") if p.is_file())
            elif asset_path.is_file():
                files = [asset_path]
            else:
                logger.error("Asset not found.", asset=declared, path=str(asset_path))
                return 1
            for file in files:
                name = file.relative_to(self.base_dir).as_posix()
                entries[name] = FileContent(file.resolve())
        self.entries = entries
        logger.debug("Resolved asset bundle", entry_count=len(entries))
        return 0


class CommandAssetBundle:
    """
    Delegates asset resolution to an external command that prints
    `{"entries": {"<name>": {"path": ..., "dependencies": [...]}}}` on stdout.
    An entry may give inline `"text"` instead of a `"path"`.
    """

    def __init__(self, command: list[str], cwd: Path | None = None) -> None:
        self.command = list(command)
        self.cwd = cwd
        self.entries: dict[str, ContentSource] = {}

    def build(self, working_dir: Path, packages_path: Path) -> int:
        command = self.command + [
            "--working-dir",
            str(working_dir),
            "--packages",
            str(packages_path),
        ]
        logger.info(f"Running command: {' '.join(command)}")
        try:
            result = subprocess.run(
                command, capture_output=True, text=True, cwd=self.cwd, check=False
            )
        except OSError as e:
            logger.error("Could not start the asset command.", error=str(e))
            return 1
        if result.returncode != 0:
            logger.error(
                "Asset command failed.",
                exit_code=result.returncode,
                stderr=result.stderr.strip(),
            )
            return result.returncode

        try:
            self.entries = self._parse_entries(json.loads(result.stdout))
        except (ValueError, TypeError, AttributeError, KeyError) as e:
            logger.error("Asset command produced malformed output.", error=str(e))
            return 1
        return 0

    def _parse_entries(self, payload: dict) -> dict[str, ContentSource]:
        base = self.cwd or Path.cwd()
        entries: dict[str, ContentSource] = {}
        for name, raw in payload["entries"].items():
            dependencies = frozenset(str(d) for d in raw.get("dependencies", []))
            if "text" in raw:
                entries[name] = StringContent(raw["text"], dependencies)
            else:
                path = Path(raw["path"])
                if not path.is_absolute():
                    path = base / path
                entries[name] = FileContent(path, dependencies)
        return entries


def build_assets(
    asset_bundle: AssetBundle, working_dir: Path, packages_path: Path
) -> AssetBundle | None:
    """Builds `asset_bundle`, returning None if the provider reported failure."""
    result = asset_bundle.build(working_dir=working_dir, packages_path=packages_path)
    if result != 0:
        return None
    return asset_bundle
