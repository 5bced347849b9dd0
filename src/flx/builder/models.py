import hashlib
import importlib.metadata
import json
from collections.abc import Iterable, Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any, Protocol, Self

from attrs import define, field

from .exceptions import FingerprintError

try:
    FINGERPRINT_VERSION: str = importlib.metadata.version("flx-builder")
except importlib.metadata.PackageNotFoundError:
    FINGERPRINT_VERSION = "0.0.0-dev"

_HASH_CHUNK_SIZE = 64 * 1024


def _frozen_mapping(value: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(value))


def hash_file(path: Path) -> str:
    """Returns the hex SHA-256 digest of a file's contents."""
    digest = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(_HASH_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


@define(frozen=True, slots=True)
class FileStamp:
    content_hash: str
    size: int
    # Recorded for diagnostics only; touching a file must not invalidate the cache.
    mtime_ns: int = field(default=0, eq=False)

    @classmethod
    def of(cls, path: Path) -> Self:
        stat = path.stat()
        return cls(
            content_hash=hash_file(path), size=stat.st_size, mtime_ns=stat.st_mtime_ns
        )


@define(frozen=True, slots=True, hash=False)
class Fingerprint:
    """
    A comparable snapshot of the inputs of a build step.

    Two fingerprints are equal when their property maps and their per-file
    stamps are equal; ordering of either map is irrelevant.
    """

    properties: Mapping[str, str] = field(converter=_frozen_mapping)
    files: Mapping[str, FileStamp] = field(converter=_frozen_mapping)

    @classmethod
    def from_inputs(cls, properties: Mapping[str, str], input_paths: Iterable[str]) -> Self:
        paths = sorted(set(input_paths))
        missing = [p for p in paths if not Path(p).is_file()]
        if missing:
            raise FingerprintError("Missing input files:\n" + "\n".join(missing))
        return cls(
            properties=properties,
            files={p: FileStamp.of(Path(p)) for p in paths},
        )

    def to_json(self) -> str:
        return json.dumps(
            {
                "version": FINGERPRINT_VERSION,
                "properties": dict(self.properties),
                "files": {
                    path: {
                        "hash": stamp.content_hash,
                        "size": stamp.size,
                        "mtime_ns": stamp.mtime_ns,
                    }
                    for path, stamp in self.files.items()
                },
            },
            sort_keys=True,
        )

    @classmethod
    def from_json(cls, data: str) -> Self:
        try:
            content = json.loads(data)
        except ValueError as e:
            raise FingerprintError(f"Fingerprint is not valid JSON: {e}") from e
        if not isinstance(content, dict):
            raise FingerprintError("Fingerprint must be a JSON object.")

        version = content.get("version")
        if version != FINGERPRINT_VERSION:
            raise FingerprintError(f"Incompatible fingerprint version: {version}")

        try:
            properties = {str(k): str(v) for k, v in content.get("properties", {}).items()}
            files = {
                str(path): FileStamp(
                    content_hash=str(raw["hash"]),
                    size=int(raw["size"]),
                    mtime_ns=int(raw.get("mtime_ns", 0)),
                )
                for path, raw in content.get("files", {}).items()
            }
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise FingerprintError(f"Malformed fingerprint data: {e}") from e
        return cls(properties=properties, files=files)


class ContentSource(Protocol):
    """A block of bytes destined for an archive entry."""

    @property
    def file_dependencies(self) -> frozenset[str]: ...

    def read_bytes(self, working_dir: Path | None = None) -> bytes: ...


@define(frozen=True, slots=True)
class BytesContent:
    data: bytes
    file_dependencies: frozenset[str] = field(factory=frozenset, converter=frozenset)

    def read_bytes(self, working_dir: Path | None = None) -> bytes:
        return self.data


@define(frozen=True, slots=True)
class StringContent:
    text: str
    file_dependencies: frozenset[str] = field(factory=frozenset, converter=frozenset)

    def read_bytes(self, working_dir: Path | None = None) -> bytes:
        return self.text.encode("utf-8")


@define(frozen=True, slots=True)
class FileContent:
    """Content backed by a file; relative paths resolve against the working dir."""

    path: Path = field(converter=Path)
    extra_dependencies: frozenset[str] = field(factory=frozenset, converter=frozenset)

    @property
    def file_dependencies(self) -> frozenset[str]:
        return self.extra_dependencies | {str(self.path)}

    def resolve(self, working_dir: Path | None = None) -> Path:
        if working_dir is not None and not self.path.is_absolute():
            return working_dir / self.path
        return self.path

    def read_bytes(self, working_dir: Path | None = None) -> bytes:
        return self.resolve(working_dir).read_bytes()


@define(frozen=True, slots=True)
class KernelMode:
    """Compile the entry point to a kernel file, gated by the fingerprint cache."""

    track_widget_creation: bool = False
    file_system_roots: tuple[str, ...] = field(default=(), converter=tuple)
    file_system_scheme: str | None = None


@define(frozen=True, slots=True)
class SnapshotMode:
    """Always regenerate a script snapshot of the entry point."""


@define(frozen=True, slots=True)
class PrecompiledMode:
    """Package artifacts that were compiled ahead of time by another step."""

    snapshot_path: Path | None = None
    native_library_path: Path | None = None


BuildMode = KernelMode | SnapshotMode | PrecompiledMode


@define(frozen=True, slots=True)
class BuildResult:
    output_path: Path
    dependencies: frozenset[str]
    compiler_invoked: bool = False
    kernel_path: Path | None = None
    signature_path: Path | None = None
