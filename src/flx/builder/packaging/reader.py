"""Python-based reader for built application archives."""

from pathlib import Path
import zipfile

from ..exceptions import InvalidArchiveError
from .assembler import RESERVED_ENTRY_NAMES


class ArchiveReader:
    """Reads the entry table of an application archive."""

    def __init__(self, archive_path: Path) -> None:
        if not archive_path.is_file():
            raise FileNotFoundError(f"Archive not found at: {archive_path}")
        self.archive_path = archive_path
        self.entries = self._read_entries()

    def _read_entries(self) -> dict[str, int]:
        try:
            with zipfile.ZipFile(self.archive_path) as zf:
                bad_entry = zf.testzip()
                if bad_entry is not None:
                    raise InvalidArchiveError(f"Corrupt archive entry: {bad_entry}")
                return {info.filename: info.file_size for info in zf.infolist()}
        except zipfile.BadZipFile as e:
            raise InvalidArchiveError(f"Not a valid archive: {e}") from e

    @property
    def reserved_entries(self) -> list[str]:
        return sorted(name for name in self.entries if name in RESERVED_ENTRY_NAMES)

    def read(self, name: str) -> bytes:
        if name not in self.entries:
            raise KeyError(name)
        with zipfile.ZipFile(self.archive_path) as zf:
            return zf.read(name)

    def get_info(self) -> str:
        """Returns a human-readable string of the archive contents."""
        total = sum(self.entries.values())
        reserved = ", ".join(self.reserved_entries) or "none"
        return (
            f"Archive Information:\n"
            f"  Path: {self.archive_path}\n"
            f"  Entries: {len(self.entries)}\n"
            f"  Uncompressed Size: {total} bytes\n"
            f"  Reserved Entries: {reserved}"
        )
