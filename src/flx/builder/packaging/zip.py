"""Writes an archive-entry mapping to a zip file."""

from pathlib import Path
import zipfile

from pyvider.telemetry import logger

from ..models import ContentSource

# Fixed entry timestamp so identical inputs produce identical archives.
_ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)


class ZipBuilder:
    def __init__(self) -> None:
        self.entries: dict[str, ContentSource] = {}

    def create_zip(self, output_file: Path, working_dir: Path | None = None) -> None:
        """
        Writes every entry into `output_file`, in name order. Relative paths
        of file-backed entries are resolved against `working_dir`.
        """
        tmp_file = output_file.with_name(output_file.name + ".tmp")
        try:
            with zipfile.ZipFile(tmp_file, "w", zipfile.ZIP_DEFLATED) as zf:
                for name in sorted(self.entries):
                    info = zipfile.ZipInfo(name, date_time=_ZIP_EPOCH)
                    info.compress_type = zipfile.ZIP_DEFLATED
                    info.external_attr = 0o644 << 16
                    zf.writestr(info, self.entries[name].read_bytes(working_dir))
                    logger.debug("Added archive entry", entry=name)
            tmp_file.replace(output_file)
        except BaseException:
            tmp_file.unlink(missing_ok=True)
            raise
