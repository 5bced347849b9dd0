"""Fingerprint-gated decision of whether a compilation step must run again."""

from collections.abc import Mapping
from pathlib import Path

from attrs import define

from pyvider.telemetry import logger

from ..depfile import read_depfile
from ..models import Fingerprint


@define(frozen=True, slots=True)
class FingerprintCheck:
    """Outcome of comparing the persisted fingerprint with the current inputs."""

    matched: bool
    reason: str

    @property
    def should_rebuild(self) -> bool:
        return not self.matched


class FingerprintCache:
    """
    Persists a fingerprint next to a depfile and compares it on the next build.

    Every failure while checking is reported as a mismatch, so a defect in
    the cache can only cause an unnecessary rebuild, never a skipped one.
    """

    FINGERPRINT_SUFFIX = ".fingerprint"

    def __init__(
        self,
        depfile_path: Path,
        input_paths: list[str],
        properties: Mapping[str, str],
        output_paths: list[Path] | None = None,
    ) -> None:
        self.depfile_path = depfile_path
        self.output_paths = list(output_paths or [])
        self.fingerprint_path = Path(f"{depfile_path}{self.FINGERPRINT_SUFFIX}")
        self.input_paths = list(input_paths)
        self.properties = dict(properties)

    def compute(self) -> Fingerprint:
        """
        Fingerprints the declared inputs plus everything the last compilation
        listed in its depfile. Raises FingerprintError if any input is missing.
        """
        paths = set(self.input_paths)
        if self.depfile_path.is_file():
            paths |= read_depfile(self.depfile_path)
        return Fingerprint.from_inputs(self.properties, paths)

    def check(self) -> FingerprintCheck:
        required = [
            self.fingerprint_path,
            self.depfile_path,
            *self.output_paths,
            *(Path(p) for p in self.input_paths),
        ]
        missing = [str(p) for p in required if not p.exists()]
        if missing:
            return FingerprintCheck(False, f"missing files: {', '.join(missing)}")
        try:
            previous = Fingerprint.from_json(self.fingerprint_path.read_text())
            current = self.compute()
        except Exception as e:
            return FingerprintCheck(False, f"fingerprint check error: {e}")
        if previous != current:
            return FingerprintCheck(False, "fingerprint mismatch")
        return FingerprintCheck(True, "fingerprint match")

    def should_rebuild(self) -> bool:
        outcome = self.check()
        if outcome.matched:
            logger.info("Skipping compilation. Fingerprint match.")
        else:
            logger.debug(f"Rebuilding due to {outcome.reason}")
        return outcome.should_rebuild

    def persist(self) -> bool:
        """
        Records the current fingerprint. Failures are logged and reported via
        the return value only; the build output is already valid without it.
        """
        try:
            fingerprint = self.compute()
            self.fingerprint_path.parent.mkdir(parents=True, exist_ok=True)
            self.fingerprint_path.write_text(fingerprint.to_json())
        except Exception as e:
            logger.warning(
                "Error during compilation output fingerprinting.",
                error=str(e),
                exc_info=True,
            )
            return False
        return True
