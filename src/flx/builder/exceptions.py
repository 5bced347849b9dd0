class BuildError(Exception):
    pass


class ToolExit(BuildError):
    """A fatal build failure that should end the process with `exit_code`."""

    def __init__(self, message: str, exit_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code


class FingerprintError(BuildError):
    pass


class ArchiveEntryCollisionError(BuildError):
    pass


class SigningError(BuildError):
    pass


class VerificationError(Exception):
    pass


class InvalidArchiveError(VerificationError):
    pass


class SignatureVerificationError(VerificationError):
    pass
