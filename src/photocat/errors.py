"""Error taxonomy for photocat.

Per-file problems while indexing are reported as ``FileError`` values in the
indexing result and never raised past the indexing service. The exceptions
below are the ones that end a command.
"""


class PhotocatError(Exception):
    """Base class for photocat errors."""


class ConfigurationError(PhotocatError):
    """Invalid library folder, rules file, or command options."""


class StorageError(PhotocatError):
    """A sidecar or manifest operation failed, or a write kept failing after retries."""


class ExtractionError(PhotocatError):
    """The metadata command failed, timed out, or printed something other than JSON."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason
