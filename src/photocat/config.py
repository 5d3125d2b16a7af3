"""Library folder layout and command defaults."""

import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from photocat.errors import ConfigurationError

MANIFEST_FILENAME = "photocat.db"
MAPPING_FILENAME = "mapping.toml"
SIDECAR_SUFFIX = ".json"

DEFAULT_META_CMD = "exiftool -b -j -"
DEFAULT_EXTRACTION_TIMEOUT = 60.0
DEFAULT_EXTENSIONS: tuple[str, ...] = ("jpg", "heic", "mov", "png", "raw", "tiff", "arw", "nef", "dng")

# CSV column order for metadata fields after the manifest columns.
DEFAULT_FIELDS: tuple[str, ...] = (
    "Artist",
    "Lens",
    "LensInfo",
    "LensModel",
    "Make",
    "Model",
    "Aperture",
    "ShutterSpeed",
    "ISO",
    "ImageWidth",
    "ImageHeight",
    "Orientation",
    "Software",
    "FocalLength",
    "FocalLengthIn35mmFormat",
    "DateTakenStr",
    "DateTaken",
    "LensInferred",
)

MANIFEST_COLUMNS: tuple[str, ...] = ("url", "filename", "content_id", "created_at", "modified_at")


def default_concurrency() -> int:
    return os.cpu_count() or 4


class Library(BaseModel):
    """A data folder holding the manifest, one sidecar per content id, and rules."""

    root: Path

    model_config = ConfigDict(frozen=True, extra="forbid")

    @classmethod
    def open(cls, path: str | Path, writable: bool = False) -> "Library":
        """Validate that ``path`` is a usable library folder.

        Raises:
            ConfigurationError: If the folder is missing, not a directory, or
                lacks the required permissions.
        """
        root = Path(path).expanduser()
        if not root.exists():
            raise ConfigurationError(f"library folder does not exist: {root}")
        if not root.is_dir():
            raise ConfigurationError(f"library path is not a directory: {root}")
        mode = os.R_OK | os.X_OK | (os.W_OK if writable else 0)
        if not os.access(root, mode):
            access = "writable" if writable else "readable"
            raise ConfigurationError(f"library folder is not {access}: {root}")
        return cls(root=root.resolve())

    @property
    def manifest_path(self) -> Path:
        return self.root / MANIFEST_FILENAME

    @property
    def mapping_path(self) -> Path:
        return self.root / MAPPING_FILENAME

    @property
    def sidecar_dir(self) -> Path:
        return self.root
