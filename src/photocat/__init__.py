"""photocat - catalog photos by content and summarize their metadata."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("photocat")
except PackageNotFoundError:
    __version__ = "unknown"

__all__ = ["__version__"]
