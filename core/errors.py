"""Failure types raised at the gateway boundary.

Everything the metadata tool, the image renderer or the filesystem can do
wrong is mapped onto one of these before it reaches the catalog core.
"""


class PhotoPicksError(Exception):
    """Base class for all gateway failures."""


class ScanError(PhotoPicksError):
    """Directory unreadable or metadata tool unavailable."""


class ReadError(PhotoPicksError):
    """Metadata could not be read from a file (malformed, unsupported, tool failure)."""


class NotFoundError(ReadError):
    """The file does not exist."""


class WriteError(PhotoPicksError):
    """Metadata could not be persisted into a file."""


class CopyError(PhotoPicksError):
    """A single file in a copy batch failed."""
