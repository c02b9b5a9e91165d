"""Contracts for the external collaborators the catalog core depends on.

The server implements them with exiftool and Pillow (``plugins/``); the GUI
implements them over HTTP (``network/api_client.py``). Tests use in-memory
fakes. Failures are reported with the types in ``core.errors``.
"""
from typing import Dict, Iterable, List, Optional, Protocol, runtime_checkable

from core.models import UNSET


@runtime_checkable
class MetadataGateway(Protocol):

    def list_directory(self, root_path: str, recursive: bool,
                       allowed_extensions: Iterable[str]) -> List[dict]:
        """Return ``[{path, name, size, mtime}]`` for matching files; order unspecified.

        Raises ScanError if *root_path* cannot be listed.
        """
        ...

    def read_tags(self, path: str) -> dict:
        """Return ``{rating, label}``. Raises NotFoundError or ReadError."""
        ...

    def read_tags_batch(self, paths: List[str]) -> Dict[str, dict]:
        """Return ``{path: {rating, label}}``; unreadable files map to the defaults."""
        ...

    def write_tags(self, path: str, rating=UNSET, label=UNSET) -> None:
        """Persist whichever fields are given, atomically per file. Raises WriteError."""
        ...


@runtime_checkable
class ThumbnailGateway(Protocol):

    def render_thumbnail(self, path: str, max_width: int, max_height: int,
                         quality: Optional[int] = None) -> bytes:
        """Return JPEG bytes no larger than the bounds, upright per EXIF orientation."""
        ...


def default_tags() -> dict:
    return {"rating": 0, "label": None}
