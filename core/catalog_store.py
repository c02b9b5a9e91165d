import logging
import os
import threading
from typing import Dict, Iterable, List, Optional, Tuple

from core.errors import PhotoPicksError
from core.gateways import MetadataGateway, default_tags
from core.models import (
    DEFAULT_ALLOWED_EXTENSIONS, UNSET, PhotoRecord, normalize_extensions,
    normalize_label, validate_rating,
)

logger = logging.getLogger(__name__)


class WriteResult:
    """Outcome of one asynchronous metadata write."""

    __slots__ = ("ok", "error")

    def __init__(self, ok: bool, error: Optional[str] = None):
        self.ok = ok
        self.error = error

    @classmethod
    def success(cls) -> "WriteResult":
        return cls(True)

    @classmethod
    def failure(cls, error) -> "WriteResult":
        return cls(False, str(error))

    def __repr__(self):
        return f"WriteResult(ok={self.ok}, error={self.error!r})"


class CatalogStore:
    """Single source of truth for the photo records of the current scan root.

    Records are kept in ascending-name order. Optimistic edits bump a per-path
    version token; ``confirm`` only treats a write result as authoritative when
    it carries the latest token for that path, so a slow response for an older
    edit can never be mistaken for the state of a newer one.
    """

    def __init__(self, gateway: MetadataGateway,
                 allowed_extensions: Iterable[str] = DEFAULT_ALLOWED_EXTENSIONS):
        self.gateway = gateway
        self.allowed_extensions = normalize_extensions(allowed_extensions)
        self.root: Optional[str] = None
        self.recursive = False
        self.last_warning: Optional[str] = None
        self.failed_writes: Dict[str, str] = {}
        self._records: List[PhotoRecord] = []
        self._by_path: Dict[str, PhotoRecord] = {}
        self._versions: Dict[str, int] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def records(self) -> Tuple[PhotoRecord, ...]:
        with self._lock:
            return tuple(self._records)

    def get(self, path: str) -> Optional[PhotoRecord]:
        with self._lock:
            return self._by_path.get(path)

    def version(self, path: str) -> int:
        """Latest edit token for *path*; 0 when it is not in the catalog or was never edited."""
        with self._lock:
            if path not in self._by_path:
                return 0
            return self._versions.get(path, 0)

    def scan(self, root_path: str, recursive: bool = False) -> Tuple[PhotoRecord, ...]:
        """Replace the catalog with the image files under *root_path*.

        Gateway failures degrade to an empty catalog; the reason is logged and
        kept in ``last_warning``. Individual unreadable files keep the default
        rating/label.
        """
        logger.info(f"Scanning {root_path} (recursive={recursive})")
        warning = None
        records: List[PhotoRecord] = []
        try:
            entries = self.gateway.list_directory(root_path, recursive, self.allowed_extensions)
            paths = [e["path"] for e in entries]
            tags = self.gateway.read_tags_batch(paths) if paths else {}
            seen = set()
            for entry in entries:
                path = entry["path"]
                if path in seen or not self._allowed(path):
                    continue
                seen.add(path)
                meta = tags.get(path) or default_tags()
                records.append(self._build_record(entry, meta))
        except PhotoPicksError as e:
            warning = f"Could not scan {root_path}: {e}"
        except Exception as e:  # why: a broken gateway must degrade to an empty catalog, never crash the caller
            warning = f"Could not scan {root_path}: {e}"
            logger.debug("Unexpected scan failure", exc_info=True)

        if warning:
            logger.warning(warning)
            records = []

        records.sort(key=lambda r: r.name)
        with self._lock:
            self.root = root_path
            self.recursive = recursive
            self.last_warning = warning
            self.failed_writes = {}
            self._records = records
            self._by_path = {r.path: r for r in records}
            result = tuple(records)
        logger.info(f"Scan of {root_path} produced {len(result)} photo(s)")
        return result

    def _allowed(self, path: str) -> bool:
        return os.path.splitext(path)[1].lower().lstrip(".") in self.allowed_extensions

    @staticmethod
    def _build_record(entry: dict, meta: dict) -> PhotoRecord:
        try:
            rating = validate_rating(meta.get("rating") or 0)
        except ValueError:
            logger.warning(f"Ignoring out-of-range rating {meta.get('rating')!r} on {entry['path']}")
            rating = 0
        return PhotoRecord(
            path=entry["path"],
            name=entry.get("name") or "",
            size=entry.get("size", 0) or 0,
            mtime=entry.get("mtime", 0.0) or 0.0,
            rating=rating,
            label=normalize_label(meta.get("label")),
        )

    def apply_optimistic(self, path: str, rating=UNSET, label=UNSET) -> Optional[int]:
        """Mutate the record for *path* in place and return its new version token.

        Only the provided fields change. Returns None (and changes nothing)
        when *path* is not in the catalog. Raises ValueError for a rating
        outside 0-5.
        """
        if rating is not UNSET:
            rating = validate_rating(rating)
        if label is not UNSET:
            label = normalize_label(label)
        with self._lock:
            record = self._by_path.get(path)
            if record is None:
                logger.debug(f"apply_optimistic: {path} not in catalog")
                return None
            if rating is not UNSET:
                record.rating = rating
            if label is not UNSET:
                record.label = label
            token = self._versions.get(path, 0) + 1
            self._versions[path] = token
        logger.debug(f"Optimistic edit on {path}: rating={rating!r} label={label!r} token={token}")
        return token

    def confirm(self, path: str, token: int, result: WriteResult) -> bool:
        """Reconcile a finished write. The optimistic value is never rolled back.

        Returns True if *token* is the latest local edit for *path*.
        """
        with self._lock:
            latest = self._versions.get(path)
            if latest is None or path not in self._by_path:
                # Path left the catalog (rescan) while the write was in flight.
                current = False
            else:
                current = token == latest
                if current:
                    if result.ok:
                        self.failed_writes.pop(path, None)
                    else:
                        self.failed_writes[path] = result.error or "write failed"

        if not result.ok:
            logger.error(f"Metadata write failed for {path} (token {token}): {result.error}")
        elif not current:
            logger.debug(f"Stale write confirmation for {path} (token {token}, latest {latest})")
        return current
