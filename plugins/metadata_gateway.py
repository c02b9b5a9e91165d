"""exiftool-backed implementation of the MetadataGateway contract.

Ratings and color labels live inside the image files themselves (EXIF/XMP),
so the app keeps no database: every read and write goes through exiftool.
"""
import logging
import os
import re
from typing import Dict, Iterable, List, Optional

from core.directory_scanner import DirectoryScanner
from core.errors import NotFoundError, ReadError, ScanError, WriteError
from core.gateways import default_tags
from core.models import (
    COLOR_LABELS, KEYWORD_COLOR_LABELS, UNSET, normalize_label, validate_label, validate_rating,
)
from plugins.exiftool_process import DEFAULT_TIMEOUT, ExifToolProcess, is_exiftool_available

logger = logging.getLogger(__name__)

# Windows Explorer reads RatingPercent rather than Rating.
RATING_PERCENT = {0: 0, 1: 1, 2: 25, 3: 50, 4: 75, 5: 99}

READ_TAGS = ["-Rating", "-Label"]
BATCH_SIZE = 200

_UPDATED_RE = re.compile(rb"(\d+) image files? (updated|unchanged)")
_EXIF_ERRORS = (OSError, RuntimeError, TimeoutError, ValueError)


def _parse_rating(raw, path: str) -> int:
    if raw in (None, ""):
        return 0
    try:
        return validate_rating(int(float(raw)))
    except (TypeError, ValueError):
        # why: some tools write -1 ("rejected") or percent values into Rating
        logger.warning(f"Unusable rating {raw!r} in {path}; treating as unrated")
        return 0


def _as_list(value) -> List[str]:
    if value in (None, ""):
        return []
    if isinstance(value, list):
        return [str(v) for v in value]
    return [str(value)]


def parse_exiftool_entry(entry: dict) -> dict:
    path = entry.get("SourceFile", "")
    label = entry.get("Label")
    return {
        "rating": _parse_rating(entry.get("Rating"), path),
        "label": normalize_label(str(label)) if label is not None else None,
    }


def files_written(output: bytes) -> int:
    """Count files reported as updated or unchanged by an exiftool write."""
    return sum(int(m.group(1)) for m in _UPDATED_RE.finditer(output))


class ExifToolMetadataGateway:
    """Reads/writes rating + label tags and lists folders for the HTTP server."""

    def __init__(self, config_manager=None, exiftool: Optional[ExifToolProcess] = None,
                 scanner: Optional[DirectoryScanner] = None):
        get = config_manager.get if config_manager else (lambda key, default=None: default)
        self.executable = get("exiftool.executable", "exiftool")
        self.sync_keywords = bool(get("labels.sync_keywords", True))
        self.color_labels = tuple(get("labels.colors", list(COLOR_LABELS)))
        self.exiftool = exiftool or ExifToolProcess(self.executable, float(get("exiftool.timeout", DEFAULT_TIMEOUT)))
        self.scanner = scanner or DirectoryScanner(config_manager)

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def list_directory(self, root_path: str, recursive: bool,
                       allowed_extensions: Optional[Iterable[str]] = None) -> List[dict]:
        return self.scanner.list_directory(root_path, recursive, allowed_extensions)

    def list_folders(self, path: str) -> List[dict]:
        return self.scanner.list_folders(path)

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def read_tags(self, path: str) -> dict:
        if not os.path.isfile(path):
            raise NotFoundError(f"File not found: {path}")
        try:
            entries = self.exiftool.execute_json(["-n", *READ_TAGS, path])
        except _EXIF_ERRORS as e:
            raise ReadError(f"exiftool could not read {path}: {e}") from e
        if not entries:
            raise ReadError(f"exiftool returned no metadata for {path}")
        entry = entries[0]
        if "Error" in entry:
            raise ReadError(f"exiftool error for {path}: {entry['Error']}")
        return parse_exiftool_entry(entry)

    def read_tags_batch(self, paths: List[str]) -> Dict[str, dict]:
        """Read rating/label for many files with one exiftool call per chunk.

        Raises ScanError if exiftool is not installed. A failing chunk leaves
        its files at the default tags.
        """
        results: Dict[str, dict] = {p: default_tags() for p in paths}
        if not paths:
            return results
        if not is_exiftool_available(self.executable):
            raise ScanError("exiftool is not available")

        by_norm = {os.path.normcase(os.path.normpath(p)): p for p in paths}
        for start in range(0, len(paths), BATCH_SIZE):
            chunk = paths[start:start + BATCH_SIZE]
            try:
                entries = self.exiftool.execute_json(["-n", *READ_TAGS, *chunk])
            except _EXIF_ERRORS as e:
                logger.warning(f"Metadata batch read failed for {len(chunk)} file(s): {e}")
                continue
            for entry in entries:
                source = entry.get("SourceFile")
                if not source:
                    continue
                original = by_norm.get(os.path.normcase(os.path.normpath(source)))
                if original is None:
                    logger.debug(f"exiftool returned unexpected SourceFile {source}")
                    continue
                results[original] = parse_exiftool_entry(entry)
        return results

    def read_keywords(self, path: str) -> List[str]:
        entries = self.exiftool.execute_json(["-Keywords", "-Subject", path])
        if not entries:
            return []
        entry = entries[0]
        keywords = _as_list(entry.get("Keywords")) or _as_list(entry.get("Subject"))
        return keywords

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def build_write_args(self, rating=UNSET, label=UNSET, existing_keywords: Optional[List[str]] = None) -> List[str]:
        args: List[str] = []
        if rating is not UNSET:
            args += [f"-Rating={rating}", f"-XMP:Rating={rating}", f"-RatingPercent={RATING_PERCENT[rating]}"]
        if label is not UNSET:
            value = label or ""
            args += [f"-Label={value}", f"-XMP:Label={value}"]
            if existing_keywords is not None:
                color_keywords = set(KEYWORD_COLOR_LABELS) | set(self.color_labels)
                keywords = [k for k in existing_keywords if k not in color_keywords]
                if label:
                    keywords.append(label)
                args += ["-Keywords=", "-XMP:Subject="]
                for keyword in keywords:
                    args += [f"-Keywords+={keyword}", f"-XMP:Subject+={keyword}"]
                args.append(f"-XPKeywords={';'.join(keywords)}")
        return args

    def write_tags(self, path: str, rating=UNSET, label=UNSET) -> None:
        """Write the given fields in a single exiftool command (all or nothing).

        ``-overwrite_original`` keeps exiftool from leaving ``*_original`` backups.
        """
        if rating is not UNSET:
            rating = validate_rating(rating)
        if label is not UNSET:
            label = validate_label(label, self.color_labels)
        if rating is UNSET and label is UNSET:
            return
        if not os.path.isfile(path):
            raise WriteError(f"File not found: {path}")

        try:
            keywords = None
            if label is not UNSET and self.sync_keywords:
                keywords = self.read_keywords(path)
            args = self.build_write_args(rating, label, keywords)
            output = self.exiftool.execute([*args, "-overwrite_original", path])
        except _EXIF_ERRORS as e:
            raise WriteError(f"Failed to write metadata to {path}: {e}") from e

        if files_written(output) < 1:
            raise WriteError(
                f"exiftool reported no update writing {path}: {output.decode('utf-8', 'replace').strip()}"
            )
        logger.info(f"Wrote rating={rating!r} label={label!r} to {path}")
