# core/file_ops.py
"""Batch file copy for exporting picks.

Public functions accept ``List[str]`` of image paths. A failure on one file is
logged and skipped; the batch always runs to the end.
"""
import logging
import os
import shutil
from typing import List

from core.errors import CopyError

logger = logging.getLogger(__name__)


def resolve_sidecars(image_path: str) -> List[str]:
    """Return existing XMP sidecar paths for *image_path* (``photo.jpg.xmp`` and ``photo.xmp``)."""
    candidates = [image_path + ".xmp", os.path.splitext(image_path)[0] + ".xmp"]
    return [p for p in dict.fromkeys(candidates) if os.path.exists(p)]


def _copy_one(path: str, destination: str) -> str:
    if not os.path.isfile(path):
        raise CopyError(f"Source file not found: {path}")
    target = os.path.join(destination, os.path.basename(path))
    try:
        # copy2 overwrites an existing target of the same name
        shutil.copy2(path, target)
    except (OSError, shutil.Error) as e:
        raise CopyError(f"Failed to copy {path}: {e}") from e
    return target


def copy_files(file_paths: List[str], destination: str, with_sidecars: bool = True) -> int:
    """Copy *file_paths* into *destination* and return how many images were copied.

    The destination is created when missing. Name collisions overwrite.
    Sidecar failures are non-fatal and don't affect the count.
    """
    try:
        os.makedirs(destination, exist_ok=True)
    except OSError as e:
        logger.error(f"Cannot create destination {destination}: {e}")
        return 0

    succeeded, failed = 0, 0
    for path in file_paths:
        try:
            _copy_one(path, destination)
            succeeded += 1
        except CopyError as e:
            logger.warning(str(e))
            failed += 1
            continue

        if not with_sidecars:
            continue
        for sidecar in resolve_sidecars(path):
            try:
                _copy_one(sidecar, destination)
                logger.debug(f"Copied sidecar: {sidecar}")
            except CopyError as e:
                logger.warning(f"Failed to copy sidecar {sidecar}: {e}")

    logger.info(f"copy_files: {succeeded} copied, {failed} failed out of {len(file_paths)} -> {destination}")
    return succeeded
