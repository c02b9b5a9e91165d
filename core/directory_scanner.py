import os
import logging
import time
import fnmatch
from typing import Iterable, List, Optional

from core.errors import ScanError
from core.models import DEFAULT_ALLOWED_EXTENSIONS, normalize_extensions


class DirectoryScanner:
    """Lists image files and sub-folders of a directory."""

    def __init__(self, config_manager=None):
        self.config_manager = config_manager
        self.ignore_patterns = config_manager.get("scan.ignore_patterns", ["._*"]) if config_manager else ["._*"]
        self.show_hidden_folders = config_manager.get("scan.show_hidden_folders", False) if config_manager else False
        extensions = config_manager.get("scan.allowed_extensions", None) if config_manager else None
        self.allowed_extensions = normalize_extensions(extensions or DEFAULT_ALLOWED_EXTENSIONS)

    def is_supported_file(self, file_path: str, allowed_extensions: Optional[frozenset] = None) -> bool:
        """Check the name against the ignore patterns and the extension allow-list (case-insensitive)."""
        filename = os.path.basename(file_path)

        for pattern in self.ignore_patterns:
            if fnmatch.fnmatch(filename, pattern):
                logging.debug(f"Skipping file {file_path}: matches ignore pattern '{pattern}'")
                return False

        _, ext = os.path.splitext(filename)
        allowed = self.allowed_extensions if allowed_extensions is None else allowed_extensions
        return ext.lower().lstrip(".") in allowed

    def _entry(self, full_path: str) -> Optional[dict]:
        try:
            st = os.stat(full_path)
        except OSError as e:
            logging.debug(f"stat failed for {full_path}: {e}")
            return None
        return {
            "path": full_path,
            "name": os.path.basename(full_path),
            "size": st.st_size,
            "mtime": st.st_mtime,
        }

    def list_directory(self, directory_path: str, recursive: bool = False,
                       allowed_extensions: Optional[Iterable[str]] = None) -> List[dict]:
        """Return ``[{path, name, size, mtime}]`` for every supported file.

        Raises ScanError if *directory_path* is not a readable directory.
        Unreadable sub-directories of a recursive walk are skipped.
        """
        allowed = self.allowed_extensions if allowed_extensions is None else normalize_extensions(allowed_extensions)
        directory_path = os.path.abspath(directory_path)
        if not os.path.isdir(directory_path):
            raise ScanError(f"Not a directory: {directory_path}")

        scan_start = time.monotonic()
        found: List[dict] = []

        if recursive:
            def _on_error(e: OSError):
                if os.path.normpath(e.filename or "") == directory_path:
                    raise ScanError(f"Cannot read directory {directory_path}: {e}") from e
                logging.warning(f"Skipping unreadable directory {e.filename}: {e}")

            for root, dirs, files in os.walk(directory_path, onerror=_on_error):
                if not self.show_hidden_folders:
                    dirs[:] = [d for d in dirs if not d.startswith(".")]
                for filename in files:
                    full_path = os.path.join(root, filename)
                    if self.is_supported_file(full_path, allowed):
                        entry = self._entry(full_path)
                        if entry:
                            found.append(entry)
        else:
            try:
                names = os.listdir(directory_path)
            except OSError as e:
                raise ScanError(f"Cannot read directory {directory_path}: {e}") from e
            for filename in names:
                full_path = os.path.join(directory_path, filename)
                if os.path.isfile(full_path) and self.is_supported_file(full_path, allowed):
                    entry = self._entry(full_path)
                    if entry:
                        found.append(entry)

        elapsed = time.monotonic() - scan_start
        logging.info(f"Listed {len(found)} file(s) in {directory_path} (recursive={recursive}, {elapsed:.3f}s)")
        return found

    def list_folders(self, directory_path: str) -> List[dict]:
        """Return the immediate sub-folders of *directory_path* as ``[{name, path}]``, sorted by name."""
        directory_path = os.path.abspath(directory_path)
        if not os.path.isdir(directory_path):
            raise ScanError(f"Not a directory: {directory_path}")
        try:
            with os.scandir(directory_path) as it:
                folders = [
                    {"name": entry.name, "path": entry.path}
                    for entry in it
                    if entry.is_dir() and (self.show_hidden_folders or not entry.name.startswith("."))
                ]
        except OSError as e:
            raise ScanError(f"Cannot read directory {directory_path}: {e}") from e
        folders.sort(key=lambda f: f["name"].lower())
        return folders
