"""HTTP client for the PhotoPicks server.

Pure stdlib (urllib), no Qt dependency. Implements the MetadataGateway and
ThumbnailGateway contracts on top of the ``/api`` endpoints so the triage
session can run against a server process. Transport errors and timeouts are
mapped onto ``core.errors``.
"""

import json
import logging
import os
import socket
import urllib.error
import urllib.parse
import urllib.request
from typing import Dict, Iterable, List, Optional

from core.errors import CopyError, NotFoundError, ReadError, ScanError, WriteError
from core.gateways import default_tags
from core.models import UNSET, normalize_extensions
from . import protocol

logger = logging.getLogger(__name__)

_TRANSPORT_ERRORS = (urllib.error.URLError, socket.timeout, TimeoutError, ConnectionError, ValueError)


class ApiError(Exception):
    """Non-2xx answer from the server."""

    def __init__(self, status: int, message: str):
        super().__init__(f"HTTP {status}: {message}")
        self.status = status
        self.message = message


class PhotoPicksClient:
    """Talks to a running PhotoPicks server over REST."""

    def __init__(self, base_url: str = "http://127.0.0.1:3001", timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        # Tags delivered with the last listing, so read_tags_batch after a
        # scan costs no extra round-trips.
        self._listed_tags: Dict[str, dict] = {}

    # ── Transport ────────────────────────────────────────────────

    def _url(self, endpoint: str, **params) -> str:
        query = urllib.parse.urlencode({k: v for k, v in params.items() if v is not None})
        return f"{self.base_url}/api/{endpoint}" + (f"?{query}" if query else "")

    def _request(self, url: str, payload: Optional[dict] = None) -> bytes:
        data = None
        headers = {}
        if payload is not None:
            data = json.dumps(payload).encode()
            headers["Content-Type"] = "application/json"
        req = urllib.request.Request(url, data=data, headers=headers,
                                     method="POST" if payload is not None else "GET")
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                return resp.read()
        except urllib.error.HTTPError as e:
            message = e.reason
            try:
                message = json.loads(e.read().decode()).get("error", message)
            except (ValueError, AttributeError, OSError):
                pass  # non-JSON error body: keep the HTTP reason
            raise ApiError(e.code, str(message)) from e

    def _get_json(self, endpoint: str, **params) -> dict:
        return json.loads(self._request(self._url(endpoint, **params)).decode())

    def _post_json(self, endpoint: str, payload: dict) -> dict:
        return json.loads(self._request(self._url(endpoint), payload).decode())

    def ping(self) -> bool:
        try:
            self._request(f"{self.base_url}/")
            return True
        except (ApiError, *_TRANSPORT_ERRORS):
            return False

    # ── Listing ──────────────────────────────────────────────────

    def list_photos(self, root_path: str, recursive: bool = False) -> protocol.PhotosResponse:
        try:
            data = self._get_json("photos", path=root_path, recursive=str(recursive).lower())
        except (ApiError, *_TRANSPORT_ERRORS) as e:
            raise ScanError(f"Could not list {root_path}: {e}") from e
        return protocol.PhotosResponse.model_validate(data)

    def list_directory(self, root_path: str, recursive: bool,
                       allowed_extensions: Optional[Iterable[str]] = None) -> List[dict]:
        response = self.list_photos(root_path, recursive)
        if response.warning:
            # The server already degraded to an empty listing; keep the reason.
            raise ScanError(response.warning)
        allowed = normalize_extensions(allowed_extensions) if allowed_extensions is not None else None
        entries = []
        self._listed_tags = {}
        for photo in response.photos:
            if allowed is not None and os.path.splitext(photo.name)[1].lower().lstrip(".") not in allowed:
                continue
            entries.append({"path": photo.path, "name": photo.name, "size": photo.size, "mtime": photo.mtime})
            self._listed_tags[photo.path] = {"rating": photo.rating, "label": photo.label}
        return entries

    def list_folders(self, path: str) -> List[dict]:
        try:
            data = self._get_json("folders", path=path)
        except (ApiError, *_TRANSPORT_ERRORS) as e:
            raise ScanError(f"Could not list folders of {path}: {e}") from e
        response = protocol.FoldersResponse.model_validate(data)
        return [{"name": f.name, "path": f.path} for f in response.folders]

    # ── Metadata ─────────────────────────────────────────────────

    def read_tags(self, path: str) -> dict:
        try:
            data = self._get_json("metadata", file=path)
        except ApiError as e:
            if e.status == 404:
                raise NotFoundError(path) from e
            raise ReadError(f"Could not read metadata for {path}: {e}") from e
        except _TRANSPORT_ERRORS as e:
            raise ReadError(f"Could not read metadata for {path}: {e}") from e
        response = protocol.MetadataResponse.model_validate(data)
        return {"rating": response.rating, "label": response.label or None}

    def read_tags_batch(self, paths: List[str]) -> Dict[str, dict]:
        results = {}
        for path in paths:
            cached = self._listed_tags.get(path)
            if cached is not None:
                results[path] = dict(cached)
                continue
            try:
                results[path] = self.read_tags(path)
            except ReadError as e:
                logger.warning(f"Metadata read failed for {path}: {e}")
                results[path] = default_tags()
        return results

    def write_tags(self, path: str, rating=UNSET, label=UNSET) -> None:
        payload = {"file": path}
        if rating is not UNSET:
            payload["rating"] = rating
        if label is not UNSET:
            payload["label"] = label
        try:
            self._post_json("metadata", payload)
        except (ApiError, *_TRANSPORT_ERRORS) as e:
            raise WriteError(f"Failed to save metadata for {path}: {e}") from e
        # The listing cache must not resurrect the old values on a later read.
        cached = self._listed_tags.get(path)
        if cached is not None:
            if rating is not UNSET:
                cached["rating"] = rating
            if label is not UNSET:
                cached["label"] = label

    # ── Images ───────────────────────────────────────────────────

    def render_thumbnail(self, path: str, max_width: int = 300, max_height: int = 300,
                         quality: Optional[int] = None) -> bytes:
        """Fetch the server's thumbnail. Bounds and quality are fixed by server config."""
        return self._fetch_image("thumbnail", path)

    def fetch_view_image(self, path: str) -> bytes:
        return self._fetch_image("image", path)

    def _fetch_image(self, endpoint: str, path: str) -> bytes:
        try:
            return self._request(self._url(endpoint, file=path))
        except ApiError as e:
            if e.status == 404:
                raise NotFoundError(path) from e
            raise ReadError(f"Could not fetch {endpoint} for {path}: {e}") from e
        except _TRANSPORT_ERRORS as e:
            raise ReadError(f"Could not fetch {endpoint} for {path}: {e}") from e

    # ── Copy ─────────────────────────────────────────────────────

    def copy_files(self, paths: List[str], destination: str) -> int:
        try:
            data = self._post_json("copy-files", {"files": list(paths), "destination": destination})
        except (ApiError, *_TRANSPORT_ERRORS) as e:
            raise CopyError(f"Copy to {destination} failed: {e}") from e
        return protocol.CopyFilesResponse.model_validate(data).count
