"""
Local HTTP API for listing photos, rendering previews and editing metadata.

All endpoints live under ``/api``. The server keeps no state between
requests: every listing is a fresh scan and all metadata lives in the image
files. Gateway failures are turned into default values or error JSON here,
never into an unhandled exception.
"""

import logging
import os
from typing import Callable, List, Optional

from flask import Flask, Response, jsonify, request

from core.catalog_store import CatalogStore
from core.errors import NotFoundError, ReadError, ScanError, WriteError
from core.file_ops import copy_files as _local_copy_files
from core.gateways import default_tags
from core.models import UNSET, validate_label, validate_rating
from . import protocol

logger = logging.getLogger(__name__)

_TRUE_STRINGS = {"1", "true", "yes", "on"}


def _parse_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in _TRUE_STRINGS


def _error(message: str, status: int):
    return jsonify(protocol.ErrorResponse(error=message).model_dump()), status


def create_app(config_manager, metadata_gateway, thumbnail_gateway,
               copy_files: Callable[[List[str], str], int] = _local_copy_files) -> Flask:
    """Build the Flask app around the given gateways."""
    app = Flask("photopicks")
    app.json.sort_keys = False

    default_root = os.path.expanduser(config_manager.get("server.default_root", os.getcwd()))
    allowed_extensions = config_manager.get("scan.allowed_extensions", ["jpg", "jpeg", "png"])
    color_labels = config_manager.get("labels.colors", ["Red", "Yellow", "Green", "Blue"])
    thumb_size = int(config_manager.get("thumbnail.max_size", 300))
    thumb_quality = int(config_manager.get("thumbnail.quality", 80))
    view_size = int(config_manager.get("view_image.max_size", 2560))
    view_quality = int(config_manager.get("view_image.quality", 92))

    def _resolve(path: Optional[str]) -> str:
        # Local single-user tool: any readable path is fair game.
        if not path:
            return default_root
        return os.path.abspath(os.path.expanduser(path))

    @app.after_request
    def _add_cors_headers(response):
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        return response

    @app.get("/")
    def index():
        return Response("PhotoPicks server is running. Start the triage window with `photopicks gui`.",
                        mimetype="text/plain")

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    @app.get("/api/photos")
    def list_photos():
        folder_path = _resolve(request.args.get("path"))
        recursive = _parse_bool(request.args.get("recursive"))
        store = CatalogStore(metadata_gateway, allowed_extensions)
        records = store.scan(folder_path, recursive)
        payload = protocol.PhotosResponse(
            path=folder_path,
            photos=[protocol.PhotoEntry(**r.to_dict()) for r in records],
            warning=store.last_warning,
        )
        return jsonify(payload.model_dump())

    @app.get("/api/folders")
    def list_folders():
        folder_path = _resolve(request.args.get("path"))
        try:
            folders = metadata_gateway.list_folders(folder_path)
        except ScanError as e:
            logger.warning(f"Cannot list folders of {folder_path}: {e}")
            return _error(str(e), 404)
        payload = protocol.FoldersResponse(
            path=folder_path,
            folders=[protocol.FolderEntry(**f) for f in folders],
        )
        return jsonify(payload.model_dump())

    # ------------------------------------------------------------------
    # Previews
    # ------------------------------------------------------------------

    def _render(file_path: Optional[str], size: int, quality: int, max_age: int):
        if not file_path:
            return _error("Missing file path", 400)
        try:
            data = thumbnail_gateway.render_thumbnail(file_path, size, size, quality)
        except NotFoundError:
            return _error("File not found", 404)
        except ReadError as e:
            logger.error(f"Error rendering {file_path}: {e}")
            return _error("Error generating image", 500)
        return Response(data, mimetype="image/jpeg", headers={"Cache-Control": f"private, max-age={max_age}"})

    @app.get("/api/thumbnail")
    def thumbnail():
        return _render(request.args.get("file"), thumb_size, thumb_quality, max_age=300)

    @app.get("/api/image")
    def image():
        return _render(request.args.get("file"), view_size, view_quality, max_age=60)

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    @app.get("/api/metadata")
    def get_metadata():
        file_path = request.args.get("file")
        if not file_path:
            return _error("Missing file path", 400)
        try:
            tags = metadata_gateway.read_tags(file_path)
        except ReadError as e:
            # why: a single unreadable file shows as unrated instead of failing the view
            logger.warning(f"Error reading metadata for {file_path}: {e}")
            tags = default_tags()
        return jsonify(protocol.MetadataResponse(**tags).model_dump())

    @app.post("/api/metadata")
    def update_metadata():
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            return _error("Expected a JSON object", 400)
        req = protocol.UpdateMetadataRequest.model_validate(body)
        if not req.file:
            return _error("Missing file path", 400)

        fields = {}
        try:
            if "rating" in body and body["rating"] is not None:
                fields["rating"] = validate_rating(body["rating"])
            if "label" in body:
                fields["label"] = validate_label(body["label"], color_labels)
        except ValueError as e:
            return _error(str(e), 400)
        if not fields:
            return _error("Nothing to update: provide rating and/or label", 400)

        try:
            metadata_gateway.write_tags(req.file, rating=fields.get("rating", UNSET),
                                        label=fields.get("label", UNSET))
        except WriteError as e:
            logger.error(f"Error writing metadata: {e}")
            return _error(str(e), 500)
        return jsonify(protocol.SuccessResponse().model_dump())

    # ------------------------------------------------------------------
    # Copy
    # ------------------------------------------------------------------

    @app.post("/api/copy-files")
    def copy_selected_files():
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            return _error("Expected a JSON object", 400)
        try:
            req = protocol.CopyFilesRequest.model_validate(body)
        except (TypeError, ValueError) as e:
            return _error(str(e), 400)
        if not req.destination:
            return _error("Missing destination", 400)
        if not isinstance(req.files, list) or not all(isinstance(f, str) for f in req.files):
            return _error("files must be a list of paths", 400)

        destination = os.path.abspath(os.path.expanduser(req.destination))
        count = copy_files(req.files, destination)
        return jsonify(protocol.CopyFilesResponse(count=count).model_dump())

    return app
