"""
Shared pytest fixtures for PhotoPicks tests.
"""
import os
import sys
import threading

# Ensure project root is on path for all tests
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import pytest
from PIL import Image

from core.errors import NotFoundError, ReadError, ScanError, WriteError
from core.event_system import EventSystem
from core.gateways import default_tags
from core.models import UNSET, normalize_extensions, normalize_label


class MockConfigManager:
    """Minimal ConfigManager substitute that accepts a plain dict."""

    def __init__(self, overrides: dict | None = None):
        self._cfg: dict = {
            "scan": {"allowed_extensions": ["jpg", "jpeg", "png"], "ignore_patterns": ["._*"]},
            "labels": {"colors": ["Red", "Yellow", "Green", "Blue"], "sync_keywords": True},
            "thumbnail": {"max_size": 300, "quality": 80},
            "view_image": {"max_size": 2560, "quality": 92},
        }
        if overrides:
            self._cfg.update(overrides)

    def get(self, key: str, default=None):
        keys = key.split(".")
        val = self._cfg
        for k in keys:
            if isinstance(val, dict):
                val = val.get(k)
            else:
                return default
        return val if val is not None else default

    @property
    def allowed_extensions(self):
        return self.get("scan.allowed_extensions")

    @property
    def color_labels(self):
        return self.get("labels.colors")


class FakeMetadataGateway:
    """In-memory MetadataGateway. ``files`` maps path -> {rating, label}.

    ``write_gate`` (a threading.Event) holds writes until set, so tests can
    control completion order.
    """

    def __init__(self, files: dict | None = None, root: str = "/photos"):
        self.root = root
        self.files = {path: dict(tags) for path, tags in (files or {}).items()}
        self.scan_error = None
        self.unreadable = set()
        self.failing_writes = set()
        self.write_gate = None
        self.writes = []
        self._lock = threading.Lock()

    @classmethod
    def with_names(cls, *specs, root="/photos"):
        """``with_names(("a.jpg", 0, None), ("b.jpg", 5, "Red"))``"""
        return cls({f"{root}/{name}": {"rating": rating, "label": label} for name, rating, label in specs},
                   root=root)

    def path(self, name: str) -> str:
        return f"{self.root}/{name}"

    def list_directory(self, root_path, recursive, allowed_extensions=None):
        if self.scan_error:
            raise self.scan_error
        allowed = normalize_extensions(allowed_extensions) if allowed_extensions is not None else None
        entries = []
        for path in self.files:
            if allowed is not None and os.path.splitext(path)[1].lower().lstrip(".") not in allowed:
                continue
            entries.append({"path": path, "name": os.path.basename(path), "size": 1, "mtime": 0.0})
        # Unordered on purpose: the catalog must sort.
        return list(reversed(entries))

    def list_folders(self, path):
        if path != self.root:
            raise ScanError(f"Not a directory: {path}")
        return [{"name": "2024", "path": f"{self.root}/2024"}]

    def read_tags(self, path):
        if path not in self.files:
            raise NotFoundError(path)
        if path in self.unreadable:
            raise ReadError(path)
        return dict(self.files[path])

    def read_tags_batch(self, paths):
        results = {}
        for path in paths:
            try:
                results[path] = self.read_tags(path)
            except ReadError:
                results[path] = default_tags()
        return results

    def write_tags(self, path, rating=UNSET, label=UNSET):
        if self.write_gate is not None:
            self.write_gate.wait(5)
        with self._lock:
            self.writes.append((path, rating, label))
            if path in self.failing_writes:
                raise WriteError(f"disk full: {path}")
            if path not in self.files:
                raise WriteError(f"File not found: {path}")
            if rating is not UNSET:
                self.files[path]["rating"] = rating
            if label is not UNSET:
                self.files[path]["label"] = normalize_label(label)


class FakeThumbnailGateway:
    def __init__(self, data: bytes = b"\xff\xd8fake-jpeg"):
        self.data = data
        self.calls = []
        self.missing = set()
        self.broken = set()

    def render_thumbnail(self, path, max_width, max_height, quality=None):
        self.calls.append((path, max_width, max_height, quality))
        if path in self.missing:
            raise NotFoundError(path)
        if path in self.broken:
            raise ReadError(f"cannot decode {path}")
        return self.data


class RecordingEvents(EventSystem):
    """EventSystem that also keeps every published event, ephemeral ones included."""

    def __init__(self):
        super().__init__()
        self.published = []

    def publish(self, event_data):
        self.published.append(event_data)
        super().publish(event_data)

    def of_type(self, event_type):
        return [e for e in self.published if e.event_type == event_type]


@pytest.fixture()
def config():
    return MockConfigManager()


@pytest.fixture()
def events():
    return RecordingEvents()


@pytest.fixture()
def fake_gateway():
    """Five photos a-e; b and d rated, c labelled."""
    return FakeMetadataGateway.with_names(
        ("a.jpg", 0, None),
        ("b.jpg", 5, "Red"),
        ("c.jpg", 3, "Green"),
        ("d.jpg", 4, None),
        ("e.jpg", 1, None),
    )


@pytest.fixture()
def sample_images(tmp_path):
    """Creates 5 small JPEG images plus a PNG and a text file; returns the JPEG paths."""
    img_dir = tmp_path / "images"
    img_dir.mkdir()
    paths: list[str] = []
    for i in range(5):
        path = img_dir / f"image_{i:04d}.jpg"
        color = (i * 40 % 255, i * 7 % 255, i * 3 % 255)
        Image.new("RGB", (800, 600), color=color).save(str(path), "JPEG")
        paths.append(str(path))
    Image.new("RGB", (64, 64), color=(0, 0, 255)).save(str(img_dir / "graphic.png"), "PNG")
    (img_dir / "notes.txt").write_text("not an image")
    return paths
