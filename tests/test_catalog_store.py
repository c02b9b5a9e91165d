"""Tests for core.catalog_store: scanning, optimistic edits and write reconciliation."""
import pytest

from conftest import FakeMetadataGateway
from core.catalog_store import CatalogStore, WriteResult
from core.errors import ScanError


def _names(records):
    return [r.name for r in records]


class TestScan:
    def test_records_sorted_by_name(self, fake_gateway):
        store = CatalogStore(fake_gateway)
        records = store.scan("/photos")
        assert _names(records) == ["a.jpg", "b.jpg", "c.jpg", "d.jpg", "e.jpg"]
        assert store.root == "/photos"
        assert store.last_warning is None

    def test_tags_are_attached(self, fake_gateway):
        store = CatalogStore(fake_gateway)
        store.scan("/photos")
        b = store.get(fake_gateway.path("b.jpg"))
        assert (b.rating, b.label) == (5, "Red")

    def test_filters_extensions_case_insensitively(self):
        gateway = FakeMetadataGateway.with_names(("A.JPG", 0, None), ("b.png", 0, None), ("c.gif", 0, None))
        unfiltered = gateway.list_directory
        # Gateway ignores the allow-list; the store must still drop c.gif.
        gateway.list_directory = lambda root, recursive, allowed=None: unfiltered(root, recursive)
        store = CatalogStore(gateway, allowed_extensions=["jpg", "PNG"])
        assert _names(store.scan("/photos")) == ["A.JPG", "b.png"]

    def test_scan_error_degrades_to_empty(self, fake_gateway):
        fake_gateway.scan_error = ScanError("permission denied")
        store = CatalogStore(fake_gateway)
        assert store.scan("/photos") == ()
        assert "permission denied" in store.last_warning
        assert len(store) == 0

    def test_unexpected_gateway_exception_degrades_to_empty(self, fake_gateway):
        fake_gateway.scan_error = RuntimeError("exiftool exploded")
        store = CatalogStore(fake_gateway)
        assert store.scan("/photos") == ()
        assert store.last_warning

    def test_unreadable_file_keeps_defaults(self, fake_gateway):
        fake_gateway.unreadable.add(fake_gateway.path("b.jpg"))
        store = CatalogStore(fake_gateway)
        store.scan("/photos")
        b = store.get(fake_gateway.path("b.jpg"))
        assert (b.rating, b.label) == (0, None)
        assert len(store) == 5

    def test_out_of_range_rating_is_unrated(self):
        gateway = FakeMetadataGateway.with_names(("a.jpg", 9, None))
        store = CatalogStore(gateway)
        store.scan("/photos")
        assert store.records()[0].rating == 0

    def test_empty_label_is_none(self):
        gateway = FakeMetadataGateway.with_names(("a.jpg", 1, ""))
        store = CatalogStore(gateway)
        store.scan("/photos")
        assert store.records()[0].label is None

    def test_rescan_replaces_everything(self, fake_gateway):
        store = CatalogStore(fake_gateway)
        store.scan("/photos")
        token = store.apply_optimistic(fake_gateway.path("a.jpg"), rating=2)
        assert token == 1

        fake_gateway.files = {"/other/z.jpg": {"rating": 1, "label": None}}
        records = store.scan("/other")
        assert _names(records) == ["z.jpg"]
        assert store.get(fake_gateway.path("a.jpg")) is None
        assert store.version(fake_gateway.path("a.jpg")) == 0

    def test_duplicate_entries_are_collapsed(self, fake_gateway):
        original = fake_gateway.list_directory

        def doubled(*args, **kwargs):
            entries = original(*args, **kwargs)
            return entries + entries

        fake_gateway.list_directory = doubled
        store = CatalogStore(fake_gateway)
        assert len(store.scan("/photos")) == 5


class TestOptimisticEdits:
    @pytest.fixture()
    def store(self, fake_gateway):
        store = CatalogStore(fake_gateway)
        store.scan("/photos")
        return store

    def test_only_given_fields_change(self, store, fake_gateway):
        path = fake_gateway.path("b.jpg")
        store.apply_optimistic(path, label="Green")
        record = store.get(path)
        assert (record.rating, record.label) == (5, "Green")

    def test_tokens_increase_per_path(self, store, fake_gateway):
        path = fake_gateway.path("a.jpg")
        assert store.apply_optimistic(path, rating=1) == 1
        assert store.apply_optimistic(path, rating=2) == 2
        assert store.apply_optimistic(fake_gateway.path("c.jpg"), rating=2) == 1

    def test_unknown_path_is_ignored(self, store):
        assert store.apply_optimistic("/nowhere/x.jpg", rating=3) is None

    def test_bad_rating_rejected_without_change(self, store, fake_gateway):
        path = fake_gateway.path("a.jpg")
        with pytest.raises(ValueError):
            store.apply_optimistic(path, rating=6)
        assert store.get(path).rating == 0
        assert store.version(path) == 0

    def test_label_can_be_cleared(self, store, fake_gateway):
        path = fake_gateway.path("b.jpg")
        store.apply_optimistic(path, label=None)
        assert store.get(path).label is None


class TestConfirm:
    @pytest.fixture()
    def store(self, fake_gateway):
        store = CatalogStore(fake_gateway)
        store.scan("/photos")
        return store

    def test_current_success(self, store, fake_gateway):
        path = fake_gateway.path("a.jpg")
        token = store.apply_optimistic(path, rating=4)
        assert store.confirm(path, token, WriteResult.success()) is True
        assert store.get(path).rating == 4

    def test_failure_keeps_optimistic_value(self, store, fake_gateway):
        path = fake_gateway.path("a.jpg")
        token = store.apply_optimistic(path, rating=4)
        assert store.confirm(path, token, WriteResult.failure("disk full")) is True
        assert store.get(path).rating == 4
        assert store.failed_writes[path] == "disk full"

    def test_later_success_clears_failure(self, store, fake_gateway):
        path = fake_gateway.path("a.jpg")
        first = store.apply_optimistic(path, rating=4)
        store.confirm(path, first, WriteResult.failure("disk full"))
        second = store.apply_optimistic(path, rating=3)
        store.confirm(path, second, WriteResult.success())
        assert path not in store.failed_writes

    def test_stale_response_is_not_authoritative(self, store, fake_gateway):
        path = fake_gateway.path("a.jpg")
        first = store.apply_optimistic(path, rating=2)
        second = store.apply_optimistic(path, rating=5)
        # Second write finishes first, then the slow first one fails.
        assert store.confirm(path, second, WriteResult.success()) is True
        assert store.confirm(path, first, WriteResult.failure("timeout")) is False
        assert store.get(path).rating == 5
        assert path not in store.failed_writes

    def test_confirm_after_rescan(self, store, fake_gateway):
        path = fake_gateway.path("a.jpg")
        token = store.apply_optimistic(path, rating=2)
        fake_gateway.files = {}
        store.scan("/photos")
        assert store.confirm(path, token, WriteResult.success()) is False

    def test_tokens_survive_rescan(self, store, fake_gateway):
        path = fake_gateway.path("a.jpg")
        old = store.apply_optimistic(path, rating=3)
        store.scan("/photos")
        new = store.apply_optimistic(path, rating=5)
        assert new > old

        assert store.confirm(path, new, WriteResult.success()) is True
        assert store.confirm(path, old, WriteResult.failure("disk full")) is False
        assert path not in store.failed_writes
        assert store.get(path).rating == 5

    def test_stale_success_after_rescan_keeps_failure(self, store, fake_gateway):
        path = fake_gateway.path("a.jpg")
        old = store.apply_optimistic(path, rating=3)
        store.scan("/photos")
        new = store.apply_optimistic(path, rating=5)
        store.confirm(path, new, WriteResult.failure("disk full"))
        assert store.confirm(path, old, WriteResult.success()) is False
        assert store.failed_writes[path] == "disk full"

    def test_path_that_returns_after_rescan(self, store, fake_gateway):
        path = fake_gateway.path("a.jpg")
        saved = dict(fake_gateway.files)
        old = store.apply_optimistic(path, rating=2)
        fake_gateway.files = {}
        store.scan("/photos")
        assert store.confirm(path, old, WriteResult.success()) is False

        fake_gateway.files = saved
        store.scan("/photos")
        new = store.apply_optimistic(path, rating=4)
        assert new != old
        assert store.confirm(path, old, WriteResult.failure("late")) is False
        assert path not in store.failed_writes
