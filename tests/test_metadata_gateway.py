"""Tests for plugins.metadata_gateway: exiftool argument building and output parsing.

The exiftool process is mocked; the integration class at the bottom runs the
real binary and is skipped when it is not installed.
"""
import json
import os
import shutil
from unittest.mock import MagicMock, patch

import pytest

from conftest import MockConfigManager
from core.errors import NotFoundError, ReadError, ScanError, WriteError
from core.models import UNSET
from plugins.metadata_gateway import (
    ExifToolMetadataGateway, files_written, parse_exiftool_entry,
)


def _gateway(sync_keywords=True, **exif_kwargs):
    exiftool = MagicMock(**exif_kwargs)
    config = MockConfigManager({"labels": {"colors": ["Red", "Yellow", "Green", "Blue"],
                                           "sync_keywords": sync_keywords}})
    return ExifToolMetadataGateway(config, exiftool=exiftool), exiftool


@pytest.fixture()
def image(tmp_path):
    path = tmp_path / "a.jpg"
    path.write_bytes(b"\xff\xd8")
    return str(path)


class TestParsing:
    def test_parse_entry(self):
        assert parse_exiftool_entry({"SourceFile": "x", "Rating": 4, "Label": "Red"}) == {"rating": 4, "label": "Red"}

    def test_parse_entry_defaults(self):
        assert parse_exiftool_entry({"SourceFile": "x"}) == {"rating": 0, "label": None}

    @pytest.mark.parametrize("raw", [-1, 50, "junk"])
    def test_unusable_rating_is_unrated(self, raw):
        assert parse_exiftool_entry({"SourceFile": "x", "Rating": raw})["rating"] == 0

    def test_empty_label_is_none(self):
        assert parse_exiftool_entry({"SourceFile": "x", "Label": ""})["label"] is None

    def test_files_written(self):
        assert files_written(b"    1 image files updated\n") == 1
        assert files_written(b"    1 image files unchanged\n") == 1
        assert files_written(b"    0 image files updated\n    1 files weren't updated due to errors\n") == 0


class TestReadTags:
    def test_read_tags(self, image):
        gateway, exiftool = _gateway(**{"execute_json.return_value": [{"SourceFile": image, "Rating": 3}]})
        assert gateway.read_tags(image) == {"rating": 3, "label": None}
        args = exiftool.execute_json.call_args[0][0]
        assert args[-1] == image and "-Rating" in args and "-Label" in args

    def test_missing_file(self, tmp_path):
        gateway, exiftool = _gateway()
        with pytest.raises(NotFoundError):
            gateway.read_tags(str(tmp_path / "gone.jpg"))
        exiftool.execute_json.assert_not_called()

    def test_exiftool_error_entry(self, image):
        gateway, _ = _gateway(**{"execute_json.return_value": [{"SourceFile": image, "Error": "File format error"}]})
        with pytest.raises(ReadError):
            gateway.read_tags(image)

    def test_process_failure(self, image):
        gateway, _ = _gateway(**{"execute_json.side_effect": TimeoutError("slow")})
        with pytest.raises(ReadError):
            gateway.read_tags(image)


class TestReadTagsBatch:
    def test_maps_results_back_to_input_paths(self):
        gateway, _ = _gateway(**{"execute_json.return_value": [
            {"SourceFile": "/p/./b.jpg", "Rating": 5, "Label": "Red"},
            {"SourceFile": "/p/a.jpg", "Rating": 1},
        ]})
        with patch("plugins.metadata_gateway.is_exiftool_available", return_value=True):
            result = gateway.read_tags_batch(["/p/a.jpg", "/p/b.jpg", "/p/c.jpg"])
        assert result == {
            "/p/a.jpg": {"rating": 1, "label": None},
            "/p/b.jpg": {"rating": 5, "label": "Red"},
            "/p/c.jpg": {"rating": 0, "label": None},
        }

    def test_chunks_large_batches(self):
        gateway, exiftool = _gateway(**{"execute_json.return_value": []})
        paths = [f"/p/{i}.jpg" for i in range(450)]
        with patch("plugins.metadata_gateway.is_exiftool_available", return_value=True):
            gateway.read_tags_batch(paths)
        assert exiftool.execute_json.call_count == 3

    def test_failed_chunk_keeps_defaults(self):
        gateway, _ = _gateway(**{"execute_json.side_effect": RuntimeError("closed")})
        with patch("plugins.metadata_gateway.is_exiftool_available", return_value=True):
            result = gateway.read_tags_batch(["/p/a.jpg"])
        assert result == {"/p/a.jpg": {"rating": 0, "label": None}}

    def test_exiftool_missing_is_scan_error(self):
        gateway, _ = _gateway()
        with patch("plugins.metadata_gateway.is_exiftool_available", return_value=False):
            with pytest.raises(ScanError):
                gateway.read_tags_batch(["/p/a.jpg"])

    def test_empty_input_needs_no_exiftool(self):
        gateway, exiftool = _gateway()
        assert gateway.read_tags_batch([]) == {}
        exiftool.execute_json.assert_not_called()


class TestWriteArgs:
    def test_rating_only(self):
        gateway, _ = _gateway()
        assert gateway.build_write_args(rating=4) == ["-Rating=4", "-XMP:Rating=4", "-RatingPercent=75"]

    def test_label_without_keyword_sync(self):
        gateway, _ = _gateway()
        assert gateway.build_write_args(label="Red") == ["-Label=Red", "-XMP:Label=Red"]

    def test_clearing_label_writes_empty_value(self):
        gateway, _ = _gateway()
        assert gateway.build_write_args(label=None) == ["-Label=", "-XMP:Label="]

    def test_keyword_sync_replaces_color_keywords(self):
        gateway, _ = _gateway()
        args = gateway.build_write_args(label="Green", existing_keywords=["beach", "Red", "Purple"])
        assert "-Keywords=" in args and "-XMP:Subject=" in args
        assert "-Keywords+=beach" in args and "-Keywords+=Green" in args
        assert "-Keywords+=Red" not in args and "-Keywords+=Purple" not in args
        assert args[-1] == "-XPKeywords=beach;Green"

    def test_keyword_sync_strips_configured_colors(self):
        config = MockConfigManager({"labels": {"colors": ["Red", "Pink"], "sync_keywords": True}})
        gateway = ExifToolMetadataGateway(config, exiftool=MagicMock())
        args = gateway.build_write_args(label="Red", existing_keywords=["Pink", "trip"])
        assert "-Keywords+=Pink" not in args
        assert args[-1] == "-XPKeywords=trip;Red"


class TestWriteTags:
    def test_single_command_with_overwrite_original(self, image):
        gateway, exiftool = _gateway(sync_keywords=False,
                                     **{"execute.return_value": b"    1 image files updated\n"})
        gateway.write_tags(image, rating=5, label="Blue")
        exiftool.execute.assert_called_once()
        args = exiftool.execute.call_args[0][0]
        assert args[-2:] == ["-overwrite_original", image]
        assert "-Rating=5" in args and "-Label=Blue" in args

    def test_keyword_sync_reads_existing_keywords(self, image):
        gateway, exiftool = _gateway(**{
            "execute.return_value": b"    1 image files updated\n",
            "execute_json.return_value": [{"SourceFile": image, "Keywords": ["trip", "Yellow"]}],
        })
        gateway.write_tags(image, label="Red")
        args = exiftool.execute.call_args[0][0]
        assert "-Keywords+=trip" in args and "-Keywords+=Red" in args
        assert "-Keywords+=Yellow" not in args

    def test_rating_only_skips_keyword_read(self, image):
        gateway, exiftool = _gateway(**{"execute.return_value": b"    1 image files updated\n"})
        gateway.write_tags(image, rating=2)
        exiftool.execute_json.assert_not_called()

    def test_no_update_reported_is_write_error(self, image):
        gateway, _ = _gateway(sync_keywords=False, **{"execute.return_value": b"Error: not writable\n"})
        with pytest.raises(WriteError):
            gateway.write_tags(image, rating=1)

    def test_process_failure_is_write_error(self, image):
        gateway, _ = _gateway(**{"execute.side_effect": OSError("broken pipe")})
        with pytest.raises(WriteError):
            gateway.write_tags(image, rating=1)

    def test_missing_file_is_write_error(self, tmp_path):
        gateway, _ = _gateway()
        with pytest.raises(WriteError):
            gateway.write_tags(str(tmp_path / "gone.jpg"), rating=1)

    def test_invalid_values_raise_value_error(self, image):
        gateway, exiftool = _gateway()
        with pytest.raises(ValueError):
            gateway.write_tags(image, rating=8)
        with pytest.raises(ValueError):
            gateway.write_tags(image, label="Purple")
        exiftool.execute.assert_not_called()

    def test_nothing_to_write(self, image):
        gateway, exiftool = _gateway()
        gateway.write_tags(image, rating=UNSET, label=UNSET)
        exiftool.execute.assert_not_called()


@pytest.mark.skipif(shutil.which("exiftool") is None, reason="exiftool not installed")
class TestExifToolIntegration:
    @pytest.fixture()
    def gateway(self):
        from plugins.exiftool_process import ExifToolProcess
        process = ExifToolProcess()
        yield ExifToolMetadataGateway(MockConfigManager(), exiftool=process)
        process.terminate()

    def test_write_then_read(self, gateway, sample_images):
        path = sample_images[0]
        gateway.write_tags(path, rating=4, label="Green")
        assert gateway.read_tags(path) == {"rating": 4, "label": "Green"}
        assert "Green" in gateway.read_keywords(path)
        assert not os.path.exists(path + "_original")

    def test_batch_read_defaults(self, gateway, sample_images):
        gateway.write_tags(sample_images[1], rating=2)
        result = gateway.read_tags_batch(sample_images)
        assert result[sample_images[1]]["rating"] == 2
        assert result[sample_images[0]] == {"rating": 0, "label": None}

    def test_clear_label(self, gateway, sample_images):
        path = sample_images[2]
        gateway.write_tags(path, label="Red")
        gateway.write_tags(path, rating=0, label=None)
        assert gateway.read_tags(path) == {"rating": 0, "label": None}
        assert "Red" not in gateway.read_keywords(path)

    def test_raw_json_output(self, gateway, sample_images):
        raw = gateway.exiftool.execute(["-json", "-FileName", sample_images[0]])
        assert json.loads(raw)[0]["FileName"] == "image_0000.jpg"
