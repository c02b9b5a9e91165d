"""Tests for config.config_manager and config.hotkeys."""
import pytest
import yaml

from config.config_manager import DEFAULT_CONFIG, ConfigManager
from config.hotkeys import HotkeyDefinition, build_key_map, load_hotkeys


class TestConfigManager:
    def test_missing_file_writes_defaults(self, tmp_path):
        path = tmp_path / "cfg" / "config.yaml"
        cm = ConfigManager(str(path))
        assert path.exists()
        assert cm.get("server.port") == 3001
        assert cm.get("thumbnail.max_size") == 300

    def test_user_values_are_deep_merged(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"server": {"port": 4000}, "labels": {"sync_keywords": False}}))
        cm = ConfigManager(str(path))
        assert cm.get("server.port") == 4000
        assert cm.get("server.host") == "127.0.0.1"
        assert cm.get("labels.sync_keywords") is False
        assert cm.color_labels == ["Red", "Yellow", "Green", "Blue"]

    def test_defaults_are_not_shared(self, tmp_path):
        cm = ConfigManager(str(tmp_path / "config.yaml"))
        cm.config["server"]["port"] = 1
        assert DEFAULT_CONFIG["server"]["port"] == 3001

    def test_get_with_default(self, tmp_path):
        cm = ConfigManager(str(tmp_path / "config.yaml"))
        assert cm.get("nope.missing", "fallback") == "fallback"
        assert cm.get("server.port.deeper", 7) == 7

    def test_set_persists(self, tmp_path):
        path = tmp_path / "config.yaml"
        ConfigManager(str(path)).set("client.timeout", 5.0)
        assert ConfigManager(str(path)).get("client.timeout") == 5.0

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("server: [unclosed")
        with pytest.raises(ValueError):
            ConfigManager(str(path))

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ValueError):
            ConfigManager(str(path))

    def test_xdg_location(self, tmp_path, monkeypatch):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        cm = ConfigManager()
        assert cm.config_path == str(tmp_path / "photopicks" / "config.yaml")


class TestHotkeys:
    def test_string_and_dict_forms(self):
        defs = load_hotkeys({
            "next_image": "Right",
            "rate:3": {"sequence": 3, "extra_sequences": ["Ctrl+3"], "description": "three"},
        })
        assert defs["next_image"].sequences == ["Right"]
        assert defs["rate:3"].sequences == ["3", "Ctrl+3"]
        assert defs["rate:3"].description == "three"

    def test_entries_without_sequence_are_dropped(self):
        assert load_hotkeys({"refresh": {"description": "no key"}}) == {}

    def test_kind_and_argument(self):
        definition = HotkeyDefinition.from_config("label:Red", "6")
        assert (definition.kind, definition.argument) == ("label", "Red")
        plain = HotkeyDefinition.from_config("refresh", "F5")
        assert (plain.kind, plain.argument) == ("refresh", None)

    def test_default_bindings(self):
        key_map = build_key_map(load_hotkeys(DEFAULT_CONFIG["hotkeys"]))
        assert key_map["Right"] == "next_image"
        assert key_map["0"] == "rate:0"
        assert key_map["5"] == "rate:5"
        assert key_map["6"] == "label:Red"
        assert key_map["9"] == "label:Blue"

    def test_first_binding_wins(self):
        key_map = build_key_map(load_hotkeys({"next_image": "Right", "next_row": "Right"}))
        assert key_map == {"Right": "next_image"}
