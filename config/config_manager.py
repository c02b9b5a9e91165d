import copy
import logging
import os
import yaml

DEFAULT_CONFIG = {
    "server": {
        "host": "127.0.0.1",
        "port": 3001,
        "default_root": os.path.expanduser("~/Pictures"),
    },
    "client": {
        "server_url": "http://127.0.0.1:3001",
        "timeout": 30.0,
        "write_workers": 2,
    },
    "exiftool": {
        "executable": "exiftool",
        "timeout": 30.0,
    },
    "scan": {
        "allowed_extensions": ["jpg", "jpeg", "png"],
        "ignore_patterns": ["._*"],  # glob patterns
        "show_hidden_folders": False,
    },
    "labels": {
        "colors": ["Red", "Yellow", "Green", "Blue"],
        "sync_keywords": True,
    },
    "thumbnail": {
        "max_size": 300,
        "quality": 80,
    },
    "view_image": {
        "max_size": 2560,
        "quality": 92,
    },
    "logging_level": "INFO",
    "log_dir": "~/.photopicks",
    "gui": {
        "background_color": "#111111",
        "thumbnail_size": 128,
        "select_border_color": "orange",
        "columns": 3,
        "statusbar_font": "Arial",
        "statusbar_font_size": 10
    },
    "hotkeys": {
        "next_image": {
            "sequence": "Right",
            "description": "Select next photo"
        },
        "previous_image": {
            "sequence": "Left",
            "description": "Select previous photo"
        },
        "next_row": {
            "sequence": "Down",
            "description": "Move one grid row down"
        },
        "previous_row": {
            "sequence": "Up",
            "description": "Move one grid row up"
        },
        "rate:0": {
            "sequence": "0",
            "description": "Clear rating and color label"
        },
        "rate:1": {
            "sequence": "1",
            "description": "Rate 1 star"
        },
        "rate:2": {
            "sequence": "2",
            "description": "Rate 2 stars"
        },
        "rate:3": {
            "sequence": "3",
            "description": "Rate 3 stars"
        },
        "rate:4": {
            "sequence": "4",
            "description": "Rate 4 stars"
        },
        "rate:5": {
            "sequence": "5",
            "description": "Rate 5 stars"
        },
        "label:Red": {
            "sequence": "6",
            "description": "Label red"
        },
        "label:Yellow": {
            "sequence": "7",
            "description": "Label yellow"
        },
        "label:Green": {
            "sequence": "8",
            "description": "Label green"
        },
        "label:Blue": {
            "sequence": "9",
            "description": "Label blue"
        },
        "refresh": {
            "sequence": "F5",
            "description": "Rescan the current folder"
        },
        "close_or_quit": {
            "sequence": "q",
            "description": "Quit"
        }
    }
}

def _default_config_path() -> str:
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))
    return os.path.join(xdg_config_home, "photopicks", "config.yaml")


def _deep_merge(base: dict, override: dict) -> dict:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


class ConfigManager:
    def __init__(self, config_path: str | None = None):
        self.config_path = config_path or _default_config_path()
        self.config = self.load_config()

    def load_config(self):
        try:
            with open(self.config_path, "r") as f:
                user_config = yaml.safe_load(f) or {}
        except FileNotFoundError:
            config = copy.deepcopy(DEFAULT_CONFIG)
            try:
                self.save_config(config)
            except OSError as e:
                logging.warning(f"Could not write default config to {self.config_path}: {e}")
            return config
        except yaml.YAMLError as exc:
            raise ValueError(f"Malformed config at {self.config_path}") from exc
        if not isinstance(user_config, dict):
            raise ValueError(f"Config at {self.config_path} must be a mapping")
        return _deep_merge(copy.deepcopy(DEFAULT_CONFIG), user_config)

    def save_config(self, config):
        os.makedirs(os.path.dirname(self.config_path), exist_ok=True)
        with open(self.config_path, "w") as f:
            yaml.dump(config, f, default_flow_style=False)

    def get(self, key, default=None):
        keys = key.split('.')
        value = self.config
        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default
        return value if value is not None else default

    def set(self, key, value):
        keys = key.split('.')
        node = self.config
        for k in keys[:-1]:
            node = node.setdefault(k, {})
        node[keys[-1]] = value
        self.save_config(self.config)

    @property
    def logging_level(self):
        return self.get("logging_level", "INFO")

    @property
    def allowed_extensions(self):
        return self.get("scan.allowed_extensions", ["jpg", "jpeg", "png"])

    @property
    def color_labels(self):
        return self.get("labels.colors", ["Red", "Yellow", "Green", "Blue"])
