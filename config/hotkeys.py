# config/hotkeys.py

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

@dataclass
class HotkeyDefinition:
    """Represents a single hotkey entry with its action name, sequences, etc.

    Parameterised actions use ``kind:argument`` names, e.g. ``rate:3`` or
    ``label:Red``.
    """
    action_name: str
    sequences: List[str]  # Support multiple key sequences
    description: str

    @classmethod
    def from_config(cls, action_name: str, config) -> 'HotkeyDefinition':
        """Create a HotkeyDefinition from any config format"""
        sequences = []
        description = ""

        # Handle string config (single sequence)
        if isinstance(config, str):
            sequences = [config]
        # Handle dict config (with optional multiple sequences)
        elif isinstance(config, dict):
            if "sequence" in config:
                sequences.append(str(config["sequence"]))
            if "extra_sequences" in config:
                sequences.extend(str(s) for s in config["extra_sequences"])
            description = config.get("description", "")

        return cls(
            action_name=action_name,
            sequences=sequences,
            description=description
        )

    @property
    def kind(self) -> str:
        return self.split_action()[0]

    @property
    def argument(self) -> Optional[str]:
        return self.split_action()[1]

    def split_action(self) -> Tuple[str, Optional[str]]:
        kind, sep, arg = self.action_name.partition(":")
        return kind, (arg if sep else None)


def load_hotkeys(hotkeys_config: dict) -> Dict[str, HotkeyDefinition]:
    """Parse the ``hotkeys`` config section into definitions keyed by action name."""
    definitions = {}
    for action_name, entry in (hotkeys_config or {}).items():
        definition = HotkeyDefinition.from_config(action_name, entry)
        if not definition.sequences:
            logging.warning(f"Hotkey '{action_name}' has no key sequence; ignored")
            continue
        definitions[action_name] = definition
    return definitions


def build_key_map(definitions: Dict[str, HotkeyDefinition]) -> Dict[str, str]:
    """Map every key sequence to its action. The first definition wins on conflicts."""
    key_map: Dict[str, str] = {}
    for definition in definitions.values():
        for sequence in definition.sequences:
            if sequence in key_map:
                logging.warning(f"Key '{sequence}' bound to both '{key_map[sequence]}' and "
                                f"'{definition.action_name}'; keeping the first")
                continue
            key_map[sequence] = definition.action_name
    return key_map
