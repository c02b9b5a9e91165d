from PySide6.QtGui import QKeySequence, QShortcut
import logging
from PySide6.QtWidgets import QApplication, QLineEdit, QTextEdit, QPlainTextEdit, QComboBox, QSpinBox
from PySide6.QtCore import Qt, QObject
from config.hotkeys import HotkeyDefinition, load_hotkeys
from typing import Dict, List, Callable, Optional

_TEXT_INPUT_TYPES = (QLineEdit, QTextEdit, QPlainTextEdit, QComboBox, QSpinBox)


class HotkeyManager(QObject):
	"""Binds configured key sequences to triage actions.

	Plain actions are looked up by name; ``kind:argument`` actions (``rate:3``,
	``label:Red``) go to the handler registered for their kind.
	"""

	def __init__(self, parent_widget, hotkeys_config: dict):
		super().__init__()
		self.setParent(parent_widget)
		self.parent_widget = parent_widget
		self.shortcuts: Dict[str, List[QShortcut]] = {}
		self.definitions: Dict[str, HotkeyDefinition] = load_hotkeys(hotkeys_config)
		self.actions: Dict[str, Callable[[], None]] = {}
		self.kind_handlers: Dict[str, Callable[[str], None]] = {}

		self._shortcuts_suppressed = False
		app = QApplication.instance()
		if app:
			app.focusChanged.connect(self._on_focus_changed)
		else:
			logging.warning("HotkeyManager: QApplication instance not found, shortcuts stay enabled in text inputs.")

	def add_action(self, action_name: str, callback: Callable[[], None]):
		self.actions[action_name] = callback

	def add_kind_handler(self, kind: str, callback: Callable[[str], None]):
		self.kind_handlers[kind] = callback

	def _resolve(self, definition: HotkeyDefinition) -> Optional[Callable[[], None]]:
		if definition.action_name in self.actions:
			return self.actions[definition.action_name]
		kind, argument = definition.split_action()
		handler = self.kind_handlers.get(kind)
		if handler is not None and argument is not None:
			return lambda: handler(argument)
		return None

	def bind_all(self):
		"""Create QShortcuts for every definition with a registered handler."""
		for name, definition in self.definitions.items():
			callback = self._resolve(definition)
			if callback is None:
				logging.warning(f"HotkeyManager: no handler for action '{name}'")
				continue
			shortcuts = []
			for sequence in definition.sequences:
				shortcut = QShortcut(QKeySequence(sequence), self.parent_widget)
				shortcut.setContext(Qt.ApplicationShortcut)
				shortcut.activated.connect(callback)
				shortcuts.append(shortcut)
			self.shortcuts[name] = shortcuts
			logging.debug(f"HotkeyManager: bound {name} to {definition.sequences}")

	def _on_focus_changed(self, old, new):
		"""Suppress shortcuts while a text-input widget has focus."""
		should_suppress = isinstance(new, _TEXT_INPUT_TYPES)
		if should_suppress == self._shortcuts_suppressed:
			return
		self._shortcuts_suppressed = should_suppress
		for shortcut_list in self.shortcuts.values():
			for shortcut in shortcut_list:
				shortcut.setEnabled(not should_suppress)
		logging.debug(f"HotkeyManager: shortcuts {'suppressed' if should_suppress else 'restored'} (focus → {type(new).__name__})")
