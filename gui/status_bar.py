import logging
from typing import Optional

from PySide6.QtCore import Qt, QTimer
from PySide6.QtGui import QFont, QFontMetrics
from PySide6.QtWidgets import QHBoxLayout, QLabel, QStatusBar, QWidget

from gui.thumbnail_grid import LABEL_COLORS

_STAR_COLOR = "#F5A623"
_EMPTY_STAR_COLOR = "#555555"


class TriageStatusBar(QStatusBar):
    """Position and path (left), stars and label dot (centre), transient messages (right)."""

    def __init__(self, config_manager=None, parent=None):
        super().__init__(parent)
        self.config_manager = config_manager
        self._path_text = ""
        self._message_text = ""

        self._message_timer = QTimer(self)
        self._message_timer.setSingleShot(True)
        self._message_timer.timeout.connect(lambda: self.showMessageText(""))

        container = QWidget(self)
        row = QHBoxLayout(container)
        row.setContentsMargins(4, 0, 4, 0)
        row.setSpacing(6)
        self._path_label = QLabel()
        self._metadata_label = QLabel()
        self._metadata_label.setTextFormat(Qt.RichText)
        self._metadata_label.setAlignment(Qt.AlignCenter)
        self._metadata_label.setFixedWidth(140)
        self._message_label = QLabel()
        self._message_label.setAlignment(Qt.AlignRight | Qt.AlignVCenter)
        row.addWidget(self._path_label, 3)
        row.addWidget(self._metadata_label)
        row.addWidget(self._message_label, 2)
        self.addWidget(container, 1)

        self._apply_fonts()

    def _apply_fonts(self):
        family, size = "Arial", 10
        if self.config_manager:
            family = self.config_manager.get("gui.statusbar_font", family)
            size = self.config_manager.get("gui.statusbar_font_size", size)
        try:
            self._path_label.setFont(QFont(family, int(size)))
            self._message_label.setFont(QFont(family, int(size)))
            self._metadata_label.setFont(QFont(family, int(size) + 4))
        except (TypeError, ValueError) as e:
            logging.warning(f"Could not apply status bar font settings: {e}")

    def showPath(self, text: str):
        self._path_text = text
        self._path_label.setToolTip(text)
        self._relayout()

    def showMetadata(self, rating: int, label: Optional[str]):
        self._metadata_label.setText(self.metadata_html(rating, label))

    def clearMetadata(self):
        self._metadata_label.clear()

    def showMessageText(self, message: str, timeout: int = 0):
        """Show *message* on the right; ``timeout`` in ms clears it again (0 keeps it)."""
        self._message_timer.stop()
        self._message_text = message
        self._relayout()
        if timeout > 0:
            self._message_timer.start(timeout)

    @staticmethod
    def metadata_html(rating: int, label: Optional[str]) -> str:
        filled = min(max(rating, 0), 5)
        html = (f'<span style="color:{_STAR_COLOR};">{"★" * filled}</span>'
                f'<span style="color:{_EMPTY_STAR_COLOR};">{"☆" * (5 - filled)}</span>')
        if label:
            html += f' <span style="color:{LABEL_COLORS.get(label, "#888888")};">●</span>'
        return html

    @staticmethod
    def _elided(label: QLabel, text: str, mode) -> str:
        width = label.width()
        if width <= 0:
            return text
        return QFontMetrics(label.font()).elidedText(text, mode, width)

    def _relayout(self):
        self._path_label.setText(self._elided(self._path_label, self._path_text, Qt.ElideMiddle))
        self._message_label.setText(self._elided(self._message_label, self._message_text, Qt.ElideRight))

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self._relayout()
