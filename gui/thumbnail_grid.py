import logging
from typing import Dict, Iterable, Optional

from PySide6.QtCore import QSize, Qt, Signal
from PySide6.QtGui import QBrush, QColor, QIcon, QPixmap
from PySide6.QtWidgets import QAbstractItemView, QListView, QListWidget, QListWidgetItem

from core.models import PhotoRecord

LABEL_COLORS = {
    "Red": "#E5484D",
    "Yellow": "#F5D90A",
    "Green": "#46A758",
    "Blue": "#0090FF",
    "Purple": "#8E4EC6",
    "Orange": "#F76B15",
    "Gray": "#8B8D98",
}

_PATH_ROLE = Qt.UserRole
_SPACING = 8


def caption_for(record: PhotoRecord) -> str:
    stars = "★" * record.rating if record.rating else ""
    return f"{record.name}\n{stars}" if stars else record.name


class ThumbnailGrid(QListWidget):
    """Icon-mode list of the visible set. Item order equals visible-set order."""

    photoClicked = Signal(int)
    columnsChanged = Signal(int)

    def __init__(self, config_manager, parent=None):
        super().__init__(parent)
        self.config_manager = config_manager
        self.thumbnail_size = int(config_manager.get("gui.thumbnail_size", 128))
        self._items: Dict[str, QListWidgetItem] = {}
        self._columns = 0

        self.setViewMode(QListView.IconMode)
        self.setResizeMode(QListView.Adjust)
        self.setMovement(QListView.Static)
        self.setUniformItemSizes(True)
        self.setSelectionMode(QAbstractItemView.SingleSelection)
        self.setIconSize(QSize(self.thumbnail_size, self.thumbnail_size))
        self.setGridSize(QSize(self.thumbnail_size + _SPACING * 2, self.thumbnail_size + 44))
        self.setSpacing(_SPACING)
        background = config_manager.get("gui.background_color", "#111111")
        border = config_manager.get("gui.select_border_color", "orange")
        self.setStyleSheet(
            f"QListWidget {{ background: {background}; color: #dddddd; }}"
            f"QListWidget::item:selected {{ border: 2px solid {border}; background: transparent; }}"
        )
        # Keyboard navigation is owned by the triage session hotkeys.
        self.setFocusPolicy(Qt.NoFocus)
        self.itemClicked.connect(lambda item: self.photoClicked.emit(self.row(item)))

    def set_records(self, records: Iterable[PhotoRecord]):
        """Rebuild the grid, keeping already loaded icons."""
        icons = {path: item.icon() for path, item in self._items.items()}
        self.clear()
        self._items = {}
        for record in records:
            item = QListWidgetItem(caption_for(record))
            item.setData(_PATH_ROLE, record.path)
            item.setToolTip(record.path)
            item.setTextAlignment(Qt.AlignHCenter | Qt.AlignTop)
            if record.path in icons:
                item.setIcon(icons[record.path])
            self._decorate(item, record)
            self.addItem(item)
            self._items[record.path] = item
        logging.debug(f"ThumbnailGrid: showing {len(self._items)} photo(s)")

    def missing_thumbnails(self):
        return [path for path, item in self._items.items() if item.icon().isNull()]

    def update_record(self, record: PhotoRecord):
        item = self._items.get(record.path)
        if item is None:
            return
        item.setText(caption_for(record))
        self._decorate(item, record)

    def set_thumbnail(self, path: str, data: bytes):
        item = self._items.get(path)
        if item is None:
            return
        pixmap = QPixmap()
        if not pixmap.loadFromData(data):
            logging.warning(f"ThumbnailGrid: undecodable thumbnail for {path}")
            return
        item.setIcon(QIcon(pixmap))

    def set_current(self, index: Optional[int]):
        if index is None or not 0 <= index < self.count():
            self.clearSelection()
            return
        item = self.item(index)
        self.setCurrentItem(item)
        self.scrollToItem(item, QAbstractItemView.EnsureVisible)

    def columns(self) -> int:
        cell = self.gridSize().width() + self.spacing()
        return max(2, (self.viewport().width() - 16) // max(cell, 1))

    def resizeEvent(self, event):
        super().resizeEvent(event)
        columns = self.columns()
        if columns != self._columns:
            self._columns = columns
            self.columnsChanged.emit(columns)

    @staticmethod
    def _decorate(item: QListWidgetItem, record: PhotoRecord):
        color = LABEL_COLORS.get(record.label) if record.label else None
        item.setForeground(QBrush(QColor(color)) if color else QBrush(QColor("#dddddd")))
