import logging
import os

from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import QTreeWidget, QTreeWidgetItem

from core.errors import ScanError

_PATH_ROLE = Qt.UserRole
_LOADED_ROLE = Qt.UserRole + 1


class FolderTree(QTreeWidget):
    """Lazily expanding folder tree; children are fetched from the server on first expand."""

    folderSelected = Signal(str)

    def __init__(self, client, root_path: str, parent=None):
        super().__init__(parent)
        self.client = client
        self.setHeaderHidden(True)
        self.setMinimumWidth(180)
        self.itemExpanded.connect(self._on_item_expanded)
        self.itemClicked.connect(self._on_item_clicked)
        self.set_root(root_path)

    def set_root(self, root_path: str):
        self.clear()
        root_path = os.path.abspath(root_path)
        item = self._make_item(os.path.basename(root_path) or root_path, root_path)
        self.addTopLevelItem(item)
        item.setExpanded(True)

    def _make_item(self, name: str, path: str) -> QTreeWidgetItem:
        item = QTreeWidgetItem([name])
        item.setData(0, _PATH_ROLE, path)
        item.setData(0, _LOADED_ROLE, False)
        item.setToolTip(0, path)
        # Shows the expand arrow before children are known.
        item.setChildIndicatorPolicy(QTreeWidgetItem.ShowIndicator)
        return item

    def _on_item_expanded(self, item: QTreeWidgetItem):
        if item.data(0, _LOADED_ROLE):
            return
        path = item.data(0, _PATH_ROLE)
        try:
            folders = self.client.list_folders(path)
        except ScanError as e:
            logging.warning(f"Failed to load folders of {path}: {e}")
            folders = []
        for folder in folders:
            item.addChild(self._make_item(folder["name"], folder["path"]))
        item.setData(0, _LOADED_ROLE, True)
        if not folders:
            item.setChildIndicatorPolicy(QTreeWidgetItem.DontShowIndicatorWhenChildless)

    def _on_item_clicked(self, item: QTreeWidgetItem, column: int):
        self.folderSelected.emit(item.data(0, _PATH_ROLE))
