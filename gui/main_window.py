from typing import Callable, List, Optional, Tuple
import threading
from concurrent.futures import ThreadPoolExecutor
from PySide6.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QSplitter, QLabel, QLineEdit, QPushButton,
    QCheckBox, QComboBox, QApplication, QMessageBox, QFileDialog, QSizePolicy,
)
from PySide6.QtCore import Qt, Slot, Signal, QSettings
from PySide6.QtGui import QPixmap
import logging
import os

from .folder_tree import FolderTree
from .hotkey_manager import HotkeyManager
from .status_bar import TriageStatusBar
from .thumbnail_grid import ThumbnailGrid
from core.errors import NotFoundError, ReadError
from core.event_system import (
    event_system, EventType, EventData, CatalogChangedEventData, SelectionChangedEventData,
    StatusMessageEventData, WriteEventData,
)
from core.models import ANY_LABEL, MAX_RATING
from core.triage_session import TriageSession
from network.api_client import PhotoPicksClient


class TriageWindow(QMainWindow):
    _dispatch_to_main = Signal(object)  # zero-arg callable, run on the GUI thread
    _thumbnail_ready = Signal(str, bytes)  # (path, jpeg)
    _preview_ready = Signal(str, bytes)  # (path, jpeg)

    def __init__(self, config_manager, client: PhotoPicksClient):
        super().__init__()
        self.config_manager = config_manager
        self.client = client
        self._loading = False
        self._preview_path: Optional[str] = None
        self._preview_pixmap: Optional[QPixmap] = None
        self._requested_thumbnails = set()
        self._subscriptions: List[Tuple[EventType, Callable]] = []
        self._image_pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="image-fetch")

        self._dispatch_to_main.connect(self._run_on_main, Qt.QueuedConnection)
        self._thumbnail_ready.connect(self._on_thumbnail_ready)
        self._preview_ready.connect(self._on_preview_ready)

        self.session = TriageSession(
            client,
            allowed_extensions=config_manager.allowed_extensions,
            color_labels=config_manager.color_labels,
            copy_files=client.copy_files,
            dispatch=self._dispatch_to_main.emit,
            max_workers=int(config_manager.get("client.write_workers", 2)),
            columns=int(config_manager.get("gui.columns", 3)),
        )

        self._build_ui()
        self._setup_event_subscriptions()
        self._setup_hotkeys()

        self.setWindowTitle("PhotoPicks")
        settings = QSettings("PhotoPicks", "TriageWindow")
        geometry = settings.value("geometry")
        if geometry:
            self.restoreGeometry(geometry)
        else:
            self.resize(1200, 800)

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    def _build_ui(self):
        central = QWidget()
        self.setCentralWidget(central)
        layout = QVBoxLayout(central)
        layout.setContentsMargins(4, 4, 4, 0)

        toolbar = QHBoxLayout()
        self.path_input = QLineEdit()
        self.path_input.setPlaceholderText("Folder to triage")
        self.path_input.returnPressed.connect(self._on_path_entered)
        toolbar.addWidget(self.path_input, 3)

        self.recursive_check = QCheckBox("Subfolders")
        self.recursive_check.toggled.connect(lambda _: self._on_path_entered())
        toolbar.addWidget(self.recursive_check)

        self.rating_combo = QComboBox()
        self.rating_combo.addItem("All Stars", 0)
        for stars in range(1, MAX_RATING + 1):
            self.rating_combo.addItem(f"{stars}+ " + "★" * stars, stars)
        self.rating_combo.currentIndexChanged.connect(self._on_filter_changed)
        toolbar.addWidget(self.rating_combo)

        self.label_combo = QComboBox()
        self.label_combo.addItem("All Colors", ANY_LABEL)
        for label in self.session.color_labels:
            self.label_combo.addItem(label, label)
        self.label_combo.currentIndexChanged.connect(self._on_filter_changed)
        toolbar.addWidget(self.label_combo)

        self.target_input = QLineEdit()
        self.target_input.setPlaceholderText("Copy target folder")
        toolbar.addWidget(self.target_input, 2)
        browse = QPushButton("…")
        browse.clicked.connect(self._browse_target)
        toolbar.addWidget(browse)
        self.copy_button = QPushButton("Copy filtered")
        self.copy_button.clicked.connect(self._copy_filtered)
        toolbar.addWidget(self.copy_button)
        layout.addLayout(toolbar)

        root = self.config_manager.get("server.default_root", os.path.expanduser("~"))
        self.folder_tree = FolderTree(self.client, os.path.expanduser(root))
        self.folder_tree.folderSelected.connect(self._on_folder_selected)

        self.preview = QLabel()
        self.preview.setAlignment(Qt.AlignCenter)
        self.preview.setMinimumHeight(200)
        self.preview.setSizePolicy(QSizePolicy.Ignored, QSizePolicy.Ignored)
        self.preview.setStyleSheet(f"background: {self.config_manager.get('gui.background_color', '#111111')};")

        self.grid = ThumbnailGrid(self.config_manager)
        self.grid.photoClicked.connect(self.session.select)
        self.grid.columnsChanged.connect(self._on_columns_changed)

        right = QSplitter(Qt.Vertical)
        right.addWidget(self.preview)
        right.addWidget(self.grid)
        right.setSizes([500, 300])

        splitter = QSplitter(Qt.Horizontal)
        splitter.addWidget(self.folder_tree)
        splitter.addWidget(right)
        splitter.setSizes([220, 980])
        layout.addWidget(splitter, 1)

        self.status_bar = TriageStatusBar(self.config_manager, self)
        self.setStatusBar(self.status_bar)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    @Slot(object)
    def _run_on_main(self, func):
        func()

    def _on_main_thread(self, handler: Callable[[EventData], None]) -> Callable[[EventData], None]:
        """Wrap *handler* so it always runs on the GUI thread."""
        def marshal(event_data):
            if threading.current_thread() is threading.main_thread():
                handler(event_data)
            else:
                self._dispatch_to_main.emit(lambda: handler(event_data))
        marshal.__name__ = getattr(handler, "__name__", "handler")
        return marshal

    def _setup_event_subscriptions(self):
        handlers = {
            EventType.CATALOG_CHANGED: self._handle_catalog_changed,
            EventType.VISIBLE_SET_CHANGED: self._handle_visible_set_changed,
            EventType.SELECTION_CHANGED: self._handle_selection_changed,
            EventType.WRITE_CONFIRMED: self._handle_write_event,
            EventType.WRITE_FAILED: self._handle_write_event,
            EventType.STATUS_MESSAGE: self._handle_status_message,
        }
        for event_type, handler in handlers.items():
            callback = self._on_main_thread(handler)
            event_system.subscribe(event_type, callback)
            self._subscriptions.append((event_type, callback))

    def _handle_catalog_changed(self, event_data: CatalogChangedEventData):
        scope = " (with subfolders)" if event_data.recursive else ""
        self.setWindowTitle(f"PhotoPicks - {event_data.root}{scope}")
        if not event_data.warning:
            self.status_bar.showMessageText(f"{event_data.count} photo(s) found", 3000)

    def _handle_visible_set_changed(self, event_data):
        self.grid.set_records(self.session.visible)
        self._request_thumbnails()

    def _handle_selection_changed(self, event_data: SelectionChangedEventData):
        self.grid.set_current(event_data.index)
        record = self.session.current()
        if record is None:
            self.status_bar.showPath("")
            self.status_bar.clearMetadata()
            self._show_preview(None)
            return
        position = f"{event_data.index + 1}/{len(self.session.visible)}"
        self.status_bar.showPath(f"{position}  {record.path}")
        self.status_bar.showMetadata(record.rating, record.label)
        self._load_preview(record.path)

    def _handle_write_event(self, event_data: WriteEventData):
        record = self.session.store.get(event_data.path)
        if record is not None:
            self.grid.update_record(record)
        if event_data.error:
            logging.warning(f"TriageWindow: write failed for {event_data.path}: {event_data.error}")

    def _handle_status_message(self, event_data: StatusMessageEventData):
        self.status_bar.showMessageText(event_data.message, event_data.timeout)

    # ------------------------------------------------------------------
    # Hotkeys
    # ------------------------------------------------------------------

    def _setup_hotkeys(self):
        hotkeys_config = self.config_manager.get("hotkeys", {})
        self.hotkey_manager = HotkeyManager(self, hotkeys_config)
        self.hotkey_manager.add_action("next_image", self._guarded(self.session.next))
        self.hotkey_manager.add_action("previous_image", self._guarded(self.session.prev))
        self.hotkey_manager.add_action("next_row", self._guarded(self.session.next_row))
        self.hotkey_manager.add_action("previous_row", self._guarded(self.session.prev_row))
        self.hotkey_manager.add_action("refresh", self.refresh)
        self.hotkey_manager.add_action("close_or_quit", self.close)
        self.hotkey_manager.add_kind_handler("rate", self._rate_from_key)
        self.hotkey_manager.add_kind_handler("label", self._label_from_key)
        self.hotkey_manager.bind_all()

    def _guarded(self, action: Callable[[], object]) -> Callable[[], None]:
        def run():
            if not self._loading:
                action()
        return run

    def _rate_from_key(self, argument: str):
        if self._loading:
            return
        try:
            rating = int(argument)
            if rating == 0:
                self.session.clear_metadata()
            else:
                self.session.rate(rating)
        except ValueError as e:
            logging.warning(f"TriageWindow: bad rating hotkey '{argument}': {e}")

    def _label_from_key(self, argument: str):
        if self._loading:
            return
        try:
            self.session.set_label(argument)
        except ValueError as e:
            self.status_bar.showMessageText(str(e), 3000)

    # ------------------------------------------------------------------
    # Loading and filtering
    # ------------------------------------------------------------------

    def load_directory(self, directory_path: str, recursive: bool = False):
        """Scan *directory_path* in the background; the session events repaint the view."""
        if self._loading:
            logging.info("TriageWindow: scan already running, ignoring request")
            return
        directory_path = os.path.abspath(os.path.expanduser(directory_path))
        logging.info(f"TriageWindow: loading {directory_path} (recursive: {recursive})")
        self.path_input.setText(directory_path)
        self.recursive_check.blockSignals(True)
        self.recursive_check.setChecked(recursive)
        self.recursive_check.blockSignals(False)
        self._requested_thumbnails.clear()
        self._set_loading(True)
        self.status_bar.showMessageText(f"Scanning {directory_path}…")

        def scan():
            try:
                self.session.open_folder(directory_path, recursive)
            finally:
                self._dispatch_to_main.emit(lambda: self._set_loading(False))

        threading.Thread(target=scan, name="catalog-scan", daemon=True).start()

    def refresh(self):
        if self._loading or self.session.store.root is None:
            return
        self._set_loading(True)

        def rescan():
            try:
                self.session.refresh()
            finally:
                self._dispatch_to_main.emit(lambda: self._set_loading(False))

        threading.Thread(target=rescan, name="catalog-refresh", daemon=True).start()

    def _set_loading(self, loading: bool):
        self._loading = loading
        for widget in (self.path_input, self.recursive_check, self.rating_combo,
                       self.label_combo, self.copy_button):
            widget.setEnabled(not loading)

    def _on_path_entered(self):
        path = self.path_input.text().strip()
        if path:
            self.load_directory(path, self.recursive_check.isChecked())

    def _on_folder_selected(self, path: str):
        self.load_directory(path, self.recursive_check.isChecked())

    def _on_filter_changed(self, _index: int):
        if self._loading:
            return
        self.session.set_filter(min_rating=self.rating_combo.currentData(),
                                label=self.label_combo.currentData())

    def _on_columns_changed(self, columns: int):
        self.session.columns = columns

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def _request_thumbnails(self):
        for path in self.grid.missing_thumbnails():
            if path in self._requested_thumbnails:
                continue
            self._requested_thumbnails.add(path)
            self._image_pool.submit(self._fetch_thumbnail, path)

    def _fetch_thumbnail(self, path: str):
        try:
            data = self.client.render_thumbnail(path)
        except ReadError as e:
            logging.warning(f"TriageWindow: thumbnail failed for {path}: {e}")
            self._requested_thumbnails.discard(path)
            return
        self._thumbnail_ready.emit(path, data)

    @Slot(str, bytes)
    def _on_thumbnail_ready(self, path: str, data: bytes):
        self.grid.set_thumbnail(path, data)

    def _load_preview(self, path: str):
        if path == self._preview_path:
            return
        self._preview_path = path
        self._image_pool.submit(self._fetch_preview, path)

    def _fetch_preview(self, path: str):
        try:
            data = self.client.fetch_view_image(path)
        except NotFoundError:
            logging.warning(f"TriageWindow: {path} disappeared")
            return
        except ReadError as e:
            logging.warning(f"TriageWindow: preview failed for {path}: {e}")
            return
        self._preview_ready.emit(path, data)

    @Slot(str, bytes)
    def _on_preview_ready(self, path: str, data: bytes):
        # Selection may have moved on while the image was in flight.
        if path != self._preview_path:
            return
        pixmap = QPixmap()
        if not pixmap.loadFromData(data):
            logging.warning(f"TriageWindow: undecodable preview for {path}")
            return
        self._show_preview(pixmap)

    def _show_preview(self, pixmap: Optional[QPixmap]):
        self._preview_pixmap = pixmap
        if pixmap is None:
            self._preview_path = None
            self.preview.clear()
            return
        self.preview.setPixmap(pixmap.scaled(self.preview.size(), Qt.KeepAspectRatio, Qt.SmoothTransformation))

    def resizeEvent(self, event):
        super().resizeEvent(event)
        if self._preview_pixmap is not None:
            self._show_preview(self._preview_pixmap)

    # ------------------------------------------------------------------
    # Copy
    # ------------------------------------------------------------------

    def _browse_target(self):
        folder = QFileDialog.getExistingDirectory(self, "Copy target folder", self.target_input.text())
        if folder:
            self.target_input.setText(folder)

    def _copy_filtered(self):
        destination = self.target_input.text().strip()
        if not destination:
            QMessageBox.warning(self, "Copy filtered", "Please enter a target folder.")
            return
        total = len(self.session.visible)
        if total == 0:
            QMessageBox.information(self, "Copy filtered", "No photos match the current filter.")
            return
        answer = QMessageBox.question(self, "Copy filtered",
                                      f"Copy {total} photo(s) to\n{destination}?")
        if answer != QMessageBox.Yes:
            return
        try:
            count = self.session.copy_visible(destination)
        except Exception as e:  # why: server or filesystem failures are reported to the user, not raised into Qt
            logging.error(f"TriageWindow: copy failed: {e}", exc_info=True)
            QMessageBox.critical(self, "Copy filtered", f"Copy failed: {e}")
            return
        QMessageBox.information(self, "Copy filtered", f"Copied {count} of {total} photo(s).")

    # ------------------------------------------------------------------

    def closeEvent(self, event):
        """Flush pending writes and release resources before quitting."""
        logging.info("GUI close requested.")
        pending = self.session.pending_writes
        if pending:
            self.status_bar.showMessageText(f"Saving {pending} pending edit(s)…")
            QApplication.processEvents()
        self.session.shutdown(wait_for_writes=True)
        self._image_pool.shutdown(wait=False, cancel_futures=True)
        for event_type, callback in self._subscriptions:
            event_system.unsubscribe(event_type, callback)
        self._subscriptions.clear()
        settings = QSettings("PhotoPicks", "TriageWindow")
        settings.setValue("geometry", self.saveGeometry())
        settings.sync()
        event.accept()
        QApplication.instance().quit()
