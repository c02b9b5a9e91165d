"""Triage session: the state container the UI drives.

Ties CatalogStore, the filter pipeline and SelectionController together and
runs metadata writes on a worker pool. Rating/label edits are applied to the
catalog immediately, the selection auto-advances, and the write is confirmed
later through ``CatalogStore.confirm`` with the version token that was
current when it was submitted.
"""
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, Iterable, List, Optional, Set, Tuple

from core import filter_pipeline
from core.catalog_store import CatalogStore, WriteResult
from core.errors import PhotoPicksError
from core.event_system import (
    CatalogChangedEventData, EventSystem, EventType, SelectionChangedEventData,
    StatusMessageEventData, VisibleSetChangedEventData, WriteEventData, event_system,
)
from core.file_ops import copy_files as _local_copy_files
from core.gateways import MetadataGateway
from core.models import (
    ANY_LABEL, COLOR_LABELS, DEFAULT_ALLOWED_EXTENSIONS, UNSET, FilterCriteria,
    PhotoRecord, validate_label, validate_rating,
)
from core.selection import SelectionController

logger = logging.getLogger(__name__)

_SOURCE = "triage_session"


def _call_now(func: Callable[[], None]) -> None:
    func()


class TriageSession:

    def __init__(
        self,
        gateway: MetadataGateway,
        allowed_extensions: Iterable[str] = DEFAULT_ALLOWED_EXTENSIONS,
        color_labels: Iterable[str] = COLOR_LABELS,
        copy_files: Callable[[List[str], str], int] = _local_copy_files,
        events: Optional[EventSystem] = None,
        dispatch: Callable[[Callable[[], None]], None] = _call_now,
        max_workers: int = 2,
        columns: int = 3,
    ):
        self.store = CatalogStore(gateway, allowed_extensions)
        self.gateway = gateway
        self.color_labels = tuple(color_labels)
        self.criteria = FilterCriteria()
        self.selection = SelectionController()
        self.visible: Tuple[PhotoRecord, ...] = ()
        self.columns = columns
        self._copy_files = copy_files
        self._events = events or event_system
        # why: completions arrive on worker threads; the GUI passes a callable that
        # re-posts them to its main thread
        self._dispatch = dispatch
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="metadata-write")
        self._pending: Set[Future] = set()
        self._pending_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Scanning and filtering
    # ------------------------------------------------------------------

    def open_folder(self, root_path: str, recursive: bool = False) -> Tuple[PhotoRecord, ...]:
        """Scan *root_path* and reset the selection to the first visible photo."""
        records = self.store.scan(root_path, recursive)
        self._publish(CatalogChangedEventData(
            event_type=EventType.CATALOG_CHANGED, source=_SOURCE, timestamp=time.time(),
            root=root_path, recursive=recursive, count=len(records),
            warning=self.store.last_warning,
        ))
        if self.store.last_warning:
            self._status(self.store.last_warning)
        self.selection.index = None
        self._refilter(keep_path=None)
        return self.visible

    def refresh(self) -> Tuple[PhotoRecord, ...]:
        """Rescan the current root, keeping the selected photo where possible."""
        if self.store.root is None:
            return self.visible
        current = self.current()
        self.store.scan(self.store.root, self.store.recursive)
        self._publish(CatalogChangedEventData(
            event_type=EventType.CATALOG_CHANGED, source=_SOURCE, timestamp=time.time(),
            root=self.store.root, recursive=self.store.recursive, count=len(self.store),
            warning=self.store.last_warning,
        ))
        self._refilter(keep_path=current.path if current else None)
        return self.visible

    def set_filter(self, min_rating=UNSET, label=UNSET) -> Tuple[PhotoRecord, ...]:
        """Change the filter criteria; unspecified fields keep their value."""
        new_min = self.criteria.min_rating if min_rating is UNSET else validate_rating(min_rating)
        if label is UNSET:
            new_label = self.criteria.label
        elif label == ANY_LABEL:
            new_label = ANY_LABEL
        else:
            new_label = validate_label(label, self.color_labels)
        self.criteria = FilterCriteria(min_rating=new_min, label=new_label)
        logger.debug(f"Filter set to min_rating={new_min} label={new_label}")
        current = self.current()
        self._refilter(keep_path=current.path if current else None)
        return self.visible

    def _refilter(self, keep_path: Optional[str]) -> None:
        self.visible = filter_pipeline.apply(self.store.records(), self.criteria)
        n = len(self.visible)
        position = self._position_of(keep_path)
        if position is not None:
            self.selection.select(position, n)
        else:
            self.selection.clamp(n)
        self._publish(VisibleSetChangedEventData(
            event_type=EventType.VISIBLE_SET_CHANGED, source=_SOURCE, timestamp=time.time(),
            paths=tuple(r.path for r in self.visible),
        ))
        self._publish_selection()

    def _position_of(self, path: Optional[str]) -> Optional[int]:
        if path is None:
            return None
        for i, record in enumerate(self.visible):
            if record.path == path:
                return i
        return None

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def current(self) -> Optional[PhotoRecord]:
        index = self.selection.index
        if index is None or not 0 <= index < len(self.visible):
            return None
        return self.visible[index]

    def select(self, index: int) -> Optional[int]:
        return self._navigate(self.selection.select, index, len(self.visible))

    def next(self) -> Optional[int]:
        return self._navigate(self.selection.next, len(self.visible))

    def prev(self) -> Optional[int]:
        return self._navigate(self.selection.prev, len(self.visible))

    def next_row(self, columns: Optional[int] = None) -> Optional[int]:
        return self._navigate(self.selection.next_row, len(self.visible), columns or self.columns)

    def prev_row(self, columns: Optional[int] = None) -> Optional[int]:
        return self._navigate(self.selection.prev_row, len(self.visible), columns or self.columns)

    def _navigate(self, op, *args) -> Optional[int]:
        before = self.selection.index
        index = op(*args)
        if index != before:
            self._publish_selection()
        return index

    def _publish_selection(self) -> None:
        current = self.current()
        self._publish(SelectionChangedEventData(
            event_type=EventType.SELECTION_CHANGED, source=_SOURCE, timestamp=time.time(),
            index=self.selection.index, path=current.path if current else None,
        ))

    # ------------------------------------------------------------------
    # Metadata edits
    # ------------------------------------------------------------------

    def rate(self, rating: int) -> Optional[Future]:
        return self.update_metadata(rating=rating)

    def set_label(self, label: Optional[str]) -> Optional[Future]:
        return self.update_metadata(label=label)

    def clear_metadata(self) -> Optional[Future]:
        """Reset rating to 0 and remove the color label."""
        return self.update_metadata(rating=0, label=None)

    def update_metadata(self, rating=UNSET, label=UNSET) -> Optional[Future]:
        """Edit the selected photo optimistically, advance, and persist in the background.

        Returns the write future, or None when nothing is selected.
        """
        record = self.current()
        if record is None:
            return None
        if rating is not UNSET:
            rating = validate_rating(rating)
        if label is not UNSET:
            label = validate_label(label, self.color_labels)

        token = self.store.apply_optimistic(record.path, rating=rating, label=label)
        if token is None:
            return None

        # Triage flow: step to the next photo after every edit. When the edit
        # filtered the photo out, the photo after it already occupies its slot.
        self.visible = filter_pipeline.apply(self.store.records(), self.criteria)
        n = len(self.visible)
        position = self._position_of(record.path)
        if position is not None:
            self.selection.select(position, n)
            self.selection.next(n)
        else:
            self.selection.clamp(n)
        self._publish(VisibleSetChangedEventData(
            event_type=EventType.VISIBLE_SET_CHANGED, source=_SOURCE, timestamp=time.time(),
            paths=tuple(r.path for r in self.visible),
        ))
        self._publish_selection()

        fields = {}
        if rating is not UNSET:
            fields["rating"] = rating
        if label is not UNSET:
            fields["label"] = label
        return self._submit_write(record.path, fields, token)

    def _submit_write(self, path: str, fields: dict, token: int) -> Future:
        future = self._executor.submit(self._run_write, path, fields, token)
        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    def _run_write(self, path: str, fields: dict, token: int) -> WriteResult:
        result = self._write(path, fields)
        self._dispatch(lambda: self._on_write_done(path, token, result))
        return result

    def _write(self, path: str, fields: dict) -> WriteResult:
        try:
            self.gateway.write_tags(path, **fields)
            return WriteResult.success()
        except PhotoPicksError as e:
            return WriteResult.failure(e)
        except Exception as e:  # why: any gateway failure must surface as a WriteResult, not kill the worker
            logger.debug("Unexpected write failure", exc_info=True)
            return WriteResult.failure(e)

    def _on_write_done(self, path: str, token: int, result: WriteResult) -> None:
        current = self.store.confirm(path, token, result)
        if result.ok:
            self._publish(WriteEventData(
                event_type=EventType.WRITE_CONFIRMED, source=_SOURCE, timestamp=time.time(),
                path=path, token=token, current=current,
            ))
            return
        self._publish(WriteEventData(
            event_type=EventType.WRITE_FAILED, source=_SOURCE, timestamp=time.time(),
            path=path, token=token, current=current, error=result.error,
        ))
        self._status(f"Failed to save metadata for {path}: {result.error}")

    def wait_for_writes(self, timeout: Optional[float] = None) -> bool:
        """Block until every submitted write has finished. Returns False on timeout."""
        with self._pending_lock:
            pending = list(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    # ------------------------------------------------------------------
    # Copy
    # ------------------------------------------------------------------

    def copy_visible(self, destination: str) -> int:
        """Copy every photo in the visible set to *destination*; returns the success count."""
        paths = [r.path for r in self.visible]
        if not paths:
            return 0
        count = self._copy_files(paths, destination)
        self._status(f"Copied {count} of {len(paths)} photo(s) to {destination}")
        return count

    # ------------------------------------------------------------------

    def _status(self, message: str) -> None:
        self._publish(StatusMessageEventData(
            event_type=EventType.STATUS_MESSAGE, source=_SOURCE, timestamp=time.time(),
            message=message,
        ))

    def _publish(self, event) -> None:
        self._events.publish(event)

    def shutdown(self, wait_for_writes: bool = True) -> None:
        self._executor.shutdown(wait=wait_for_writes)
