"""Polling directory watcher with incremental change detection."""

import logging
import queue
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum

from filebridge.core.errors import TransientReadError
from filebridge.core.fileinfo import ChangeSet, FileRecord, FileStatus, read_records
from filebridge.core.vfs.local import LocalFS

_logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 2.0
DEFAULT_QUEUE_SIZE = 10


class WatcherState(Enum):
    """Directory watcher lifecycle state."""

    STOPPED = "stopped"
    RUNNING = "running"


class DirectoryConsumer(ABC):
    """What the watcher needs from the file list it keeps up to date."""

    @abstractmethod
    def get_current_path(self) -> str:
        """Get the directory being shown."""

    @abstractmethod
    def get_files(self) -> list[FileRecord]:
        """Get a copy of the current file list."""

    @abstractmethod
    def commit_files(self, files: list[FileRecord]) -> list[FileRecord] | None:
        """Replace the file list with a merged one.

        The consumer may sort or otherwise reconcile the list.

        Returns:
            The list the consumer actually kept. If None, the watcher
            reads it back with get_files().
        """

    @abstractmethod
    def remove_from_selection(self, path: str) -> None:
        """Drop a path from the selection, if selected."""


def _list_local(path: str) -> list[FileRecord]:
    return read_records(LocalFS(), path)


class DirectoryWatcher:
    """Detects directory changes by polling and merges them into a consumer.

    Runs two daemon threads while started: a scan loop that lists the
    directory every ``interval`` seconds and diffs it against the last
    snapshot, and an apply loop that merges change sets into the consumer
    one at a time, in order. Change sets travel through a bounded queue;
    when it is full a tick's changes are dropped as a whole.
    """

    def __init__(
        self,
        consumer: DirectoryConsumer,
        list_directory: Callable[[str], list[FileRecord]] | None = None,
        interval: float = DEFAULT_INTERVAL,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ):
        """Initialize the watcher.

        Args:
            consumer: File list to keep up to date.
            list_directory: Lists a consumer path into FileRecords. Defaults
                            to the local filesystem.
            interval: Seconds between scans.
            queue_size: Capacity of the change queue.
        """
        self._consumer = consumer
        self._list_directory = list_directory or _list_local
        self._interval = interval
        self._queue_size = queue_size

        # Guards _previous; the snapshot is only ever replaced, never patched
        self._snapshot_lock = threading.Lock()
        self._previous: dict[str, FileRecord] = {}

        self._state_lock = threading.Lock()
        self._state = WatcherState.STOPPED
        self._stop_event: threading.Event | None = None
        self._changes: queue.Queue[ChangeSet | None] | None = None

    @property
    def state(self) -> WatcherState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is WatcherState.RUNNING

    @property
    def interval(self) -> float:
        return self._interval

    def start(self) -> None:
        """Start watching. Does nothing if already running."""
        with self._state_lock:
            if self._state is WatcherState.RUNNING:
                return
            # A failing snapshot leaves the watcher stopped
            self.update_snapshot()
            stop_event = threading.Event()
            changes: queue.Queue[ChangeSet | None] = queue.Queue(maxsize=self._queue_size)
            self._stop_event = stop_event
            self._changes = changes
            self._state = WatcherState.RUNNING

        threading.Thread(
            target=self._scan_loop, args=(stop_event, changes), name="watcher-scan", daemon=True
        ).start()
        threading.Thread(
            target=self._apply_loop, args=(stop_event, changes), name="watcher-apply", daemon=True
        ).start()
        _logger.debug(f"Watching {self._consumer.get_current_path()} every {self._interval}s")

    def stop(self) -> None:
        """Stop watching. Safe to call more than once.

        Threads are signalled, not joined; they exit within one interval.
        """
        with self._state_lock:
            if self._state is WatcherState.STOPPED:
                return
            self._state = WatcherState.STOPPED
            stop_event, changes = self._stop_event, self._changes
            self._stop_event = None
            self._changes = None

        stop_event.set()
        try:
            changes.put_nowait(None)  # wake the apply loop
        except queue.Full:
            pass  # apply loop is not blocked and will see the stop event
        _logger.debug("Directory watcher stopped")

    def snapshot(self) -> dict[str, FileRecord]:
        """Get a copy of the current snapshot."""
        with self._snapshot_lock:
            return dict(self._previous)

    def update_snapshot(self, files: list[FileRecord] | None = None) -> None:
        """Replace the snapshot with the given list (default: the consumer's).

        The parent entry and Deleted rows are never part of the snapshot.
        """
        if files is None:
            files = self._consumer.get_files()
        snapshot = {
            f.path: f for f in files if not f.is_parent_entry and f.status is not FileStatus.DELETED
        }
        with self._snapshot_lock:
            self._previous = snapshot

    def detect_changes(self, current: dict[str, FileRecord]) -> ChangeSet:
        """Compare a fresh scan with the snapshot.

        Args:
            current: Path to record map from the latest scan.

        Returns:
            ChangeSet whose records carry Added/Deleted/Modified status.
        """
        changes = ChangeSet()
        with self._snapshot_lock:
            for path, record in current.items():
                previous = self._previous.get(path)
                if previous is None:
                    changes.added.append(record.with_status(FileStatus.ADDED))
                elif record.modified_time != previous.modified_time or record.size != previous.size:
                    changes.modified.append(record.with_status(FileStatus.MODIFIED))

            for path, record in self._previous.items():
                if path not in current:
                    changes.deleted.append(record.with_status(FileStatus.DELETED))

        return changes

    def check_for_changes(self) -> ChangeSet | None:
        """Scan once and queue any changes.

        Returns:
            The detected ChangeSet, or None if the scan failed or found
            nothing.
        """
        with self._state_lock:
            target = self._changes if self._state is WatcherState.RUNNING else None
        return self._scan(target)

    check_now = check_for_changes

    def _read_current(self, path: str) -> dict[str, FileRecord]:
        try:
            records = self._list_directory(path)
        except Exception as e:
            raise TransientReadError("scan", str(e), path) from e
        return {r.path: r for r in records if not r.is_parent_entry}

    def _scan(self, changes_queue: "queue.Queue[ChangeSet | None] | None") -> ChangeSet | None:
        try:
            current = self._read_current(self._consumer.get_current_path())
        except TransientReadError as e:
            _logger.debug(f"Skipping tick: {e}")
            return None

        changes = self.detect_changes(current)
        if changes.is_empty():
            return None
        if changes_queue is not None:
            self._offer(changes_queue, changes)
        return changes

    def _offer(self, changes_queue: "queue.Queue[ChangeSet | None]", changes: ChangeSet) -> bool:
        try:
            changes_queue.put_nowait(changes)
        except queue.Full:
            _logger.debug("Change queue full, skipping update")
            return False
        return True

    def apply_changes(self, changes: ChangeSet) -> list[FileRecord]:
        """Merge a ChangeSet into the consumer's list and resnapshot.

        Deleted rows are kept with Deleted status so they can be shown as
        removed; modified rows are replaced in place; added rows are
        appended without resorting. The snapshot is rebuilt from what the
        consumer committed, after it committed.

        Returns:
            The consumer's authoritative list.
        """
        _logger.debug(
            f"Applying changes: {len(changes.added)} added, "
            f"{len(changes.deleted)} deleted, {len(changes.modified)} modified"
        )
        files = self._consumer.get_files()
        live_index = {
            f.path: i for i, f in enumerate(files) if f.status is not FileStatus.DELETED
        }

        for record in changes.deleted:
            i = live_index.pop(record.path, None)
            if i is not None:
                files[i] = files[i].with_status(FileStatus.DELETED)
                self._consumer.remove_from_selection(record.path)

        for record in changes.modified:
            i = live_index.get(record.path)
            if i is not None:
                files[i] = record

        files.extend(changes.added)

        committed = self._consumer.commit_files(files)
        if committed is None:
            committed = self._consumer.get_files()
        self.update_snapshot(committed)
        return committed

    def _scan_loop(self, stop_event: threading.Event, changes: "queue.Queue[ChangeSet | None]") -> None:
        while not stop_event.wait(self._interval):
            self._scan(changes)

    def _apply_loop(self, stop_event: threading.Event, changes: "queue.Queue[ChangeSet | None]") -> None:
        while True:
            item = changes.get()
            if item is None or stop_event.is_set():
                return
            try:
                self.apply_changes(item)
            except Exception as e:
                _logger.error(f"Failed to apply directory changes: {e}")
