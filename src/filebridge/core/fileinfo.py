"""File records shared by directory listings and the directory watcher."""

import os
import stat
import sys
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from filebridge.core.pathutil import join_path

if TYPE_CHECKING:
    from filebridge.core.vfs.base import VFS, DirEntry

PARENT_DIRECTORY_NAME = ".."
_SIZE_UNIT = 1024
_SIZE_SUFFIXES = "KMGTPE"


class FileType(Enum):
    """Display category of a file."""

    REGULAR = "regular"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    HIDDEN = "hidden"


class FileStatus(Enum):
    """Change status assigned by the directory watcher."""

    NORMAL = "normal"
    ADDED = "added"
    DELETED = "deleted"
    MODIFIED = "modified"


@dataclass
class FileRecord:
    """A file or directory row as shown by a file browser."""

    name: str
    path: str
    is_dir: bool
    size: int = 0
    modified_time: datetime | None = None
    file_type: FileType = FileType.REGULAR
    status: FileStatus = FileStatus.NORMAL

    @property
    def is_parent_entry(self) -> bool:
        return self.name == PARENT_DIRECTORY_NAME

    def with_status(self, status: FileStatus) -> "FileRecord":
        """Return a copy of this record with a different status."""
        return replace(self, status=status)

    @classmethod
    def from_entry(
        cls, directory: str, entry: "DirEntry", vfs: "VFS", display_dir: str | None = None
    ) -> "FileRecord":
        """Build a record from a provider listing entry.

        Args:
            directory: Provider-native directory the entry was listed from.
            entry: Listing entry.
            vfs: Provider used to join paths and stat the entry if needed.
            display_dir: Display path of the directory. When given, the
                         record path is built from it instead of the
                         native path.
        """
        native_path = vfs.join(directory, entry.name)
        size = entry.size
        mtime = entry.modified_time
        if size is None or mtime is None:
            info = vfs.stat(native_path)
            size = info.size
            mtime = info.modified_time

        path = native_path
        if display_dir is not None:
            path = join_path(display_dir, entry.name)

        return cls(
            name=entry.name,
            path=path,
            is_dir=entry.is_dir,
            size=size,
            modified_time=mtime,
            file_type=entry.file_type or determine_file_type(native_path, entry.name, entry.is_dir),
        )


@dataclass
class ChangeSet:
    """One poll tick's worth of changes, delivered as a unit."""

    added: list[FileRecord] = field(default_factory=list)
    deleted: list[FileRecord] = field(default_factory=list)
    modified: list[FileRecord] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.added or self.deleted or self.modified)


def read_records(vfs: "VFS", directory: str, display_dir: str | None = None) -> list[FileRecord]:
    """List a directory through a provider and build FileRecords.

    Entries that vanish between listing and stat are skipped.
    """
    records = []
    for entry in vfs.read_dir(directory):
        try:
            records.append(FileRecord.from_entry(directory, entry, vfs, display_dir))
        except FileNotFoundError:
            continue
    return records


def determine_file_type(path: str, name: str, is_dir: bool) -> FileType:
    """Determine the display type of a local file."""
    try:
        if stat.S_ISLNK(os.lstat(path).st_mode):
            return FileType.SYMLINK
    except OSError:
        pass

    if is_dir:
        return FileType.DIRECTORY

    if name.startswith("."):
        return FileType.HIDDEN

    if sys.platform == "win32" and _is_windows_hidden(path):
        return FileType.HIDDEN

    return FileType.REGULAR


def _is_windows_hidden(path: str) -> bool:
    try:
        attrs = os.stat(path).st_file_attributes  # type: ignore[attr-defined]
    except (OSError, AttributeError):
        return False
    return bool(attrs & stat.FILE_ATTRIBUTE_HIDDEN)  # type: ignore[attr-defined]


def format_file_size(size: int) -> str:
    """Format a byte count for display (e.g. "1.5 KB")."""
    if size < _SIZE_UNIT:
        return f"{size} B"
    div, exp = _SIZE_UNIT, 0
    n = size // _SIZE_UNIT
    while n >= _SIZE_UNIT:
        div *= _SIZE_UNIT
        exp += 1
        n //= _SIZE_UNIT
    return f"{size / div:.1f} {_SIZE_SUFFIXES[exp]}B"
