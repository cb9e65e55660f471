"""Local filesystem provider."""

import os
import stat
from datetime import datetime
from typing import BinaryIO

from filebridge.core.fileinfo import determine_file_type
from filebridge.core.vfs.base import VFS, Capabilities, DirEntry, FileStat


class LocalFS(VFS):
    """Provider backed by the host OS.

    Also serves SMB shares the OS already exposes as paths: UNC paths on
    Windows and CIFS mount points elsewhere.
    """

    @property
    def capabilities(self) -> Capabilities:
        return Capabilities(fast_list=True, watch=True)

    def read_dir(self, path: str) -> list[DirEntry]:
        entries = []
        with os.scandir(path) as it:
            for item in it:
                try:
                    is_dir = item.is_dir()
                except OSError:
                    is_dir = False
                try:
                    st = item.stat()
                except OSError:
                    # Dangling symlinks are listed with their own metadata
                    try:
                        st = item.stat(follow_symlinks=False)
                    except OSError:
                        continue
                entries.append(
                    DirEntry(
                        name=item.name,
                        is_dir=is_dir,
                        file_type=determine_file_type(item.path, item.name, is_dir),
                        size=st.st_size,
                        modified_time=datetime.fromtimestamp(st.st_mtime),
                    )
                )
        return entries

    def stat(self, path: str) -> FileStat:
        st = os.stat(path)
        return FileStat(
            size=st.st_size,
            modified_time=datetime.fromtimestamp(st.st_mtime),
            is_dir=stat.S_ISDIR(st.st_mode),
        )

    def open(self, path: str) -> BinaryIO:
        return open(path, "rb")

    def join(self, *parts: str) -> str:
        return os.path.join(*parts)

    def base(self, path: str) -> str:
        return os.path.basename(path.rstrip("/\\")) or path
