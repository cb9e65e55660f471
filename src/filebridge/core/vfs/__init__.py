"""Virtual filesystem providers."""

from .base import VFS, Capabilities, DirEntry, FileStat
from .local import LocalFS
from .mounts import MountInfo, find_smb_mount
from .smb import SMBFS, to_unc_path

__all__ = [
    "Capabilities",
    "DirEntry",
    "FileStat",
    "LocalFS",
    "MountInfo",
    "SMBFS",
    "VFS",
    "find_smb_mount",
    "to_unc_path",
]
