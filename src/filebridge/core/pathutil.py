"""Helpers for display paths, which may be local paths or smb:// URLs."""

import os
import posixpath

SMB_PREFIX = "smb://"


def is_smb_display(path: str) -> bool:
    """Check if path is a canonical smb:// display path."""
    return path.strip().lower().startswith(SMB_PREFIX)


def join_path(base: str, name: str) -> str:
    """Join a display path and a child name."""
    if is_smb_display(base):
        return base.rstrip("/") + "/" + name
    return os.path.join(base, name)


def parent_path(path: str) -> str:
    """Get the parent of a display path.

    The root of a share (smb://host/share) is its own parent.
    """
    if not is_smb_display(path):
        return os.path.dirname(path)
    rest = path[len(SMB_PREFIX):].rstrip("/")
    parts = rest.split("/")
    if len(parts) <= 2:
        return path
    return SMB_PREFIX + "/".join(parts[:-1])


def base_name(path: str) -> str:
    """Get the last segment of a display path."""
    if not is_smb_display(path):
        return os.path.basename(path.rstrip("/\\")) or path
    rest = path[len(SMB_PREFIX):].rstrip("/")
    return posixpath.basename(rest)
