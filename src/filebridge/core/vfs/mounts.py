"""Lookup of SMB/CIFS shares already mounted by the OS."""

import logging
from dataclasses import dataclass
from pathlib import Path

_logger = logging.getLogger(__name__)

MOUNTINFO_PATH = Path("/proc/self/mountinfo")


@dataclass
class MountInfo:
    """The fields of a mountinfo line we care about."""

    fs_type: str
    source: str
    mount_point: str
    super_options: str
    options: str

    @property
    def is_smb(self) -> bool:
        fs_type = self.fs_type.lower()
        return fs_type == "cifs" or "smb" in fs_type


def decode_mount_point(value: str) -> str:
    """Decode mountinfo octal escapes (\\040 is a space)."""
    return value.replace("\\040", " ").replace("\\134", "\\")


def parse_mountinfo_line(line: str) -> MountInfo | None:
    """Parse one line of /proc/self/mountinfo.

    Returns:
        MountInfo, or None if the line is malformed.
    """
    left, sep, right = line.partition(" - ")
    if not sep:
        return None
    left_fields = left.split()
    right_fields = right.split()
    # Optional fields may be absent, so the left side has at least 6 tokens
    if len(left_fields) < 6 or len(right_fields) < 3:
        return None
    return MountInfo(
        fs_type=right_fields[0],
        source=right_fields[1],
        mount_point=decode_mount_point(left_fields[4]),
        super_options=" ".join(right_fields[2:]),
        options=" ".join(left_fields[5:]),
    )


def parse_source_unc(source: str) -> tuple[str, str]:
    """Split a //host/share mount source into (host, share)."""
    if source.startswith("//"):
        parts = source[2:].split("/")
        if len(parts) >= 2:
            return parts[0], parts[1]
    return "", ""


def find_unc_option(options: str) -> str:
    """Return the value of a unc= mount option, or ""."""
    for part in options.split(","):
        key, sep, value = part.strip().partition("=")
        if sep and key.lower() == "unc":
            return value
    return ""


def parse_backslash_unc(unc: str) -> tuple[str, str]:
    """Split a \\\\host\\share string into (host, share)."""
    parts = unc.lstrip("\\").split("\\")
    if len(parts) >= 2:
        return parts[0], parts[1]
    return "", ""


def _matches(host: str, share: str, target_host: str, target_share: str) -> bool:
    return bool(host) and host.lower() == target_host and share.lower() == target_share


def find_smb_mount(host: str, share: str, mountinfo_path: Path = MOUNTINFO_PATH) -> str | None:
    """Find the mount point of an SMB share mounted by the OS.

    Matches either the mount source (//host/share) or a unc=\\\\host\\share
    option, case-insensitively.

    Args:
        host: Server name.
        share: Share name.
        mountinfo_path: Mount table to scan.

    Returns:
        Mount point path, or None if the share is not mounted.
    """
    try:
        lines = mountinfo_path.read_text(encoding="utf-8", errors="replace").splitlines()
    except OSError:
        return None

    target_host = host.lower()
    target_share = share.lower()
    for line in lines:
        info = parse_mountinfo_line(line)
        if info is None or not info.is_smb:
            continue

        if _matches(*parse_source_unc(info.source), target_host, target_share):
            _logger.debug(f"Found mount for //{host}/{share} at {info.mount_point}")
            return info.mount_point

        unc = find_unc_option(info.super_options) or find_unc_option(info.options)
        if unc and _matches(*parse_backslash_unc(unc), target_host, target_share):
            _logger.debug(f"Found mount for //{host}/{share} at {info.mount_point} (unc option)")
            return info.mount_point

    return None
