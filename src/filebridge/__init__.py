"""FileBridge - unified local and SMB file access for file browsers."""

__version__ = "0.1.0"
