"""Application settings management."""

from pathlib import Path

from PySide6.QtCore import QSettings

DEFAULT_WATCHER_INTERVAL_MS = 2000
DEFAULT_WATCHER_QUEUE_SIZE = 10
DEFAULT_SMB_PORT = 445
DEFAULT_SMB_CONNECT_TIMEOUT = 5
DEFAULT_KEYRING_SERVICE = "FileBridge.smb"


class Settings:
    """Manage FileBridge settings using QSettings."""

    def __init__(self, path: Path | str | None = None):
        """Initialize settings.

        Args:
            path: INI file to use instead of the platform default location.
        """
        if path is not None:
            self._settings = QSettings(str(path), QSettings.Format.IniFormat)
        else:
            self._settings = QSettings("FileBridge", "FileBridge")

    def sync(self):
        """Write pending changes to storage."""
        self._settings.sync()

    # Directory watcher
    def save_watcher_interval(self, interval_ms: int):
        """Save polling interval in milliseconds."""
        self._settings.setValue("watcher/interval_ms", interval_ms)

    def load_watcher_interval(self) -> int:
        """Load polling interval in milliseconds."""
        value = self._settings.value("watcher/interval_ms", DEFAULT_WATCHER_INTERVAL_MS, type=int)
        return value if value > 0 else DEFAULT_WATCHER_INTERVAL_MS

    def save_watcher_queue_size(self, size: int):
        """Save change queue capacity."""
        self._settings.setValue("watcher/queue_size", size)

    def load_watcher_queue_size(self) -> int:
        """Load change queue capacity."""
        value = self._settings.value("watcher/queue_size", DEFAULT_WATCHER_QUEUE_SIZE, type=int)
        return value if value > 0 else DEFAULT_WATCHER_QUEUE_SIZE

    # SMB
    def save_smb_port(self, port: int):
        self._settings.setValue("smb/port", port)

    def load_smb_port(self) -> int:
        return self._settings.value("smb/port", DEFAULT_SMB_PORT, type=int)

    def save_smb_connect_timeout(self, seconds: int):
        self._settings.setValue("smb/connect_timeout", seconds)

    def load_smb_connect_timeout(self) -> int:
        return self._settings.value("smb/connect_timeout", DEFAULT_SMB_CONNECT_TIMEOUT, type=int)

    def save_keyring_service(self, service_name: str):
        """Save the keychain service name credentials are stored under."""
        self._settings.setValue("smb/keyring_service", service_name)

    def load_keyring_service(self) -> str:
        """Load the keychain service name credentials are stored under."""
        return self._settings.value("smb/keyring_service", DEFAULT_KEYRING_SERVICE, type=str)

    # Debug
    def save_logging_enabled(self, enabled: bool):
        """Save file logging enabled setting."""
        self._settings.setValue("logging/file_enabled", enabled)

    def load_logging_enabled(self) -> bool:
        """Load file logging enabled setting."""
        return self._settings.value("logging/file_enabled", False, type=bool)
