"""Read access to local and SMB paths through a single entry point."""

import logging
from collections.abc import Callable
from typing import BinaryIO, TypeVar

from filebridge.core.connection import ConnectionEstablisher, is_access_error, select_session_backend
from filebridge.core.credentials import CredentialsProvider, CredentialStore, KeyringSecretStore
from filebridge.core.fileinfo import FileRecord, read_records
from filebridge.core.resolver import PROVIDER_LOCAL, ParsedPath, PathResolver, select_strategy
from filebridge.core.vfs.base import VFS, DirEntry, FileStat
from filebridge.core.vfs.smb import SMBFS
from filebridge.core.watcher import DEFAULT_INTERVAL, DEFAULT_QUEUE_SIZE, DirectoryConsumer, DirectoryWatcher
from filebridge.utils.settings import Settings

_logger = logging.getLogger(__name__)

T = TypeVar("T")


def _records(vfs: VFS, parsed: ParsedPath) -> list[FileRecord]:
    display_dir = parsed.display if parsed.is_smb else None
    return read_records(vfs, parsed.native, display_dir=display_dir)


class VFSSession:
    """Resolves paths and runs provider calls, connecting to shares on demand.

    Holds the credential store, resolver and connection establisher that
    belong together, so several sessions can coexist (e.g. in tests).
    When the OS serves UNC paths itself, an access-denied error on a share
    triggers one ensure_connection() and a single retry.
    """

    def __init__(
        self,
        credential_store: CredentialStore | None = None,
        resolver: PathResolver | None = None,
        establisher: ConnectionEstablisher | None = None,
        settings: Settings | None = None,
    ):
        self.credential_store = credential_store or CredentialStore()
        self.resolver = resolver or PathResolver(self.credential_store)
        self.establisher = establisher or ConnectionEstablisher(self.credential_store)
        self.settings = settings

    @classmethod
    def from_settings(
        cls, settings: Settings | None = None, provider: CredentialsProvider | None = None
    ) -> "VFSSession":
        """Build a session wired to the system keychain and configured ports.

        Args:
            settings: Settings to read from. Defaults to the user settings.
            provider: Asked for credentials when memory and keychain miss.
        """
        settings = settings or Settings()
        port = settings.load_smb_port()
        timeout = settings.load_smb_connect_timeout()

        store = CredentialStore(provider, KeyringSecretStore(settings.load_keyring_service()))
        resolver = PathResolver(store, select_strategy(store, port=port, connection_timeout=timeout))
        establisher = ConnectionEstablisher(store, select_session_backend(port=port, connection_timeout=timeout))
        return cls(store, resolver, establisher, settings)

    def resolve(self, path: str) -> tuple[VFS, ParsedPath]:
        return self.resolver.resolve(path)

    def read_dir(self, path: str) -> list[DirEntry]:
        return self._call(path, lambda vfs, parsed: vfs.read_dir(parsed.native))

    def stat(self, path: str) -> FileStat:
        return self._call(path, lambda vfs, parsed: vfs.stat(parsed.native))

    def open(self, path: str) -> BinaryIO:
        """Open a file for binary reading."""
        return self._call(path, lambda vfs, parsed: vfs.open(parsed.native))

    def list_records(self, path: str) -> list[FileRecord]:
        """List a directory as FileRecords, without a parent entry.

        Records of SMB directories are keyed by their smb:// display path
        so they match what a file browser shows, whatever the provider.
        """
        return self._call(path, _records)

    def list_records_quietly(self, path: str) -> list[FileRecord]:
        """List like list_records, but never prompt and never connect.

        Used by background scans: a missing or rejected identity fails the
        listing instead of asking the user again.
        """
        vfs, parsed = self.resolver.resolve(path)
        if isinstance(vfs, SMBFS):
            vfs = vfs.quiet()
        return _records(vfs, parsed)

    def create_watcher(self, consumer: DirectoryConsumer) -> DirectoryWatcher:
        """Create a watcher that lists through this session without prompting."""
        interval = DEFAULT_INTERVAL
        queue_size = DEFAULT_QUEUE_SIZE
        if self.settings is not None:
            interval = self.settings.load_watcher_interval() / 1000
            queue_size = self.settings.load_watcher_queue_size()
        return DirectoryWatcher(
            consumer,
            list_directory=self.list_records_quietly,
            interval=interval,
            queue_size=queue_size,
        )

    def _call(self, path: str, operation: Callable[[VFS, ParsedPath], T]) -> T:
        vfs, parsed = self.resolver.resolve(path)
        try:
            return operation(vfs, parsed)
        except OSError as e:
            if not self._needs_connection(parsed, e):
                raise
            _logger.debug(f"Access denied on //{parsed.host}/{parsed.share}, connecting")

        self.establisher.ensure_connection(parsed, parsed.native)
        return operation(vfs, parsed)

    def _needs_connection(self, parsed: ParsedPath, error: OSError) -> bool:
        return (
            self.resolver.strategy.native_unc
            and parsed.is_smb
            and parsed.provider == PROVIDER_LOCAL
            and is_access_error(error)
        )
