"""FileBridge core: path resolution, credentials, sessions and watching."""

from .credentials import (
    CachedCredentialsProvider,
    Credentials,
    CredentialsProvider,
    CredentialStore,
    KeyringSecretStore,
    SecretStore,
)
from .errors import (
    AuthenticationError,
    FileBridgeError,
    InvalidPathError,
    NoCredentialsError,
    SessionCredentialConflictError,
    UnsupportedSchemeError,
)
from .fileinfo import ChangeSet, FileRecord, FileStatus, FileType
from .resolver import ParsedPath, PathResolver
from .connection import ConnectionEstablisher
from .watcher import DirectoryConsumer, DirectoryWatcher, WatcherState
from .session import VFSSession

__all__ = [
    "AuthenticationError",
    "CachedCredentialsProvider",
    "ChangeSet",
    "ConnectionEstablisher",
    "CredentialStore",
    "Credentials",
    "CredentialsProvider",
    "DirectoryConsumer",
    "DirectoryWatcher",
    "FileBridgeError",
    "FileRecord",
    "FileStatus",
    "FileType",
    "InvalidPathError",
    "KeyringSecretStore",
    "NoCredentialsError",
    "ParsedPath",
    "PathResolver",
    "SecretStore",
    "SessionCredentialConflictError",
    "UnsupportedSchemeError",
    "VFSSession",
    "WatcherState",
]
