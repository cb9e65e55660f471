"""Direct SMB/CIFS provider."""

import copy
import logging
import posixpath
import stat
from datetime import datetime
from typing import TYPE_CHECKING, BinaryIO, NoReturn

from filebridge.core.errors import AuthenticationError
from filebridge.core.fileinfo import FileType
from filebridge.core.vfs.base import VFS, Capabilities, DirEntry, FileStat

if TYPE_CHECKING:
    from filebridge.core.credentials import Credentials, CredentialStore

_logger = logging.getLogger(__name__)

DEFAULT_SMB_PORT = 445
DEFAULT_CONNECT_TIMEOUT = 5

# Try to import smbclient
try:
    import smbclient
    from smbprotocol.exceptions import SMBAuthenticationError
    from smbprotocol.header import NtStatus

    SMB_AVAILABLE = True
    _AUTH_STATUSES = frozenset({NtStatus.STATUS_LOGON_FAILURE, NtStatus.STATUS_ACCESS_DENIED})
except ImportError:
    SMB_AVAILABLE = False
    _AUTH_STATUSES = frozenset()
    _logger.warning("smbprotocol not installed, direct SMB support unavailable")


def is_smb_auth_error(error: BaseException) -> bool:
    """Check whether an smbprotocol error means the identity was rejected."""
    if not SMB_AVAILABLE:
        return False
    if isinstance(error, SMBAuthenticationError):
        return True
    status = getattr(error, "ntstatus", None)
    if status is None:
        status = getattr(error, "status", None)
    return status in _AUTH_STATUSES


def to_unc_path(host: str, share: str, remote_path: str = "") -> str:
    """Build a UNC path for a location relative to the share root."""
    remote_path = remote_path.replace("\\", "/").strip("/")

    if remote_path:
        return f"\\\\{host}\\{share}\\{remote_path}".replace("/", "\\")
    elif share:
        return f"\\\\{host}\\{share}"
    else:
        return f"\\\\{host}"


class SMBFS(VFS):
    """Provider speaking SMB directly through smbprotocol.

    Paths are relative to the share root and use forward slashes
    ("/", "/dir/file"). Credentials are either fixed at construction (for
    example taken from an smb:// URL) or looked up per call through a
    CredentialStore.
    """

    def __init__(
        self,
        host: str,
        share: str,
        credentials: "Credentials | None" = None,
        credential_store: "CredentialStore | None" = None,
        port: int = DEFAULT_SMB_PORT,
        connection_timeout: int = DEFAULT_CONNECT_TIMEOUT,
        prompt: bool = True,
    ):
        """Initialize SMB provider.

        Args:
            host: Server name or address.
            share: Share name.
            credentials: Fixed credentials, bypassing the store.
            credential_store: Store consulted when no fixed credentials.
            port: SMB port.
            connection_timeout: Seconds to wait for the TCP connection.
            prompt: Whether the store may ask its provider on a miss.
        """
        self.host = host
        self.share = share
        self._credentials = credentials
        self._store = credential_store
        self._port = port
        self._timeout = connection_timeout
        self._prompt = prompt

    def quiet(self) -> "SMBFS":
        """Get a copy that never asks the credentials provider."""
        clone = copy.copy(self)
        clone._prompt = False
        return clone

    @staticmethod
    def is_available() -> bool:
        """Check if direct SMB support is available."""
        return SMB_AVAILABLE

    @property
    def capabilities(self) -> Capabilities:
        return Capabilities(fast_list=False, watch=False)

    def _resolve_credentials(self, rel_path: str) -> "Credentials | None":
        if self._credentials is not None:
            return self._credentials
        if self._store is not None:
            return self._store.get(self.host, self.share, rel_path, prompt=self._prompt)
        return None

    def _connect(self, rel_path: str) -> "Credentials | None":
        """Register an SMB session for the host, translating auth failures."""
        if not SMB_AVAILABLE:
            raise ConnectionError("smbprotocol library not installed")

        creds = self._resolve_credentials(rel_path)
        username = None
        password = None
        if creds is not None and not creds.is_empty():
            username = creds.qualified_username() or None
            password = creds.password or None

        try:
            smbclient.register_session(
                server=self.host,
                username=username,
                password=password,
                port=self._port,
                connection_timeout=self._timeout,
            )
        except Exception as e:
            self._raise_translated("connect", rel_path, e)
        return creds

    def _raise_translated(self, operation: str, rel_path: str, error: Exception) -> NoReturn:
        if is_smb_auth_error(error):
            _logger.debug(f"SMB auth failure for //{self.host}/{self.share}, clearing cached credentials")
            if self._store is not None:
                self._store.clear(self.host, self.share)
            raise AuthenticationError(
                operation,
                f"access denied by {self.host}",
                host=self.host,
                share=self.share,
                path=rel_path,
            ) from error
        if isinstance(error, OSError):
            raise error
        raise ConnectionError(f"SMB {operation} failed: {error}") from error

    def _persist(self, creds: "Credentials | None") -> None:
        if creds is not None and creds.persist and self._store is not None:
            self._store.persist(self.host, self.share, creds)

    def read_dir(self, path: str) -> list[DirEntry]:
        creds = self._connect(path)
        unc_path = to_unc_path(self.host, self.share, path)
        entries = []

        try:
            for item in smbclient.scandir(unc_path):
                if item.name in (".", ".."):
                    continue
                try:
                    stat_info = item.stat()
                except Exception as e:
                    _logger.warning(f"Failed to stat {item.name}: {e}")
                    continue

                is_dir = stat.S_ISDIR(stat_info.st_mode)
                mtime = None
                if stat_info.st_mtime:
                    mtime = datetime.fromtimestamp(stat_info.st_mtime)

                entries.append(
                    DirEntry(
                        name=item.name,
                        is_dir=is_dir,
                        file_type=_smb_file_type(item.name, stat_info.st_mode),
                        size=stat_info.st_size if not is_dir else 0,
                        modified_time=mtime,
                    )
                )
        except Exception as e:
            self._raise_translated("read_dir", path, e)

        # Persist credentials after a successful listing if requested
        self._persist(creds)
        return entries

    def stat(self, path: str) -> FileStat:
        creds = self._connect(path)
        unc_path = to_unc_path(self.host, self.share, path)

        try:
            stat_info = smbclient.stat(unc_path)
        except Exception as e:
            self._raise_translated("stat", path, e)

        self._persist(creds)
        is_dir = stat.S_ISDIR(stat_info.st_mode)
        return FileStat(
            size=stat_info.st_size if not is_dir else 0,
            modified_time=datetime.fromtimestamp(stat_info.st_mtime) if stat_info.st_mtime else None,
            is_dir=is_dir,
        )

    def open(self, path: str) -> BinaryIO:
        self._connect(path)
        unc_path = to_unc_path(self.host, self.share, path)

        try:
            return smbclient.open_file(unc_path, mode="rb")
        except Exception as e:
            self._raise_translated("open", path, e)

    def join(self, *parts: str) -> str:
        """Join path elements with forward slashes, rooted at the share."""
        return "/" + posixpath.join(*parts).lstrip("/") if parts else "/"

    def base(self, path: str) -> str:
        return path.rstrip("/").rsplit("/", 1)[-1]


def _smb_file_type(name: str, mode: int) -> FileType:
    if stat.S_ISLNK(mode):
        return FileType.SYMLINK
    if stat.S_ISDIR(mode):
        return FileType.DIRECTORY
    if name.startswith("."):
        return FileType.HIDDEN
    return FileType.REGULAR
