"""Network session setup for SMB shares."""

import ctypes
import logging
import sys
import threading
from abc import ABC, abstractmethod
from typing import NoReturn

from filebridge.core.credentials import CredentialStore
from filebridge.core.errors import (
    AuthenticationError,
    InvalidPathError,
    NoCredentialsError,
    SessionCredentialConflictError,
)
from filebridge.core.resolver import ParsedPath, is_unc, parse_smb_url, parse_unc
from filebridge.core.vfs.smb import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_SMB_PORT,
    SMB_AVAILABLE,
    is_smb_auth_error,
)

if SMB_AVAILABLE:
    import smbclient

_logger = logging.getLogger(__name__)

# Windows API constants
RESOURCETYPE_DISK = 0x00000001
CONNECT_TEMPORARY = 0x00000004
NO_ERROR = 0
ERROR_ACCESS_DENIED = 5
ERROR_LOGON_FAILURE = 1326
ERROR_SESSION_CREDENTIAL_CONFLICT = 1219

AUTH_ERROR_CODES = frozenset({ERROR_ACCESS_DENIED, ERROR_LOGON_FAILURE})


def is_auth_error_code(code: int) -> bool:
    return code in AUTH_ERROR_CODES


def is_conflict_error_code(code: int) -> bool:
    return code == ERROR_SESSION_CREDENTIAL_CONFLICT


def is_access_error(error: BaseException) -> bool:
    """Check whether an I/O error means the share wants (other) credentials."""
    if isinstance(error, AuthenticationError):
        return True
    winerror = getattr(error, "winerror", None)
    if winerror is not None:
        return is_auth_error_code(winerror)
    return isinstance(error, PermissionError)


class SessionBackend(ABC):
    """Opens a temporary, non-persistent network session to a share."""

    @abstractmethod
    def add_connection(self, host: str, share: str, username: str, password: str) -> None:
        """Open a session.

        Args:
            host: Server name.
            share: Share name.
            username: Domain-qualified username (DOMAIN\\user).
            password: Password.

        Raises:
            AuthenticationError: If the server rejects the identity.
            SessionCredentialConflictError: If a session to the host already
                exists under another identity.
            OSError: On any other failure.
        """


class _NETRESOURCEW(ctypes.Structure):
    _fields_ = [
        ("dwScope", ctypes.c_ulong),
        ("dwType", ctypes.c_ulong),
        ("dwDisplayType", ctypes.c_ulong),
        ("dwUsage", ctypes.c_ulong),
        ("lpLocalName", ctypes.c_wchar_p),
        ("lpRemoteName", ctypes.c_wchar_p),
        ("lpComment", ctypes.c_wchar_p),
        ("lpProvider", ctypes.c_wchar_p),
    ]


class WindowsNetSession(SessionBackend):
    """Uses WNetAddConnection2W (mpr.dll) with CONNECT_TEMPORARY.

    Existing sessions are never disconnected; a conflict is reported as is.
    """

    def add_connection(self, host: str, share: str, username: str, password: str) -> None:
        remote = f"\\\\{host}\\{share}"
        nr = _NETRESOURCEW()
        nr.dwType = RESOURCETYPE_DISK
        nr.lpRemoteName = remote

        rc = ctypes.windll.mpr.WNetAddConnection2W(  # type: ignore[attr-defined]
            ctypes.byref(nr),
            password,
            username,
            CONNECT_TEMPORARY,
        )
        _logger.debug(f"WNetAddConnection2W rc={rc} target={remote}")
        if rc == NO_ERROR:
            return
        raise_for_windows_code(rc, host, share)


def raise_for_windows_code(code: int, host: str, share: str) -> NoReturn:
    """Raise the error matching a WNet* return code."""
    path = f"\\\\{host}\\{share}"
    if is_auth_error_code(code):
        raise AuthenticationError("connect", f"access denied (error {code})", host=host, share=share, path=path)
    if is_conflict_error_code(code):
        raise SessionCredentialConflictError(
            "connect",
            "a connection to this server already exists with different credentials",
            host=host,
            share=share,
            path=path,
        )
    raise OSError(code, f"network connection failed (error {code})", path)


class SMBClientSession(SessionBackend):
    """Registers sessions with smbclient's connection pool.

    Tracks which identity each host was registered with so a second
    identity is reported as a conflict instead of silently reusing or
    replacing the existing session.
    """

    def __init__(self, port: int = DEFAULT_SMB_PORT, connection_timeout: int = DEFAULT_CONNECT_TIMEOUT):
        self._port = port
        self._timeout = connection_timeout
        self._identities: dict[str, str] = {}
        self._lock = threading.Lock()

    def add_connection(self, host: str, share: str, username: str, password: str) -> None:
        if not SMB_AVAILABLE:
            raise ConnectionError("smbprotocol library not installed")

        host_key = host.lower()
        with self._lock:
            existing = self._identities.get(host_key)
        if existing is not None and existing.lower() != username.lower():
            raise SessionCredentialConflictError(
                "connect",
                "a connection to this server already exists with different credentials",
                host=host,
                share=share,
            )

        try:
            smbclient.register_session(
                server=host,
                username=username or None,
                password=password or None,
                port=self._port,
                connection_timeout=self._timeout,
            )
        except Exception as e:
            if is_smb_auth_error(e):
                raise AuthenticationError(
                    "connect", f"access denied by {host}", host=host, share=share
                ) from e
            if isinstance(e, OSError):
                raise
            raise ConnectionError(f"SMB session setup failed: {e}") from e

        with self._lock:
            self._identities[host_key] = username


def select_session_backend(
    port: int = DEFAULT_SMB_PORT, connection_timeout: int = DEFAULT_CONNECT_TIMEOUT
) -> SessionBackend:
    """Pick the session backend for this platform."""
    if sys.platform == "win32":
        return WindowsNetSession()
    return SMBClientSession(port=port, connection_timeout=connection_timeout)


class ConnectionEstablisher:
    """Establishes network sessions using credentials from a CredentialStore."""

    def __init__(self, credential_store: CredentialStore, backend: SessionBackend | None = None):
        self._store = credential_store
        self._backend = backend or select_session_backend()

    def ensure_connection(self, parsed: ParsedPath, native_path: str = "") -> None:
        """Establish a temporary session for the share behind a path.

        Args:
            parsed: Resolved path; host/share are taken from here first.
            native_path: Provider-native path, re-parsed if parsed lacks
                         host or share.

        Raises:
            InvalidPathError: If host and share cannot be determined.
            NoCredentialsError: If no credential tier had anything.
            AuthenticationError: If the server rejected the credentials.
                The memory cache entry for the share is cleared.
            SessionCredentialConflictError: If another identity is already
                connected to the host. Nothing is disconnected.
        """
        host, share = parsed.host, parsed.share
        if not host or not share:
            host, share = _host_share_from_native(native_path)
        if not host or not share:
            raise InvalidPathError("connect", "path does not name a host and share", native_path or parsed.raw)

        creds = self._store.get(host, share, "")
        if creds.is_empty():
            raise NoCredentialsError("connect", "no credentials provided", f"//{host}/{share}")

        try:
            self._backend.add_connection(host, share, creds.qualified_username(), creds.password)
        except AuthenticationError:
            _logger.info(f"Authentication failed for //{host}/{share}")
            self._store.clear(host, share)
            raise
        except SessionCredentialConflictError:
            _logger.warning(f"Credential conflict for //{host}/{share}, leaving existing sessions alone")
            raise

        _logger.info(f"Connected to //{host}/{share}")
        if creds.persist:
            self._store.persist(host, share, creds)


def _host_share_from_native(native_path: str) -> tuple[str, str]:
    if is_unc(native_path):
        p = parse_unc(native_path)
        return p.host, p.share
    url = parse_smb_url(native_path)
    if url is not None:
        return url.host, url.share
    return "", ""
