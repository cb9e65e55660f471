"""SMB credential lookup with memory, keychain and provider tiers."""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

_logger = logging.getLogger(__name__)

DEFAULT_SERVICE_NAME = "FileBridge.smb"

SOURCE_MEMORY = "memory"
SOURCE_SECRET_STORE = "secret_store"
SOURCE_PROVIDER = "provider"


@dataclass
class Credentials:
    """SMB authentication parameters. The password never appears in repr()."""

    domain: str = ""
    username: str = ""
    password: str = field(default="", repr=False)
    persist: bool = False

    def is_empty(self) -> bool:
        """Check if no field is set."""
        return not (self.domain or self.username or self.password)

    def qualified_username(self) -> str:
        """Get the username qualified with the domain (DOMAIN\\user)."""
        if self.domain:
            return f"{self.domain}\\{self.username}"
        return self.username


def split_identity(identity: str) -> tuple[str, str]:
    """Split "domain\\user" or "domain;user" into (domain, user)."""
    for i, ch in enumerate(identity):
        if ch in "\\;":
            return identity[:i], identity[i + 1 :]
    return "", identity


def _key(host: str, share: str) -> tuple[str, str]:
    return host.lower(), share.lower()


class SecretStore(ABC):
    """Secure credential storage keyed by (host, share).

    Implementations should be safe to call from multiple threads.
    """

    @abstractmethod
    def get(self, host: str, share: str) -> tuple[str, str, str, bool]:
        """Get stored credentials.

        Returns:
            Tuple of (domain, username, password, found).
        """

    @abstractmethod
    def set(self, host: str, share: str, domain: str, username: str, password: str) -> bool:
        """Store credentials. Returns True if saved."""

    @abstractmethod
    def delete(self, host: str, share: str) -> bool:
        """Delete stored credentials. Returns True if deleted."""


class KeyringSecretStore(SecretStore):
    """Stores SMB credentials in the system keychain.

    Supports:
    - macOS: Keychain Access
    - Windows: Windows Credential Manager
    - Linux: Secret Service API (GNOME Keyring, KWallet)

    The password is stored under "host|share" (lowercased) and the identity
    (domain\\user) under "host|share_username".
    """

    USERNAME_SUFFIX = "_username"

    def __init__(self, service_name: str = DEFAULT_SERVICE_NAME):
        self.service_name = service_name

    @staticmethod
    def make_key(host: str, share: str) -> str:
        return f"{host.lower()}|{share.lower()}"

    def get(self, host: str, share: str) -> tuple[str, str, str, bool]:
        key = self.make_key(host, share)
        try:
            password = keyring.get_password(self.service_name, key)
            identity = keyring.get_password(self.service_name, f"{key}{self.USERNAME_SUFFIX}")
        except KeyringError as e:
            _logger.error(f"Failed to get credentials: {e}")
            return "", "", "", False

        if password is None and identity is None:
            return "", "", "", False

        domain, username = split_identity(identity or "")
        return domain, username, password or "", True

    def set(self, host: str, share: str, domain: str, username: str, password: str) -> bool:
        key = self.make_key(host, share)
        identity = f"{domain}\\{username}" if domain else username
        try:
            keyring.set_password(self.service_name, key, password)
            keyring.set_password(self.service_name, f"{key}{self.USERNAME_SUFFIX}", identity)
            _logger.debug(f"Saved credentials for //{host}/{share}")
            return True
        except KeyringError as e:
            _logger.error(f"Failed to save credentials: {e}")
            return False

    def delete(self, host: str, share: str) -> bool:
        key = self.make_key(host, share)
        success = True
        try:
            keyring.delete_password(self.service_name, key)
        except KeyringError:
            success = False

        try:
            keyring.delete_password(self.service_name, f"{key}{self.USERNAME_SUFFIX}")
        except PasswordDeleteError:
            pass  # Username might not exist
        except KeyringError as e:
            _logger.error(f"Failed to delete username entry: {e}")

        if success:
            _logger.debug(f"Deleted credentials for //{host}/{share}")

        return success


class CredentialsProvider(ABC):
    """Supplies credentials interactively or programmatically.

    ``get`` may block until the user responds.
    """

    @abstractmethod
    def get(self, host: str, share: str, rel_path: str) -> Credentials:
        """Get credentials for a share.

        Raises:
            Exception: If the user cancels or the provider fails.
        """


class CachedCredentialsProvider(CredentialsProvider):
    """Wraps a provider so each (host, share) is asked at most once.

    Concurrent misses for the same pair wait for the first caller's answer
    instead of asking again.
    """

    def __init__(self, fallback: CredentialsProvider | None):
        self._fallback = fallback
        self._cache: dict[tuple[str, str], Credentials] = {}
        self._lock = threading.Lock()
        self._key_locks: dict[tuple[str, str], threading.Lock] = {}

    def _key_lock(self, key: tuple[str, str]) -> threading.Lock:
        with self._lock:
            return self._key_locks.setdefault(key, threading.Lock())

    def get(self, host: str, share: str, rel_path: str) -> Credentials:
        if self._fallback is None:
            return Credentials()

        key = _key(host, share)
        with self._key_lock(key):
            with self._lock:
                cached = self._cache.get(key)
            if cached is not None and not cached.is_empty():
                return cached

            creds = self._fallback.get(host, share, rel_path)
            with self._lock:
                self._cache[key] = creds
            return creds

    def forget(self, host: str, share: str) -> None:
        """Drop the cached answer so the next miss asks again."""
        with self._lock:
            self._cache.pop(_key(host, share), None)


class CredentialStore:
    """Resolves credentials with strict precedence.

    1. Session memory cache (no I/O).
    2. Secret store; a hit is copied into the memory cache.
    3. Credentials provider, only when both miss.

    One coarse lock guards the memory cache for all (host, share) keys.
    """

    def __init__(
        self,
        provider: CredentialsProvider | None = None,
        secret_store: SecretStore | None = None,
    ):
        """Initialize the store.

        Args:
            provider: Interactive or programmatic provider. Wrapped in a
                      CachedCredentialsProvider unless it already is one.
            secret_store: Persistent store. If None, only memory is used.
        """
        if provider is not None and not isinstance(provider, CachedCredentialsProvider):
            provider = CachedCredentialsProvider(provider)
        self._provider: CachedCredentialsProvider | None = provider
        self._secret_store = secret_store
        self._memory: dict[tuple[str, str], Credentials] = {}
        self._sources: dict[tuple[str, str], str] = {}
        self._failures: dict[tuple[str, str], int] = {}
        self._skip_secret_store: set[tuple[str, str]] = set()
        self._lock = threading.RLock()

    @property
    def secret_store(self) -> SecretStore | None:
        return self._secret_store

    def get(self, host: str, share: str, rel_path: str = "", prompt: bool = True) -> Credentials:
        """Get credentials for a share, consulting each tier in order.

        Args:
            host: Server name.
            share: Share name.
            rel_path: Path inside the share, passed on to the provider.
            prompt: Whether the provider may be asked. Background callers
                    pass False so they never block on a prompt.

        Returns:
            Credentials, empty if every tier missed.
        """
        key = _key(host, share)

        cached = self.get_cached(host, share)
        if cached is not None:
            return cached

        if self._secret_store is not None and key not in self._skip_secret_store:
            try:
                domain, username, password, found = self._secret_store.get(host, share)
            except Exception as e:
                _logger.debug(f"Secret store lookup failed for //{host}/{share}: {e}")
                found = False
            if found:
                creds = Credentials(domain=domain, username=username, password=password)
                self._remember(key, creds, SOURCE_SECRET_STORE)
                return creds

        if self._provider is None or not prompt:
            return Credentials()

        try:
            creds = self._provider.get(host, share, rel_path)
        except Exception as e:
            _logger.debug(f"Credentials provider gave no credentials for //{host}/{share}: {e}")
            return Credentials()

        if not creds.is_empty():
            self._remember(key, creds, SOURCE_PROVIDER)
        return creds

    def get_cached(self, host: str, share: str) -> Credentials | None:
        """Get memory-cached credentials without consulting other tiers."""
        with self._lock:
            creds = self._memory.get(_key(host, share))
        if creds is not None and not creds.is_empty():
            return creds
        return None

    def put(self, host: str, share: str, creds: Credentials) -> None:
        """Seed the memory cache, e.g. with credentials typed in a URL."""
        self._remember(_key(host, share), creds, SOURCE_MEMORY)

    seed = put

    def _remember(self, key: tuple[str, str], creds: Credentials, source: str) -> None:
        with self._lock:
            self._memory[key] = creds
            self._sources[key] = source

    def source_of(self, host: str, share: str) -> str | None:
        """Get which tier produced the currently cached credentials."""
        with self._lock:
            return self._sources.get(_key(host, share))

    def clear(self, host: str, share: str) -> None:
        """Drop cached credentials for a share after an authentication failure.

        The secret store is never touched here, so a keychain entry gets
        one more attempt before the user is asked again.
        """
        key = _key(host, share)
        with self._lock:
            self._memory.pop(key, None)
            source = self._sources.pop(key, None)
            if source == SOURCE_SECRET_STORE:
                self._failures[key] = self._failures.get(key, 0) + 1
                if self._failures[key] >= 2:
                    # Stop offering the stored entry until it is overwritten
                    self._skip_secret_store.add(key)
        if self._provider is not None:
            self._provider.forget(host, share)
        _logger.debug(f"Cleared cached credentials for //{host}/{share}")

    def persist(self, host: str, share: str, creds: Credentials) -> bool:
        """Write credentials to the secret store, replacing any old entry.

        The memory copy is marked as persisted so later successes do not
        write again.
        """
        if self._secret_store is None:
            return False
        saved = self._secret_store.set(host, share, creds.domain, creds.username, creds.password)
        if saved:
            key = _key(host, share)
            with self._lock:
                self._skip_secret_store.discard(key)
                self._failures.pop(key, None)
                cached = self._memory.get(key)
                if cached is not None and cached.persist:
                    self._memory[key] = replace(cached, persist=False)
        return saved

    def forget(self, host: str, share: str) -> None:
        """Remove credentials for a share from memory and the secret store."""
        self.clear(host, share)
        if self._secret_store is not None:
            self._secret_store.delete(host, share)
        key = _key(host, share)
        with self._lock:
            self._skip_secret_store.discard(key)
            self._failures.pop(key, None)
