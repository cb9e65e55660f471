"""Pytest fixtures for FileBridge tests."""

import io
import shutil
import tempfile
from datetime import datetime
from pathlib import Path

import pytest

from filebridge.core.credentials import Credentials, CredentialsProvider, CredentialStore, SecretStore
from filebridge.core.connection import SessionBackend
from filebridge.core.errors import AuthenticationError, SessionCredentialConflictError
from filebridge.core.fileinfo import FileRecord, FileType
from filebridge.core.vfs.base import VFS, Capabilities, DirEntry, FileStat
from filebridge.core.watcher import DirectoryConsumer


class MemorySecretStore(SecretStore):
    """Secret store kept in a dict, counting lookups and writes."""

    def __init__(self):
        self.entries: dict[tuple[str, str], tuple[str, str, str]] = {}
        self.get_calls = 0
        self.set_calls = 0
        self.deleted: list[tuple[str, str]] = []

    def get(self, host, share):
        self.get_calls += 1
        entry = self.entries.get((host, share))
        if entry is None:
            return "", "", "", False
        return (*entry, True)

    def set(self, host, share, domain, username, password):
        self.set_calls += 1
        self.entries[(host, share)] = (domain, username, password)
        return True

    def delete(self, host, share):
        self.deleted.append((host, share))
        return self.entries.pop((host, share), None) is not None


class CountingProvider(CredentialsProvider):
    """Provider returning fixed credentials and counting calls."""

    def __init__(self, creds: Credentials | None = None, error: Exception | None = None):
        self.creds = creds or Credentials()
        self.error = error
        self.calls = 0

    def get(self, host, share, rel_path):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.creds


class FakeSessionBackend(SessionBackend):
    """Session backend recording calls and raising on demand."""

    def __init__(self, fail_with: str | None = None):
        self.fail_with = fail_with
        self.calls: list[tuple[str, str, str, str]] = []

    def add_connection(self, host, share, username, password):
        self.calls.append((host, share, username, password))
        if self.fail_with == "auth":
            raise AuthenticationError("connect", "access denied", host=host, share=share)
        if self.fail_with == "conflict":
            raise SessionCredentialConflictError("connect", "conflict", host=host, share=share)


class MemoryVFS(VFS):
    """In-memory provider: a dict of directory -> {name: (is_dir, size, mtime)}."""

    def __init__(self, tree: dict[str, dict[str, tuple[bool, int, datetime]]] | None = None):
        self.tree = tree or {}
        self.read_dir_calls = 0

    @property
    def capabilities(self):
        return Capabilities(fast_list=True, watch=False)

    def read_dir(self, path):
        self.read_dir_calls += 1
        if path not in self.tree:
            raise FileNotFoundError(path)
        return [
            DirEntry(
                name=name,
                is_dir=is_dir,
                file_type=FileType.DIRECTORY if is_dir else FileType.REGULAR,
                size=size,
                modified_time=mtime,
            )
            for name, (is_dir, size, mtime) in self.tree[path].items()
        ]

    def stat(self, path):
        parent, _, name = path.rpartition("/")
        parent = parent or "/"
        try:
            is_dir, size, mtime = self.tree[parent][name]
        except KeyError:
            raise FileNotFoundError(path) from None
        return FileStat(size=size, modified_time=mtime, is_dir=is_dir)

    def open(self, path):
        return io.BytesIO(b"")

    def join(self, *parts):
        return "/" + "/".join(p.strip("/") for p in parts if p.strip("/"))

    def base(self, path):
        return path.rstrip("/").rsplit("/", 1)[-1]


class ListConsumer(DirectoryConsumer):
    """Consumer holding a plain list; optionally sorts on commit."""

    def __init__(self, path: str, files: list[FileRecord] | None = None, sort: bool = False):
        self.path = path
        self.files = list(files or [])
        self.selection: set[str] = set()
        self.sort = sort
        self.commits = 0

    def get_current_path(self):
        return self.path

    def get_files(self):
        return list(self.files)

    def commit_files(self, files):
        self.commits += 1
        if self.sort:
            files = sorted(files, key=lambda f: f.name)
        self.files = list(files)
        return list(self.files)

    def remove_from_selection(self, path):
        self.selection.discard(path)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    # Cleanup
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def secret_store():
    return MemorySecretStore()


@pytest.fixture
def provider():
    return CountingProvider(Credentials(domain="CORP", username="alice", password="s3cret"))


@pytest.fixture
def credential_store(provider: CountingProvider, secret_store: MemorySecretStore):
    """CredentialStore wired to fake tiers."""
    return CredentialStore(provider=provider, secret_store=secret_store)


@pytest.fixture
def settings(temp_dir: Path):
    """Settings backed by a throwaway INI file."""
    from filebridge.utils.settings import Settings

    return Settings(temp_dir / "filebridge.ini")
