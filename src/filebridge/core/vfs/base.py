"""Base classes for virtual filesystem providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import BinaryIO

from filebridge.core.fileinfo import FileType


@dataclass(frozen=True)
class Capabilities:
    """Provider abilities callers can use to pick a strategy.

    Providers without ``watch`` must be refreshed by polling.
    """

    fast_list: bool = False
    watch: bool = False


@dataclass
class DirEntry:
    """Represents one entry of a directory listing."""

    name: str
    is_dir: bool
    file_type: FileType | None = None
    # Filled in when the provider gets them for free while listing
    size: int | None = None
    modified_time: datetime | None = None

    @property
    def is_file(self) -> bool:
        """Check if entry is a file."""
        return not self.is_dir


@dataclass
class FileStat:
    """Metadata for a single path."""

    size: int
    modified_time: datetime | None
    is_dir: bool


class VFS(ABC):
    """Abstract base class for filesystem providers.

    This class defines the listing and metadata operations a file browser
    needs. Implementations take provider-native paths (see
    ``ParsedPath.native``) and hide protocol-specific details.
    """

    @property
    @abstractmethod
    def capabilities(self) -> Capabilities:
        """Get provider capabilities."""

    @abstractmethod
    def read_dir(self, path: str) -> list[DirEntry]:
        """List entries in a directory.

        Args:
            path: Provider-native directory path.

        Returns:
            List of DirEntry objects, without "." and "..".

        Raises:
            PermissionError: If access denied.
            FileNotFoundError: If path doesn't exist.
            ConnectionError: If the backend is unreachable.
        """

    @abstractmethod
    def stat(self, path: str) -> FileStat:
        """Get metadata for a path.

        Args:
            path: Provider-native path.

        Returns:
            FileStat for the path.
        """

    def open(self, path: str) -> BinaryIO:
        """Open a file for reading.

        Providers that cannot stream file contents keep this default.

        Raises:
            NotImplementedError: If the provider does not support reads.
        """
        raise NotImplementedError(f"{type(self).__name__} does not support open")

    @abstractmethod
    def join(self, *parts: str) -> str:
        """Join path elements using the provider's separator."""

    @abstractmethod
    def base(self, path: str) -> str:
        """Return the last element of a provider-native path."""
