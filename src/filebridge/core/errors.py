"""Error types raised by the FileBridge core."""


class FileBridgeError(Exception):
    """Base class for structured FileBridge errors.

    Args:
        operation: Name of the operation that failed (e.g. "resolve").
        message: Human readable description.
        path: Path involved in the failure, if any.
    """

    def __init__(self, operation: str, message: str, path: str | None = None):
        self.operation = operation
        self.message = message
        self.path = path
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.path:
            return f"{self.operation} [{self.path}]: {self.message}"
        return f"{self.operation}: {self.message}"


class UnsupportedSchemeError(FileBridgeError):
    """SMB was requested but no provider can serve it on this platform."""


class InvalidPathError(FileBridgeError, ValueError):
    """Input could not be parsed into host and share."""


class NoCredentialsError(FileBridgeError):
    """Every credential tier came back empty."""


class AuthenticationError(FileBridgeError, PermissionError):
    """The remote side rejected the supplied identity."""

    def __init__(self, operation: str, message: str, host: str = "", share: str = "", path: str | None = None):
        self.host = host
        self.share = share
        super().__init__(operation, message, path)


class SessionCredentialConflictError(FileBridgeError, ConnectionError):
    """A session to the host already exists under a different identity."""

    def __init__(self, operation: str, message: str, host: str = "", share: str = "", path: str | None = None):
        self.host = host
        self.share = share
        super().__init__(operation, message, path)


class TransientReadError(FileBridgeError):
    """A watcher tick could not list its directory."""
