"""Typed exception hierarchy for difync.

All exceptions inherit from ``DifyncError`` so the CLI can catch them at the
top level.  Per-entry failures (``LocalIOError``, ``DifyAPIError``) are
caught by the sync engine and turned into unsuccessful ``SyncResult``
values; mapping load failures abort the run.
"""

from __future__ import annotations


class DifyncError(Exception):
    """Base exception for all difync errors."""


class ConfigError(DifyncError, ValueError):
    """Raised when configuration is missing or invalid."""


class DifyAPIError(DifyncError):
    """Raised when the Dify API returns a non-success response or is unreachable.

    Attributes:
        status_code: HTTP status code, or ``None`` for transport failures.
        body: Response body text, when available.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        if status_code is not None:
            message = f"{message}: status={status_code}"
            if body:
                message += f", body={body}"
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class LocalIOError(DifyncError):
    """Raised when a filesystem operation on a DSL file fails."""

    def __init__(
        self, operation: str, path: str, reason: str | None = None
    ) -> None:
        message = f"{operation} failed for {path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.operation = operation
        self.path = path
        self.reason = reason


class MappingLoadError(DifyncError):
    """Raised when the app map file cannot be loaded."""


class MappingNotFoundError(MappingLoadError):
    """Raised when the app map file does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(
            f"App map file not found at {path}. "
            "Please run 'difync init' first to initialize the app map."
        )
        self.path = path


class MappingDecodeError(MappingLoadError):
    """Raised when the app map file is not a well-formed app map."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Failed to decode app map {path}: {reason}")
        self.path = path
        self.reason = reason


class MappingPersistError(DifyncError):
    """Raised when the updated app map cannot be written."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Failed to write app map {path}: {reason}")
        self.path = path
        self.reason = reason


class InitError(DifyncError):
    """Raised when app map initialization fails."""
