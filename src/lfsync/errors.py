"""Error taxonomy shared by the lfsync modules."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Kind of failure, as reported in per-file diagnostics."""

    CONFIGURATION = "configuration"
    POINTER_FORMAT = "pointer_format"
    TRANSIENT_STORAGE = "transient_storage"
    PERMANENT_STORAGE = "permanent_storage"
    LOCAL_IO = "local_io"


class LFSyncError(Exception):
    """Base class for all the errors raised by lfsync."""

    kind: ErrorKind = ErrorKind.LOCAL_IO


class ConfigurationError(LFSyncError):
    """Missing or invalid backend settings. Fatal for the whole command."""

    kind = ErrorKind.CONFIGURATION


class PointerFormatError(LFSyncError, ValueError):
    """The bytes do not form a valid pointer record."""

    kind = ErrorKind.POINTER_FORMAT


class StorageError(LFSyncError):
    """Base class for content store failures."""

    kind = ErrorKind.PERMANENT_STORAGE


class TransientStorageError(StorageError):
    """Timeout, connection failure, throttling or 5xx response."""

    kind = ErrorKind.TRANSIENT_STORAGE


class PermanentStorageError(StorageError):
    """Authentication, permission or other non-retryable failure."""

    kind = ErrorKind.PERMANENT_STORAGE


class ObjectNotFoundError(PermanentStorageError):
    """The requested object does not exist in the store."""


class ContentMismatchError(PermanentStorageError):
    """The bytes we received do not hash to the expected oid."""


class LocalIOError(LFSyncError):
    """Disk full, permission denied or another local filesystem error."""

    kind = ErrorKind.LOCAL_IO


class VersionControlError(LocalIOError):
    """The version control tool failed while staging or listing files."""
