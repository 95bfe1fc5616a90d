"""
Remote content stores keyed by content hash.

A store is anything implementing the ContentStore protocol. Objects are
write-once: the key is derived from the SHA-256 of the content, so
uploading the same oid twice always uploads identical bytes.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Protocol, runtime_checkable

from ..config import LFSyncConfig
from ..errors import ConfigurationError
from .retry import RetryPolicy, call_with_retry


@runtime_checkable
class ContentStore(Protocol):
    """
    Capability set of a remote content store.

    Methods:
        exists: return whether an object exists for the oid.
        put: upload size bytes read from source under the oid.
        get: stream the object content as a sequence of chunks.
        describe: human readable description for diagnostics.

    Implementations raise TransientStorageError only after their retry
    policy is exhausted, PermanentStorageError (or ObjectNotFoundError)
    without retrying, and LocalIOError when reading source fails.
    """

    def exists(self, oid: str) -> bool: ...

    def put(self, oid: str, size: int, source: Path) -> None: ...

    def get(self, oid: str) -> Iterator[bytes]: ...

    def describe(self) -> str: ...


def create_store(config: LFSyncConfig) -> ContentStore:
    """
    Create the content store selected by the configuration.

    Raises:
        ConfigurationError: if the configuration is invalid.
    """
    config.validate()
    policy = RetryPolicy(max_attempts=config.transfer.max_attempts)
    if config.storage.provider == "s3":
        from .s3 import S3ContentStore

        return S3ContentStore.from_config(config.storage, timeout=config.transfer.timeout, policy=policy)
    raise ConfigurationError(f"unsupported storage provider: {config.storage.provider}")


__all__ = [
    "ContentStore",
    "RetryPolicy",
    "call_with_retry",
    "create_store",
]
