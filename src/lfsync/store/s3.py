"""Content store backed by an S3-compatible object storage service."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any, Final

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    HTTPClientError,
    IncompleteReadError,
    NoCredentialsError,
    PartialCredentialsError,
)
from botocore.exceptions import ConnectionError as BotoConnectionError

from ..config import StorageConfig
from ..errors import (
    LocalIOError,
    ObjectNotFoundError,
    PermanentStorageError,
    StorageError,
    TransientStorageError,
)
from .retry import RetryPolicy, call_with_retry

log = logging.getLogger("lfsync/s3")

DOWNLOAD_CHUNK_SIZE: Final[int] = 64 * 1024

_NOT_FOUND_CODES: Final[frozenset[str]] = frozenset({"404", "NoSuchKey", "NotFound"})

_TRANSIENT_CODES: Final[frozenset[str]] = frozenset(
    {
        "InternalError",
        "RequestLimitExceeded",
        "RequestTimeout",
        "RequestTimeoutException",
        "ServiceUnavailable",
        "SlowDown",
        "Throttling",
        "ThrottlingException",
    }
)


def classify_error(exc: Exception, descr: str) -> StorageError:
    """Map a boto3/botocore exception to our storage error taxonomy."""
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        code = str(error.get("Code", ""))
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode") or 0
        message = f"{descr}: {code or status} {error.get('Message', '')}".rstrip()
        if code == "NoSuchBucket":
            return PermanentStorageError(message)
        if code in _NOT_FOUND_CODES or status == 404:
            return ObjectNotFoundError(message)
        if code in _TRANSIENT_CODES or status == 429 or status >= 500:
            return TransientStorageError(message)
        return PermanentStorageError(message)
    if isinstance(exc, (NoCredentialsError, PartialCredentialsError)):
        return PermanentStorageError(f"{descr}: {exc}")
    if isinstance(exc, (BotoConnectionError, HTTPClientError, IncompleteReadError)):
        return TransientStorageError(f"{descr}: {exc}")
    return PermanentStorageError(f"{descr}: {exc}")


def object_key(oid: str, prefix: str | None = None) -> str:
    """Return the object key of oid, sharded by the first two hex digits."""
    key = f"{oid[:2]}/{oid}"
    prefix = (prefix or "").strip("/")
    return f"{prefix}/{key}" if prefix else key


class S3ContentStore:
    """
    Content store using an S3 bucket.

    This class implements the store.ContentStore protocol. Objects live
    at `<prefix>/<oid[:2]>/<oid>` and are never modified once written.
    """

    def __init__(
        self,
        client: Any,
        *,
        bucket: str,
        prefix: str | None = None,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.bucket = bucket
        self.prefix = prefix
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        storage: StorageConfig,
        *,
        timeout: float = 60.0,
        policy: RetryPolicy | None = None,
    ) -> S3ContentStore:
        """Create the boto3 client described by the storage config."""
        creds = storage.credentials
        if creds is not None:
            session = boto3.Session(
                aws_access_key_id=creds.access_key_id,
                aws_secret_access_key=creds.secret_access_key,
                region_name=storage.region,
            )
        else:
            session = boto3.Session(region_name=storage.region)
        # Retries are handled by our RetryPolicy, one attempt per call here.
        client_config = Config(
            connect_timeout=timeout,
            read_timeout=timeout,
            retries={"total_max_attempts": 1, "mode": "standard"},
            max_pool_connections=32,
        )
        client = session.client("s3", endpoint_url=storage.endpoint, config=client_config)
        return cls(client, bucket=storage.bucket, prefix=storage.prefix, policy=policy)

    def describe(self) -> str:
        prefix = (self.prefix or "").strip("/")
        return f"s3://{self.bucket}/{prefix}" if prefix else f"s3://{self.bucket}"

    def key(self, oid: str) -> str:
        return object_key(oid, self.prefix)

    def exists(self, oid: str) -> bool:
        key = self.key(oid)

        def head() -> bool:
            try:
                self.client.head_object(Bucket=self.bucket, Key=key)
            except (ClientError, BotoCoreError) as exc:
                err = classify_error(exc, f"head {key}")
                if isinstance(err, ObjectNotFoundError):
                    return False
                raise err from exc
            return True

        return call_with_retry(self.policy, head, descr=f"checking {key}", sleep=self._sleep)

    # TODO(lfsync): switch to multipart uploads, put_object caps objects at 5 GiB.
    def put(self, oid: str, size: int, source: Path) -> None:
        key = self.key(oid)

        def upload() -> None:
            try:
                with open(source, "rb") as filep:
                    self.client.put_object(
                        Bucket=self.bucket,
                        Key=key,
                        Body=filep,
                        ContentLength=size,
                        ContentType="application/octet-stream",
                    )
            except (ClientError, BotoCoreError) as exc:
                raise classify_error(exc, f"put {key}") from exc
            except OSError as exc:
                raise LocalIOError(f"cannot read {source}: {exc}") from exc

        log.debug("uploading %s (%d bytes)... start", key, size)
        call_with_retry(self.policy, upload, descr=f"uploading {key}", sleep=self._sleep)
        log.debug("uploading %s (%d bytes)... ok", key, size)

    def get(self, oid: str) -> Iterator[bytes]:
        """
        Stream the object content. On a transient failure in the middle
        of the body we issue a ranged request resuming from the number of
        bytes already yielded, within the bounds of the retry policy.
        """
        key = self.key(oid)
        received = 0
        attempt = 0
        while True:
            kwargs: dict[str, Any] = {"Bucket": self.bucket, "Key": key}
            if received > 0:
                kwargs["Range"] = f"bytes={received}-"
            try:
                response = self.client.get_object(**kwargs)
                for chunk in response["Body"].iter_chunks(DOWNLOAD_CHUNK_SIZE):
                    received += len(chunk)
                    yield chunk
                return
            except (ClientError, BotoCoreError) as exc:
                err = classify_error(exc, f"get {key}")
                attempt += 1
                if not isinstance(err, TransientStorageError) or attempt >= self.policy.max_attempts:
                    raise err from exc
                delay = self.policy.delay(attempt - 1)
                log.info(
                    "downloading %s... transient failure at byte %d (%s), retrying in %.1fs",
                    key,
                    received,
                    err,
                    delay,
                )
                self._sleep(delay)
