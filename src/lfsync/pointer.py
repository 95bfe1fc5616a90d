"""
Pointer records stored in history in place of the real file content.

A pointer is a small ASCII file using the git-lfs compatible layout:

    version https://git-lfs.github.com/spec/v1
    oid sha256:4d7a214614ab2935c943f9e0ff69d22eadbb8f32b1258daaa5e2ca24d17e2393
    size 12345

The version line always comes first, the remaining keys follow in sorted
order, and every line is terminated by a newline. The whole record never
exceeds MAX_POINTER_SIZE bytes.
"""

from __future__ import annotations

import hashlib
import os
import re
import shutil
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from tempfile import TemporaryDirectory
from typing import Final

from .errors import PointerFormatError

POINTER_VERSION: Final[str] = "https://git-lfs.github.com/spec/v1"
"""Version URI written on the first line of every pointer."""

MAX_POINTER_SIZE: Final[int] = 1024
"""Maximum size in bytes of a serialized pointer."""

HASH_ALGORITHM: Final[str] = "sha256"

CHUNK_SIZE: Final[int] = 64 * 1024

_OID_RE = re.compile(r"^[0-9a-f]{64}$")
_SIZE_RE = re.compile(r"^(0|[1-9][0-9]*)$")
_KEY_RE = re.compile(r"^[a-z0-9.-]+$")


@dataclass(frozen=True, kw_only=True)
class PointerRecord:
    """
    Content identity of a single logical file.

    Attributes:
        oid: the SHA-256 hex digest of the content
        size: the content size in bytes
        version: the version URI (always POINTER_VERSION)
    """

    oid: str
    size: int
    version: str = POINTER_VERSION

    @property
    def oid_field(self) -> str:
        """Return the algorithm-tagged oid, e.g. `sha256:4d7a...`."""
        return f"{HASH_ALGORITHM}:{self.oid}"

    def encode(self) -> bytes:
        """Return the canonical serialization of this record."""
        return encode(self.oid, self.size)


def encode(oid: str, size: int) -> bytes:
    """Serialize the given oid and size into the canonical pointer bytes."""
    if not _OID_RE.match(oid):
        raise ValueError(f"invalid {HASH_ALGORITHM} oid: {oid!r}")
    if size < 0:
        raise ValueError(f"invalid size: {size}")
    text = f"version {POINTER_VERSION}\noid {HASH_ALGORITHM}:{oid}\nsize {size}\n"
    return text.encode("ascii")


def decode(data: bytes) -> PointerRecord:
    """
    Parse pointer bytes into a PointerRecord.

    Raises:
        PointerFormatError: if the bytes are not a valid pointer.
    """
    if len(data) > MAX_POINTER_SIZE:
        raise PointerFormatError(f"pointer exceeds {MAX_POINTER_SIZE} bytes")
    try:
        text = data.decode("ascii")
    except UnicodeDecodeError as exc:
        raise PointerFormatError("pointer is not ASCII text") from exc
    if not text.endswith("\n"):
        raise PointerFormatError("pointer is not newline-terminated")

    lines = text[:-1].split("\n")
    if lines[0] != f"version {POINTER_VERSION}":
        raise PointerFormatError("missing or unrecognized version line")

    fields: dict[str, str] = {}
    previous = ""
    for line in lines[1:]:
        key, sep, value = line.partition(" ")
        if not sep or not value or not _KEY_RE.match(key):
            raise PointerFormatError(f"malformed line: {line!r}")
        if key == "version":
            raise PointerFormatError("duplicate version line")
        if key <= previous:
            reason = "duplicated" if key == previous else "unsorted"
            raise PointerFormatError(f"{reason} key: {key}")
        fields[key] = value
        previous = key

    oid_value = fields.get("oid")
    if oid_value is None:
        raise PointerFormatError("missing oid")
    algorithm, _, oid = oid_value.partition(":")
    if algorithm != HASH_ALGORITHM or not _OID_RE.match(oid):
        raise PointerFormatError(f"malformed oid: {oid_value!r}")

    size_value = fields.get("size")
    if size_value is None:
        raise PointerFormatError("missing size")
    if not _SIZE_RE.match(size_value):
        raise PointerFormatError(f"malformed size: {size_value!r}")

    return PointerRecord(oid=oid, size=int(size_value))


def read_pointer(path: Path) -> PointerRecord | None:
    """
    Return the pointer stored at path, or None when the file is not a
    pointer. Only the first MAX_POINTER_SIZE + 1 bytes are ever read.

    Raises:
        OSError: if the file cannot be read.
    """
    with open(path, "rb") as filep:
        data = filep.read(MAX_POINTER_SIZE + 1)
    try:
        return decode(data)
    except PointerFormatError:
        return None


def write_pointer(path: Path, record: PointerRecord) -> None:
    """Atomically replace the file at path with the encoded record."""
    # Operate inside a temporary directory next to the destination so
    # `os.replace()` is atomic and never crosses filesystems.
    with TemporaryDirectory(dir=path.parent, prefix=".lfsync-") as tmp_dir:
        tmp_file = Path(tmp_dir) / path.name
        tmp_file.write_bytes(record.encode())
        if path.exists():
            shutil.copymode(path, tmp_file)
        os.replace(tmp_file, path)


def hash_chunks(chunks: Iterable[bytes]) -> tuple[str, int]:
    """Return the SHA-256 hex digest and total size of the given chunks."""
    digest = hashlib.sha256()
    size = 0
    for chunk in chunks:
        digest.update(chunk)
        size += len(chunk)
    return digest.hexdigest(), size


def iter_file(path: Path, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Yield the content of path in fixed-size chunks."""
    with open(path, "rb") as filep:
        while chunk := filep.read(chunk_size):
            yield chunk


def hash_file(path: Path) -> tuple[str, int]:
    """Stream the file at path and return its SHA-256 hex digest and size."""
    return hash_chunks(iter_file(path))
