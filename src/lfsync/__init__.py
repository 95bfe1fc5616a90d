"""lfsync: keep large files out of git history.

Tracked files are replaced by small pointer files in the working tree,
while their content lives in a shared local cache and in a remote
content-addressed store.
"""

from importlib.metadata import PackageNotFoundError, version

from .cache import LocalCache, cache_dir_or_default
from .config import LFSyncConfig, load_config
from .engine import SyncEngine, SyncReport
from .errors import ErrorKind, LFSyncError
from .pointer import PointerRecord
from .scanner import PathFilter, ScanMode, Scanner
from .store import ContentStore, create_store

try:
    __version__ = version("lfsync")
except PackageNotFoundError:  # pragma: no cover - running from a source tree
    __version__ = "0.0.0"

__all__ = [
    "ContentStore",
    "ErrorKind",
    "LFSyncConfig",
    "LFSyncError",
    "LocalCache",
    "PathFilter",
    "PointerRecord",
    "ScanMode",
    "Scanner",
    "SyncEngine",
    "SyncReport",
    "cache_dir_or_default",
    "create_store",
    "load_config",
    "__version__",
]
