from ._dir import DirectoryCursor
from ._exceptions import (
    CFSDirectoryNotEmptyError,
    CFSInvalidOperationError,
    CFSInvalidParentError,
    CFSNotFoundError,
)
from ._fs import DEFAULT_CONTENT_TTL, DEFAULT_SCHEME, DEFAULT_TIME_LIMIT, CacheFileSystem
from ._handle import CacheFileHandle
from ._index import Entry
from ._lock import IndexLock
from ._path import normalize_path
from ._store import CacheStore, MemoryCacheStore
from ._typing import CFSStatResult
from ._wrapper import CacheFSHandler, register, registered_store, unregister

__all__ = [
    "CacheFileSystem",
    "CacheFileHandle",
    "CacheFSHandler",
    "CacheStore",
    "MemoryCacheStore",
    "DirectoryCursor",
    "Entry",
    "IndexLock",
    "CFSStatResult",
    "CFSNotFoundError",
    "CFSInvalidParentError",
    "CFSDirectoryNotEmptyError",
    "CFSInvalidOperationError",
    "normalize_path",
    "register",
    "unregister",
    "registered_store",
    "DEFAULT_SCHEME",
    "DEFAULT_TIME_LIMIT",
    "DEFAULT_CONTENT_TTL",
]
__version__ = "0.1.0"
