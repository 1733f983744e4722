"""Hook-style dispatch surface.

Hosts that route filesystem calls by scheme (``open``, ``read``, ``mkdir``,
...) to a handler object use :class:`CacheFSHandler`.  Unlike
:class:`~cachefs.CacheFileSystem`, its hooks never raise for filesystem
errors: each failure is logged at WARNING and reported as ``False``.

Usage::

    prefix = register(MemoryCacheStore())     # "cachefs://"
    h = CacheFSHandler()
    h.mkdir(prefix + "d")
    h.open(prefix + "d/f.txt", "w")
    h.write(b"hi")
    h.close()
    h.end()
"""

from __future__ import annotations

import functools
import logging
import threading
from typing import TYPE_CHECKING

from ._fs import DEFAULT_SCHEME, CacheFileSystem
from ._path import root_path, validate_scheme

if TYPE_CHECKING:
    from ._dir import DirectoryCursor
    from ._handle import CacheFileHandle
    from ._store import CacheStore
    from ._typing import CFSStatResult

logger = logging.getLogger(__name__)

_registry: dict[str, CacheStore] = {}
_registry_lock = threading.Lock()


def register(store: CacheStore, scheme: str = DEFAULT_SCHEME) -> str:
    """Bind *store* to *scheme* and return the scheme's root prefix.

    The first registration of a scheme wins; registering it again keeps the
    original store.
    """
    validate_scheme(scheme)
    with _registry_lock:
        if scheme not in _registry:
            _registry[scheme] = store
            logger.debug("Registered %s:// -> %r", scheme, store)
    return root_path(scheme)


def unregister(scheme: str) -> None:
    with _registry_lock:
        _registry.pop(scheme, None)


def registered_store(scheme: str) -> CacheStore:
    with _registry_lock:
        store = _registry.get(scheme)
    if store is None:
        raise LookupError(f"No cache store registered for scheme '{scheme}'")
    return store


def _reported(default=False):
    """Turn OSError / ValueError / TypeError from a hook into a logged *default* return."""
    def decorate(fn):
        @functools.wraps(fn)
        def wrapper(self, *args, **kwargs):
            try:
                return fn(self, *args, **kwargs)
            except (OSError, ValueError, TypeError) as e:
                logger.warning("%s: %s", fn.__name__, e)
                return default
        return wrapper
    return decorate


class CacheFSHandler:
    """One session of hook calls against the store registered for *scheme*."""

    def __init__(self, scheme: str = DEFAULT_SCHEME, **options) -> None:
        self._cfs = CacheFileSystem(registered_store(scheme), scheme=scheme, **options)
        self._stream: CacheFileHandle | None = None
        self._dir: DirectoryCursor | None = None

    @property
    def filesystem(self) -> CacheFileSystem:
        return self._cfs

    def _current_stream(self) -> CacheFileHandle:
        if self._stream is None:
            raise ValueError("No open stream.")
        return self._stream

    def end(self) -> None:
        """Close any open stream, persist the index and release the lock."""
        self._stream = None
        self._dir = None
        self._cfs.close()

    def __enter__(self) -> CacheFSHandler:
        return self

    def __exit__(self, *args) -> None:
        self.end()

    # -- stream hooks --

    @_reported()
    def open(self, path: str, mode: str) -> bool:
        if self._stream is not None:
            raise ValueError(f"A stream is already open: '{self._stream.path}'")
        self._stream = self._cfs.open(path, mode)
        return True

    @_reported()
    def read(self, count: int) -> bytes:
        return self._current_stream().read(count)

    @_reported()
    def write(self, data: bytes) -> int:
        return self._current_stream().write(data)

    @_reported()
    def seek(self, offset: int, whence: int = 0) -> bool:
        self._current_stream().seek(offset, whence)
        return True

    @_reported()
    def tell(self) -> int:
        return self._current_stream().tell()

    @_reported(default=True)
    def eof(self) -> bool:
        return self._current_stream().eof()

    @_reported()
    def flush(self) -> bool:
        self._current_stream().flush()
        return True

    @_reported()
    def close(self) -> bool:
        stream = self._current_stream()
        self._stream = None
        stream.close()
        return True

    @_reported()
    def fstat(self) -> CFSStatResult:
        return self._current_stream().stat()

    # -- path hooks --

    @_reported()
    def stat(self, path: str) -> CFSStatResult:
        return self._cfs.stat(path)

    @_reported()
    def unlink(self, path: str) -> bool:
        self._cfs.unlink(path)
        return True

    @_reported()
    def rename(self, src: str, dst: str) -> bool:
        self._cfs.rename(src, dst)
        return True

    @_reported()
    def mkdir(self, path: str) -> bool:
        self._cfs.mkdir(path)
        return True

    @_reported()
    def rmdir(self, path: str) -> bool:
        self._cfs.rmdir(path)
        return True

    # -- directory hooks --

    @_reported()
    def opendir(self, path: str) -> bool:
        self._dir = self._cfs.opendir(path)
        return True

    def readdir(self) -> str | bool:
        if self._dir is None:
            return False
        name = self._dir.read()
        return False if name is None else name

    def rewinddir(self) -> bool:
        if self._dir is None:
            return False
        self._dir.rewind()
        return True

    def closedir(self) -> bool:
        if self._dir is not None:
            self._dir.close()
        self._dir = None
        return True
