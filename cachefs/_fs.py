from __future__ import annotations

import logging
import time
import warnings

from ._dir import DirectoryCursor, list_children
from ._exceptions import (
    CFSDirectoryNotEmptyError,
    CFSInvalidOperationError,
    CFSInvalidParentError,
    CFSNotFoundError,
)
from ._handle import CacheFileHandle, parse_mode
from ._index import DIRECTORY, FILE, Entry, PathIndex
from ._lock import IndexLock
from ._path import normalize_path, parent_path, root_path, validate_scheme
from ._store import CacheStore
from ._typing import CFSStatResult

logger = logging.getLogger(__name__)

DEFAULT_SCHEME = "cachefs"
DEFAULT_TIME_LIMIT = 60
DEFAULT_CONTENT_TTL = 30 * 24 * 60 * 60

DIR_MODE = 0o40777
FILE_MODE = 0o100777
BLOCK_SIZE = 512


class CacheFileSystem:
    """One session over a cache-backed filesystem.

    Constructing the session takes the store's index lock (waiting for
    other sessions to finish) and loads the index; :meth:`close` persists
    the index and releases the lock.  Use it as a context manager::

        with CacheFileSystem(store) as cfs:
            cfs.mkdir("/d")
            with cfs.open("/d/f.txt", "wb") as f:
                f.write(b"hi")

    Index changes made by a session become visible to other sessions only
    after it closes.
    """

    _closed: bool = True

    def __init__(
        self,
        store: CacheStore,
        scheme: str = DEFAULT_SCHEME,
        time_limit: float | None = DEFAULT_TIME_LIMIT,
        content_ttl: int | None = DEFAULT_CONTENT_TTL,
        index_ttl: int | None = None,
        poll_interval: float = 0.001,
        max_backoff: float = 0.128,
    ) -> None:
        if not isinstance(store, CacheStore):
            raise TypeError(
                f"store must provide get/set/delete, got {type(store).__name__}"
            )
        validate_scheme(scheme)
        if time_limit is None or time_limit <= 0:
            time_limit = DEFAULT_TIME_LIMIT
        if content_ttl is not None and content_ttl < 0:
            raise ValueError("content_ttl must be >= 0 or None")
        if index_ttl is not None and index_ttl < 0:
            raise ValueError("index_ttl must be >= 0 or None")
        self._store = store
        self._scheme = scheme
        self._root = root_path(scheme)
        self._content_ttl = content_ttl
        self._index_ttl = index_ttl
        self._handles: list[CacheFileHandle] = []
        self._lock = IndexLock(store, scheme, time_limit, poll_interval, max_backoff)
        self._index = PathIndex(store, scheme)
        self._lock.acquire()
        try:
            self._index.load()
        except BaseException:
            self._lock.release()
            raise
        self._closed = False

    # -- session lifecycle --

    @property
    def scheme(self) -> str:
        return self._scheme

    @property
    def root(self) -> str:
        return self._root

    @property
    def store(self) -> CacheStore:
        return self._store

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """End the session: close open handles, persist the index, release the lock."""
        if self._closed:
            return
        try:
            for handle in list(self._handles):
                try:
                    handle.close()
                except OSError as e:
                    logger.warning(
                        "Could not flush '%s' while ending the session: %s",
                        handle.path, e,
                    )
        finally:
            self._closed = True
            try:
                self._index.persist(self._index_ttl)
            finally:
                self._lock.release()

    def __enter__(self) -> CacheFileSystem:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def __del__(self) -> None:
        if not self._closed:
            warnings.warn(
                "CacheFileSystem session was not closed properly. "
                "Always use 'with CacheFileSystem(...) as cfs:' to release the index lock.",
                ResourceWarning,
                stacklevel=1,
            )
            try:
                self.close()
            except Exception:
                pass

    # -- helpers --

    def _assert_open(self) -> None:
        if self._closed:
            raise ValueError("Operation on closed CacheFileSystem session.")

    def _np(self, path: str) -> str:
        return normalize_path(path, self._scheme)

    def _is_dir_or_root(self, npath: str) -> bool:
        if npath == self._root:
            return True
        entry = self._index.get(npath)
        return entry is not None and entry.is_dir

    def _load_content(self, npath: str) -> bytes | None:
        """Fetch a file's content, purging its index entry when the store lost it."""
        data = self._store.get(npath)
        if data is None and npath in self._index:
            logger.warning("File contents not found, removing from index: %s", npath)
            self._index.pop(npath)
        return data

    def _materialize(self, npath: str, data: bytes) -> None:
        self._assert_open()
        parent = parent_path(npath, self._scheme)
        if not self._is_dir_or_root(parent):
            raise CFSInvalidParentError(
                f"Target parent directory not found: '{parent}'", parent
            )
        entry = self._index.get(npath)
        if entry is not None and entry.is_dir:
            raise CFSInvalidOperationError(f"Is a directory: '{npath}'", npath)
        self._store.set(npath, data, self._content_ttl)
        if entry is None:
            entry = Entry(FILE)
            self._index[npath] = entry
        now = time.time()
        entry.ctime = now
        entry.mtime = now
        entry.atime = now
        entry.size = len(data)

    def _detach(self, handle: CacheFileHandle) -> None:
        if handle in self._handles:
            self._handles.remove(handle)

    # -- streams --

    def open(self, path: str, mode: str = "rb") -> CacheFileHandle:
        base = parse_mode(mode)
        npath = self._np(path)
        self._assert_open()
        if self._is_dir_or_root(npath):
            raise CFSInvalidOperationError(f"Is a directory: '{path}'", npath)

        if base in ("w", "w+"):
            handle = CacheFileHandle(self, npath, mode)
        else:
            entry = self._index.get(npath)
            contents = self._load_content(npath) if entry is not None else None
            if contents is None:
                if base in ("r", "r+"):
                    raise CFSNotFoundError(f"File not found: '{path}'", npath)
                handle = CacheFileHandle(self, npath, mode)
            else:
                entry.atime = time.time()  # type: ignore[union-attr]
                handle = CacheFileHandle(self, npath, mode, contents)
        self._handles.append(handle)
        return handle

    # -- metadata --

    def stat(self, path: str) -> CFSStatResult:
        npath = self._np(path)
        self._assert_open()
        now = time.time()
        result = CFSStatResult(
            dev=0,
            ino=0,
            mode=0,
            nlink=1,
            uid=0,
            gid=0,
            rdev=0,
            size=0,
            atime=now,
            mtime=now,
            ctime=now,
            blksize=BLOCK_SIZE,
            blocks=0,
        )
        if npath == self._root:
            result["mode"] = DIR_MODE
            return result
        entry = self._index.get(npath)
        if entry is None:
            raise CFSNotFoundError(f"No such file or directory: '{path}'", npath)
        if entry.ctime is not None:
            result["ctime"] = entry.ctime
        if entry.is_dir:
            result["mode"] = DIR_MODE
            return result

        contents = self._load_content(npath)
        if contents is None:
            raise CFSNotFoundError(f"File contents not found: '{path}'", npath)
        if entry.mtime is not None:
            result["mtime"] = entry.mtime
        if entry.atime is not None:
            result["atime"] = entry.atime
        size = entry.size if entry.size is not None else len(contents)
        result["size"] = size
        result["mode"] = FILE_MODE
        result["blocks"] = (size + BLOCK_SIZE) // BLOCK_SIZE
        return result

    def exists(self, path: str) -> bool:
        try:
            self.stat(path)
        except CFSNotFoundError:
            return False
        return True

    def is_dir(self, path: str) -> bool:
        npath = self._np(path)
        self._assert_open()
        return self._is_dir_or_root(npath)

    def is_file(self, path: str) -> bool:
        npath = self._np(path)
        self._assert_open()
        entry = self._index.get(npath)
        if entry is None or not entry.is_file:
            return False
        return self._load_content(npath) is not None

    # -- files --

    def unlink(self, path: str) -> None:
        npath = self._np(path)
        self._assert_open()
        entry = self._index.get(npath)
        if entry is None:
            raise CFSNotFoundError(f"File not found: '{path}'", npath)
        if entry.is_dir:
            raise CFSInvalidOperationError(
                f"Cannot remove a directory with unlink(), use rmdir() instead: '{path}'",
                npath,
            )
        self._index.pop(npath)
        self._store.delete(npath)

    def rename(self, src: str, dst: str) -> None:
        """Move *src* to *dst*.

        Files carry their content, metadata and any open handles.
        Directories are moved shallowly: only the directory entry itself
        changes key, entries below it keep their old paths.
        """
        nsrc = self._np(src)
        ndst = self._np(dst)
        self._assert_open()
        if nsrc == self._root:
            raise CFSInvalidOperationError("Cannot rename the root directory.", nsrc)
        entry = self._index.get(nsrc)
        if entry is None:
            raise CFSNotFoundError(f"File not found: '{src}'", nsrc)
        if nsrc == ndst:
            return
        parent = parent_path(ndst, self._scheme)
        if ndst != self._root and not self._is_dir_or_root(parent):
            raise CFSInvalidParentError(f"Target path not found: '{dst}'", ndst)
        if self._is_dir_or_root(ndst):
            raise CFSInvalidOperationError(f"Destination is a directory: '{dst}'", ndst)

        if entry.is_file:
            contents = self._load_content(nsrc)
            if contents is None:
                raise CFSNotFoundError(f"File contents not found: '{src}'", nsrc)
            self._store.set(ndst, contents, self._content_ttl)
            self._store.delete(nsrc)
            self._index[ndst] = entry
            self._index.pop(nsrc)
            for handle in self._handles:
                if handle.path == nsrc:
                    handle._path = ndst
        else:
            if ndst in self._index:
                raise CFSInvalidOperationError(
                    f"Cannot replace a file with a directory: '{dst}'", ndst
                )
            self._index.pop(nsrc)
            self._index[ndst] = Entry(DIRECTORY, ctime=entry.ctime)

    # -- directories --

    def mkdir(self, path: str) -> None:
        """Create *path* and any missing parent directories.

        The target is created even when only its parent already exists, rather
        than treating an existing parent as success on its own.
        """
        npath = self._np(path)
        self._assert_open()
        if self._is_dir_or_root(npath):
            return
        missing: list[str] = []
        current = npath
        while current != self._root:
            entry = self._index.get(current)
            if entry is not None:
                if entry.is_dir:
                    break
                raise CFSInvalidOperationError(f"A file exists at path: '{current}'", current)
            missing.append(current)
            current = parent_path(current, self._scheme)
        now = time.time()
        for dpath in missing:
            self._index[dpath] = Entry(DIRECTORY, ctime=now)

    def rmdir(self, path: str) -> None:
        npath = self._np(path)
        self._assert_open()
        if list_children(self._index.keys(), npath, self._scheme):
            raise CFSDirectoryNotEmptyError(npath)
        entry = self._index.get(npath)
        if entry is None or not entry.is_dir:
            raise CFSNotFoundError(f"Directory not found: '{path}'", npath)
        self._index.pop(npath)

    def list_children(self, path: str) -> list[str]:
        npath = self._np(path)
        self._assert_open()
        return list_children(self._index.keys(), npath, self._scheme)

    def listdir(self, path: str) -> list[str]:
        npath = self._np(path)
        self._assert_open()
        if not self._is_dir_or_root(npath):
            raise CFSNotFoundError(f"No such directory: '{path}'", npath)
        return list_children(self._index.keys(), npath, self._scheme)

    def opendir(self, path: str) -> DirectoryCursor:
        """Open a cursor over *path*'s children; a missing path yields an empty cursor."""
        npath = self._np(path)
        self._assert_open()
        return DirectoryCursor(npath, list_children(self._index.keys(), npath, self._scheme))
