from __future__ import annotations

import io
import warnings
from typing import TYPE_CHECKING

from ._exceptions import CFSInvalidOperationError

if TYPE_CHECKING:
    from ._fs import CacheFileSystem
    from ._typing import CFSStatResult

_READABLE = frozenset({"r", "r+", "w+", "a+"})
_WRITABLE = frozenset({"r+", "w", "w+", "a", "a+"})
_MODES = _READABLE | _WRITABLE


def parse_mode(mode: str) -> str:
    """Reduce *mode* to one of ``r r+ w w+ a a+``, dropping the ``b`` flag."""
    base = mode.replace("b", "", 1) if mode.count("b") == 1 else mode
    if base not in _MODES:
        raise CFSInvalidOperationError(
            f"Unsupported open mode '{mode}'. "
            "Expected one of r, r+, w, w+, a, a+ (optionally with 'b')."
        )
    return base


class CacheFileHandle:
    """Binary stream over an in-memory copy of one file's content.

    Reads, writes and seeks never touch the store; :meth:`flush` and
    :meth:`close` write the whole buffer back under the file's path.
    """

    _is_closed: bool = True

    def __init__(
        self,
        cfs: CacheFileSystem,
        path: str,
        mode: str,
        initial: bytes = b"",
    ) -> None:
        self._cfs = cfs
        self._path = path
        self._mode = mode
        self._base = parse_mode(mode)
        self._buf: bytearray | None = bytearray(initial)
        self._is_append: bool = self._base in ("a", "a+")
        self._cursor: int = len(initial) if self._is_append else 0
        self._is_closed = False

    @property
    def path(self) -> str:
        return self._path

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def closed(self) -> bool:
        return self._is_closed

    def _assert_readable(self) -> None:
        if self._base not in _READABLE:
            raise io.UnsupportedOperation(f"not readable in mode '{self._mode}'")

    def _assert_writable(self) -> None:
        if self._base not in _WRITABLE:
            raise io.UnsupportedOperation(f"not writable in mode '{self._mode}'")

    def _assert_open(self) -> bytearray:
        if self._is_closed or self._buf is None:
            raise ValueError("I/O operation on closed file.")
        return self._buf

    def read(self, size: int = -1) -> bytes:
        buf = self._assert_open()
        self._assert_readable()
        if self._cursor >= len(buf):
            return b""
        if size < 0:
            end = len(buf)
        else:
            end = min(self._cursor + size, len(buf))
        data = bytes(buf[self._cursor:end])
        self._cursor = end
        return data

    def write(self, data: bytes) -> int:
        buf = self._assert_open()
        self._assert_writable()
        if self._is_append:
            self._cursor = len(buf)
        n = len(data)
        if n == 0:
            return 0
        if self._cursor > len(buf):
            buf.extend(bytes(self._cursor - len(buf)))
        buf[self._cursor:self._cursor + n] = data
        self._cursor += n
        return n

    def seek(self, offset: int, whence: int = 0) -> int:
        buf = self._assert_open()
        if whence == 0:
            if offset < 0:
                raise ValueError("seek offset must be >= 0 for SEEK_SET")
            new_pos = offset
        elif whence == 1:
            new_pos = self._cursor + offset
        elif whence == 2:
            if offset > 0:
                raise ValueError(
                    "Seeking past end-of-file (SEEK_END with positive offset) "
                    "is not supported."
                )
            new_pos = len(buf) + offset
        else:
            raise ValueError(f"Invalid whence value: {whence}. Must be 0, 1, or 2.")
        if new_pos < 0:
            raise ValueError(f"Resulting cursor position {new_pos} is negative.")
        self._cursor = new_pos
        return self._cursor

    def tell(self) -> int:
        self._assert_open()
        return self._cursor

    def eof(self) -> bool:
        buf = self._assert_open()
        return self._cursor >= len(buf)

    def getvalue(self) -> bytes:
        return bytes(self._assert_open())

    def flush(self) -> None:
        buf = self._assert_open()
        if self._base in _WRITABLE:
            self._cfs._materialize(self._path, bytes(buf))

    def stat(self) -> CFSStatResult:
        self._assert_open()
        return self._cfs.stat(self._path)

    def readable(self) -> bool:
        self._assert_open()
        return self._base in _READABLE

    def writable(self) -> bool:
        self._assert_open()
        return self._base in _WRITABLE

    def seekable(self) -> bool:
        self._assert_open()
        return True

    def close(self) -> None:
        if self._is_closed:
            return
        try:
            self.flush()
        finally:
            self._is_closed = True
            self._buf = None
            self._cfs._detach(self)

    def __enter__(self) -> CacheFileHandle:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def __del__(self) -> None:
        if not self._is_closed:
            warnings.warn(
                "CacheFS CacheFileHandle was not closed properly. "
                "Always use 'with cfs.open(...) as f:' to ensure cleanup.",
                ResourceWarning,
                stacklevel=1,
            )
            try:
                self.close()
            except Exception:
                pass
