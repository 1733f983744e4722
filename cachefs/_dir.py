from __future__ import annotations

from collections.abc import Iterable

from ._path import SEP, root_path

NOT_STARTED = "not-started"
POSITIONED = "positioned"
EXHAUSTED = "exhausted"


def list_children(keys: Iterable[str], npath: str, scheme: str) -> list[str]:
    """Return the sorted immediate child names of *npath* among index *keys*.

    Deeper descendants collapse to the child name they live under, so
    ``a/b/c`` contributes ``b`` to the listing of ``a``.
    """
    root = root_path(scheme)
    prefix = root if npath == root else npath + SEP
    names = set()
    for key in keys:
        if key.startswith(prefix) and key != prefix:
            names.add(key[len(prefix):].split(SEP, 1)[0])
    return sorted(names)


class DirectoryCursor:
    """Forward cursor over a directory listing.

    The cursor starts *before* the first name: the first :meth:`read`
    returns ``names[0]``, and :meth:`rewind` goes back to that state.
    """

    def __init__(self, path: str, names: list[str]) -> None:
        self._path = path
        self._names: list[str] | None = list(names)
        self._pos: int | None = None

    @property
    def path(self) -> str:
        return self._path

    @property
    def closed(self) -> bool:
        return self._names is None

    @property
    def state(self) -> str:
        names = self._assert_open()
        if self._pos is None:
            return NOT_STARTED
        if self._pos >= len(names):
            return EXHAUSTED
        return POSITIONED

    def _assert_open(self) -> list[str]:
        if self._names is None:
            raise ValueError("I/O operation on closed directory.")
        return self._names

    def read(self) -> str | None:
        names = self._assert_open()
        pos = 0 if self._pos is None else min(self._pos + 1, len(names))
        self._pos = pos
        if pos >= len(names):
            return None
        return names[pos]

    def rewind(self) -> None:
        self._assert_open()
        self._pos = None

    def close(self) -> None:
        self._names = None
        self._pos = None

    def __iter__(self):
        while True:
            name = self.read()
            if name is None:
                return
            yield name

    def __len__(self) -> int:
        return len(self._assert_open())

    def __enter__(self) -> DirectoryCursor:
        return self

    def __exit__(self, *args) -> None:
        self.close()
