from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ._store import CacheStore

logger = logging.getLogger(__name__)

FILE = "file"
DIRECTORY = "directory"

_TIME_FIELDS = ("ctime", "mtime", "atime")


def index_key(scheme: str) -> str:
    return f"{scheme}_index"


class Entry:
    __slots__ = ("type", "ctime", "mtime", "atime", "size")

    def __init__(
        self,
        type: str,
        ctime: float | None = None,
        mtime: float | None = None,
        atime: float | None = None,
        size: int | None = None,
    ) -> None:
        if type not in (FILE, DIRECTORY):
            raise ValueError(f"Invalid entry type: {type!r}")
        self.type: str = type
        self.ctime: float | None = ctime
        self.mtime: float | None = mtime
        self.atime: float | None = atime
        self.size: int | None = size

    @property
    def is_dir(self) -> bool:
        return self.type == DIRECTORY

    @property
    def is_file(self) -> bool:
        return self.type == FILE

    def copy(self) -> Entry:
        return Entry(self.type, self.ctime, self.mtime, self.atime, self.size)

    def to_record(self) -> dict:
        record: dict = {"type": self.type}
        for field in (*_TIME_FIELDS, "size"):
            value = getattr(self, field)
            if value is not None:
                record[field] = value
        return record

    @classmethod
    def from_record(cls, record: object) -> Entry:
        if not isinstance(record, dict):
            raise ValueError(f"Entry record must be a mapping, got {type(record).__name__}")
        entry = cls(record.get("type"))  # type: ignore[arg-type]
        for field in _TIME_FIELDS:
            value = record.get(field)
            if value is not None:
                setattr(entry, field, float(value))
        size = record.get("size")
        if size is not None:
            entry.size = int(size)
        return entry

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Entry):
            return NotImplemented
        return self.to_record() == other.to_record()

    def __repr__(self) -> str:
        return f"Entry({self.to_record()!r})"


class PathIndex:
    """The path -> :class:`Entry` table, loaded and persisted as one store record."""

    def __init__(self, store: CacheStore, scheme: str) -> None:
        self._store = store
        self._key = index_key(scheme)
        self._entries: dict[str, Entry] = {}

    @property
    def key(self) -> str:
        return self._key

    def load(self) -> None:
        raw = self._store.get(self._key)
        self._entries = {}
        if raw is None:
            logger.debug("No index under %s, starting empty", self._key)
            return
        try:
            records = json.loads(raw)
            if not isinstance(records, dict):
                raise ValueError("index record is not a mapping")
            entries = {str(path): Entry.from_record(rec) for path, rec in records.items()}
        except (UnicodeDecodeError, ValueError, TypeError) as e:
            logger.warning("Malformed index under %s, starting empty: %s", self._key, e)
            return
        self._entries = entries
        logger.debug("Loaded %d entries from %s", len(entries), self._key)

    def persist(self, ttl: int | None = None) -> None:
        payload = {path: entry.to_record() for path, entry in self._entries.items()}
        self._store.set(self._key, json.dumps(payload).encode("utf-8"), ttl)
        logger.debug("Persisted %d entries to %s", len(payload), self._key)

    def get(self, npath: str) -> Entry | None:
        return self._entries.get(npath)

    def pop(self, npath: str, default: Entry | None = None) -> Entry | None:
        return self._entries.pop(npath, default)

    def keys(self):
        return self._entries.keys()

    def __getitem__(self, npath: str) -> Entry:
        return self._entries[npath]

    def __setitem__(self, npath: str, entry: Entry) -> None:
        self._entries[npath] = entry

    def __contains__(self, npath: object) -> bool:
        return npath in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
