"""pytest fixture plugin.

Usage::

    # conftest.py
    pytest_plugins = ["cachefs._pytest_plugin"]

This makes the ``cfs_store`` and ``cfs`` fixtures automatically available::

    def test_something(cfs):
        with cfs.open("/a.txt", "wb") as f:
            f.write(b"hello")
"""

import pytest

from ._fs import CacheFileSystem
from ._store import MemoryCacheStore


@pytest.fixture
def cfs_store() -> MemoryCacheStore:
    """An empty :class:`MemoryCacheStore` per test."""
    return MemoryCacheStore()


@pytest.fixture
def cfs(cfs_store):
    """A :class:`CacheFileSystem` session over ``cfs_store``.

    The session is closed (index persisted, lock released) at teardown.
    """
    session = CacheFileSystem(cfs_store)
    yield session
    session.close()
