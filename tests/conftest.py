import pytest

from cachefs._pytest_plugin import cfs, cfs_store  # noqa: F401


@pytest.fixture
def store(cfs_store):
    """The MemoryCacheStore behind the ``cfs`` fixture."""
    return cfs_store
