import json
import threading
import time

import pytest
from cachefs import CacheFileSystem, MemoryCacheStore
from tests.helpers.asserts import assert_index_consistent
from tests.helpers.concurrency import ThreadedSessionHolder


@pytest.fixture
def store():
    return MemoryCacheStore()


def test_changes_visible_to_next_session(store):
    with CacheFileSystem(store) as cfs:
        cfs.mkdir("/d")
        with cfs.open("/d/f.txt", "wb") as f:
            f.write(b"hi")
    with CacheFileSystem(store) as cfs:
        assert cfs.listdir("/d") == ["f.txt"]
        with cfs.open("/d/f.txt", "rb") as f:
            assert f.read() == b"hi"
    assert_index_consistent(store)


def test_index_persisted_only_at_session_end(store):
    cfs = CacheFileSystem(store)
    cfs.mkdir("/d")
    assert store.get("cachefs_index") is None
    cfs.close()
    assert "cachefs://d" in json.loads(store.get("cachefs_index"))


def test_lock_held_for_session_lifetime(store):
    cfs = CacheFileSystem(store)
    assert store.get("cachefs_index_lock") is not None
    cfs.close()
    assert store.get("cachefs_index_lock") is None


def test_close_is_idempotent(store):
    cfs = CacheFileSystem(store)
    cfs.close()
    cfs.close()
    assert cfs.closed


def test_operations_after_close_raise(store):
    cfs = CacheFileSystem(store)
    cfs.close()
    with pytest.raises(ValueError, match="closed"):
        cfs.mkdir("/d")
    with pytest.raises(ValueError):
        cfs.open("/f", "wb")


def test_exception_in_block_still_persists(store):
    with pytest.raises(RuntimeError):
        with CacheFileSystem(store) as cfs:
            cfs.mkdir("/kept")
            raise RuntimeError("boom")
    assert store.get("cachefs_index_lock") is None
    with CacheFileSystem(store) as cfs:
        assert cfs.is_dir("/kept")


def test_session_end_flushes_open_handles(store):
    with CacheFileSystem(store) as cfs:
        handle = cfs.open("/f", "wb")
        handle.write(b"late")
    assert handle.closed
    assert store.get("cachefs://f") == b"late"
    assert_index_consistent(store)


def test_session_end_survives_failed_flush(store, caplog):
    with CacheFileSystem(store) as cfs:
        cfs.mkdir("/d")
        handle = cfs.open("/missing/f", "wb")
        handle.write(b"x")
    assert "Could not flush 'cachefs://missing/f'" in caplog.text
    assert store.get("cachefs_index_lock") is None
    with CacheFileSystem(store) as cfs:
        assert cfs.is_dir("/d")


def test_session_waits_for_previous_session(store):
    entered = threading.Event()

    def second_session():
        with CacheFileSystem(store):
            entered.set()

    with ThreadedSessionHolder(store) as holder:
        t = threading.Thread(target=second_session, daemon=True)
        t.start()
        assert not entered.wait(timeout=0.3)
        holder.release()
    assert entered.wait(timeout=3.0)
    t.join(timeout=3.0)


def test_waiting_session_sees_previous_changes(store):
    first = CacheFileSystem(store)
    first.mkdir("/from-first")
    result = {}

    def second_session():
        with CacheFileSystem(store) as cfs:
            result["listing"] = cfs.listdir("/")

    t = threading.Thread(target=second_session, daemon=True)
    t.start()
    time.sleep(0.1)
    first.close()
    t.join(timeout=3.0)
    assert result["listing"] == ["from-first"]


def test_abandoned_lock_is_ignored(store):
    store.set("cachefs_index_lock", repr(time.time() - 61).encode("ascii"), 60)
    start = time.monotonic()
    with CacheFileSystem(store) as cfs:
        cfs.mkdir("/d")
    assert time.monotonic() - start < 1.0


def test_malformed_index_starts_empty(store):
    store.set("cachefs_index", b"{broken")
    with CacheFileSystem(store) as cfs:
        assert cfs.listdir("/") == []
        cfs.mkdir("/d")
    assert_index_consistent(store)


def test_schemes_are_independent(store):
    with CacheFileSystem(store, scheme="mem") as mem:
        mem.mkdir("mem://d")
        with CacheFileSystem(store) as default:
            assert default.listdir("/") == []
        assert mem.listdir("/") == ["d"]
    assert store.get("mem_index") is not None
    assert_index_consistent(store, scheme="mem")


def test_index_ttl_passed_to_store(store):
    calls = []

    class RecordingStore(MemoryCacheStore):
        def set(self, key, value, ttl=None):
            calls.append((key, ttl))
            super().set(key, value, ttl)

    with CacheFileSystem(RecordingStore(), index_ttl=3600):
        pass
    assert ("cachefs_index", 3600) in calls


@pytest.mark.parametrize("time_limit", [0, -5, None])
def test_non_positive_time_limit_falls_back(store, time_limit):
    with CacheFileSystem(store, time_limit=time_limit) as cfs:
        assert cfs._lock._time_limit == 60


def test_properties(store):
    with CacheFileSystem(store, scheme="mem") as cfs:
        assert cfs.scheme == "mem"
        assert cfs.root == "mem://"
        assert cfs.store is store
        assert not cfs.closed


def test_invalid_store_raises():
    with pytest.raises(TypeError):
        CacheFileSystem(object())


@pytest.mark.parametrize(
    "kwargs",
    [{"scheme": "1bad"}, {"content_ttl": -1}, {"index_ttl": -1}, {"poll_interval": 0}],
)
def test_invalid_arguments(store, kwargs):
    with pytest.raises(ValueError):
        CacheFileSystem(store, **kwargs)
    assert store.get("cachefs_index_lock") is None
