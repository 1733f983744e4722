import logging

import pytest
from cachefs import CacheFSHandler, MemoryCacheStore, register, registered_store, unregister


@pytest.fixture
def store():
    store = MemoryCacheStore()
    register(store, "cfstest")
    yield store
    unregister("cfstest")


@pytest.fixture
def handler(store):
    h = CacheFSHandler("cfstest")
    yield h
    h.end()


def test_register_returns_prefix(store):
    assert register(store, "cfstest") == "cfstest://"


def test_first_registration_wins(store):
    register(MemoryCacheStore(), "cfstest")
    assert registered_store("cfstest") is store


def test_unknown_scheme_raises():
    with pytest.raises(LookupError):
        CacheFSHandler("never-registered")


def test_unregister():
    register(MemoryCacheStore(), "cfsgone")
    unregister("cfsgone")
    with pytest.raises(LookupError):
        registered_store("cfsgone")


def test_stream_hooks(handler):
    assert handler.mkdir("cfstest://d")
    assert handler.open("cfstest://d/f.txt", "w")
    assert handler.write(b"hello") == 5
    assert handler.tell() == 5
    assert handler.flush()
    assert handler.fstat()["size"] == 5
    assert handler.close()

    assert handler.open("cfstest://d/f.txt", "rb")
    assert handler.read(2) == b"he"
    assert not handler.eof()
    assert handler.seek(1, 0)
    assert handler.read(100) == b"ello"
    assert handler.eof()
    assert handler.close()


def test_path_hooks(handler):
    assert handler.mkdir("cfstest://a/b")
    assert handler.stat("cfstest://a/b")["mode"] == 0o40777
    assert handler.rename("cfstest://a/b", "cfstest://a/c")
    assert handler.rmdir("cfstest://a/c")
    handler.open("cfstest://a/f", "w")
    handler.close()
    assert handler.unlink("cfstest://a/f")
    assert handler.stat("cfstest://a/f") is False


def test_directory_hooks(handler):
    handler.mkdir("cfstest://d/x")
    handler.mkdir("cfstest://d/y")
    assert handler.opendir("cfstest://d")
    assert handler.readdir() == "x"
    assert handler.readdir() == "y"
    assert handler.readdir() is False
    assert handler.rewinddir()
    assert handler.readdir() == "x"
    assert handler.closedir()
    assert handler.readdir() is False
    assert handler.rewinddir() is False


def test_opendir_missing_succeeds(handler):
    assert handler.opendir("cfstest://nope")
    assert handler.readdir() is False


def test_failures_return_false_and_log(handler, caplog):
    with caplog.at_level(logging.WARNING, logger="cachefs"):
        assert handler.open("cfstest://missing", "r") is False
        assert handler.mkdir("cfstest://d")
        assert handler.unlink("cfstest://d") is False
        handler.mkdir("cfstest://d/e")
        assert handler.rmdir("cfstest://d") is False
        assert handler.rmdir("cfstest://nope") is False
        assert handler.rename("cfstest://nope", "cfstest://x") is False
        assert handler.open("cfstest://f", "x") is False
    text = caplog.text
    assert "File not found" in text
    assert "use rmdir() instead" in text
    assert "Directory is not empty" in text
    assert "Directory not found" in text
    assert "Unsupported open mode" in text


def test_stream_hooks_without_stream(handler):
    assert handler.read(1) is False
    assert handler.write(b"x") is False
    assert handler.tell() is False
    assert handler.seek(0) is False
    assert handler.flush() is False
    assert handler.close() is False
    assert handler.fstat() is False
    assert handler.eof() is True


def test_write_with_text_data_returns_false(handler, caplog):
    assert handler.open("cfstest://f", "w")
    with caplog.at_level(logging.WARNING, logger="cachefs"):
        assert handler.write("hi") is False
    assert "write" in caplog.text
    assert handler.close()
    assert handler.stat("cfstest://f")["size"] == 0


def test_second_open_rejected(handler):
    assert handler.open("cfstest://a", "w")
    assert handler.open("cfstest://b", "w") is False
    assert handler.close()


def test_close_reports_failed_flush(handler):
    assert handler.open("cfstest://missing/f", "w")
    handler.write(b"x")
    assert handler.close() is False
    assert handler.open("cfstest://g", "w")
    assert handler.close()


def test_session_usable_after_failure(handler):
    assert handler.stat("cfstest://nope") is False
    assert handler.mkdir("cfstest://ok")
    assert handler.stat("cfstest://ok")


def test_end_persists(store):
    with CacheFSHandler("cfstest") as h:
        h.mkdir("cfstest://kept")
    assert store.get("cfstest_index_lock") is None
    with CacheFSHandler("cfstest") as h:
        assert h.filesystem.is_dir("cfstest://kept")


def test_handler_options(store):
    with CacheFSHandler("cfstest", content_ttl=5) as h:
        assert h.filesystem._content_ttl == 5
