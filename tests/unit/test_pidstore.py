# tests/unit/test_pidstore.py: Unit tests for pid file storage.

from pathlib import Path

from bgwatch.pidstore import PidStore


def test_write_then_read(tmp_path: Path):
    """A written pid is read back as an integer."""
    store = PidStore(tmp_path / "runtime" / "server.pid")
    store.write(4242)

    assert store.read() == 4242
    assert store.path.read_text().strip() == "4242"
    assert not list(store.path.parent.glob("*.tmp"))

def test_read_missing_file_is_absent(tmp_path: Path):
    """A missing file means 'not published yet', not zero."""
    assert PidStore(tmp_path / "server.pid").read() is None

def test_read_empty_file_is_absent(tmp_path: Path):
    path = tmp_path / "server.pid"
    path.write_text("")
    assert PidStore(path).read() is None

def test_read_invalid_content_is_zero(tmp_path: Path):
    """Garbage and non-positive values come back as 0, which callers treat as invalid."""
    path = tmp_path / "server.pid"
    store = PidStore(path)

    path.write_text("not-a-pid")
    assert store.read() == 0

    path.write_text("0")
    assert store.read() == 0

    path.write_text("-12")
    assert store.read() == 0

def test_clear(tmp_path: Path):
    """Clearing removes the file and is safe to repeat."""
    store = PidStore(tmp_path / "server.pid")
    store.write(1)

    store.clear()
    assert not store.path.exists()

    store.clear()
    assert store.read() is None
