import subprocess
import sys
from pathlib import Path

from batchfmt.cache.stamp import CacheStamp, VersionCache


def interpreter_version() -> str:
    out = subprocess.run([sys.executable, "--version"], capture_output=True, check=True)
    return out.stdout.decode("utf-8")


def test_query_returns_raw_version_output(tmp_path):
    cache = VersionCache(Path(sys.executable), tmp_path / "build" / "rustfmt.stamp")

    stamp = cache.query()

    assert isinstance(stamp, CacheStamp)
    assert stamp.version == interpreter_version()
    assert stamp.stamp_file == tmp_path / "build" / "rustfmt.stamp"


def test_missing_stamp_is_a_cache_miss(tmp_path):
    cache = VersionCache(Path(sys.executable), tmp_path / "build" / "rustfmt.stamp")
    assert cache.is_valid() is False


def test_update_then_valid(tmp_path):
    stamp_file = tmp_path / "build" / "rustfmt.stamp"
    cache = VersionCache(Path(sys.executable), stamp_file)

    assert cache.update() is True

    assert stamp_file.read_text(encoding="utf-8") == interpreter_version()
    assert cache.is_valid() is True


def test_mismatch_is_a_cache_miss(tmp_path):
    stamp_file = tmp_path / "rustfmt.stamp"
    stamp_file.write_text("rustfmt 0.0.0-old\n", encoding="utf-8")
    cache = VersionCache(Path(sys.executable), stamp_file)

    assert cache.is_valid() is False


def test_comparison_is_exact(tmp_path):
    stamp_file = tmp_path / "rustfmt.stamp"
    stamp_file.write_text(interpreter_version().rstrip("\n"), encoding="utf-8")
    cache = VersionCache(Path(sys.executable), stamp_file)

    assert cache.is_valid() is False


def test_unreadable_stamp_is_a_cache_miss(tmp_path):
    stamp_dir = tmp_path / "rustfmt.stamp"
    stamp_dir.mkdir()
    cache = VersionCache(Path(sys.executable), stamp_dir)

    assert cache.read_stamp() is None
    assert cache.is_valid() is False


def test_missing_formatter_never_validates_or_writes(tmp_path):
    stamp_file = tmp_path / "rustfmt.stamp"
    stamp_file.write_text("anything", encoding="utf-8")
    cache = VersionCache(tmp_path / "missing-rustfmt", stamp_file)

    assert cache.query() is None
    assert cache.is_valid() is False

    fresh = VersionCache(None, tmp_path / "other.stamp")
    assert fresh.update() is False
    assert not (tmp_path / "other.stamp").exists()


def test_failing_version_query_is_a_cache_miss(tmp_path, monkeypatch):
    def fake_run(args, **kwargs):
        return subprocess.CompletedProcess(args, 1, stdout=b"", stderr=b"boom")

    monkeypatch.setattr("batchfmt.cache.stamp.subprocess.run", fake_run)
    stamp_file = tmp_path / "rustfmt.stamp"
    stamp_file.write_text("", encoding="utf-8")
    cache = VersionCache(Path("rustfmt"), stamp_file)

    assert cache.query() is None
    assert cache.is_valid() is False
