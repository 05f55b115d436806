"""Tests for the last-run cache."""
import os
import sys
from datetime import datetime, timezone

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from fleetcollect.errors import LastRunCorrupt, LastRunNotFound, RunStateWriteFailed
from fleetcollect.state import RunStateCache


def test_record_then_read(tmp_path):
    cache = RunStateCache(str(tmp_path))
    cache.record_run("mock", 1700000000)
    assert cache.last_run("mock") == 1700000000
    assert cache.last_run_at("mock") == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)


def test_record_overwrites(tmp_path):
    cache = RunStateCache(str(tmp_path))
    cache.record_run("mock", 100)
    cache.record_run("mock", 200)
    assert cache.last_run("mock") == 200
    # no temp files left behind
    assert sorted(os.listdir(tmp_path)) == ["mock.last-run"]


def test_record_defaults_to_now(tmp_path):
    import time

    cache = RunStateCache(str(tmp_path))
    before = int(time.time())
    written = cache.record_run("mock")
    assert before <= written <= time.time()
    assert cache.last_run("mock") == written


def test_record_is_plain_integer_file(tmp_path):
    cache = RunStateCache(str(tmp_path))
    cache.record_run("mock", 42)
    with open(cache.path_for("mock"), encoding="utf-8") as f:
        assert f.read() == "42"


def test_record_creates_cache_dir(tmp_path):
    cache = RunStateCache(str(tmp_path / "nested" / "cache"))
    cache.record_run("mock", 1)
    assert cache.last_run("mock") == 1


def test_ids_are_independent(tmp_path):
    cache = RunStateCache(str(tmp_path))
    cache.record_run("a", 1)
    cache.record_run("b", 2)
    assert cache.last_run("a") == 1
    assert cache.last_run("b") == 2


def test_never_run(tmp_path):
    with pytest.raises(LastRunNotFound):
        RunStateCache(str(tmp_path)).last_run("mock")


def test_corrupt_record(tmp_path):
    (tmp_path / "mock.last-run").write_text("yesterday", encoding="utf-8")
    with pytest.raises(LastRunCorrupt):
        RunStateCache(str(tmp_path)).last_run("mock")


def test_trailing_newline_is_accepted(tmp_path):
    (tmp_path / "mock.last-run").write_text("1700000000\n", encoding="utf-8")
    assert RunStateCache(str(tmp_path)).last_run("mock") == 1700000000


def test_write_failure(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")
    cache = RunStateCache(str(blocker))
    with pytest.raises(RunStateWriteFailed):
        cache.record_run("mock", 1)
