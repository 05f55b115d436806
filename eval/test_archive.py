"""Tests for packing collection directories."""
import os
import sys
import tarfile

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from fleetcollect.archive import TarPackager
from fleetcollect.errors import PackagingFailed


def _collection(tmp_path):
    directory = tmp_path / "mock-1700000000-abc"
    (directory / "sub").mkdir(parents=True)
    (directory / "data.txt").write_text("payload", encoding="utf-8")
    (directory / "sub" / "more.json").write_text("{}", encoding="utf-8")
    return directory


@pytest.mark.parametrize("compression,suffix", [("xz", ".tar.xz"), ("gz", ".tar.gz")])
def test_pack_contains_directory_tree(tmp_path, compression, suffix):
    directory = _collection(tmp_path)
    archive = TarPackager(compression).pack(str(directory))

    assert archive == str(directory) + suffix
    with tarfile.open(archive) as tar:
        names = set(tar.getnames())
    assert "mock-1700000000-abc/data.txt" in names
    assert "mock-1700000000-abc/sub/more.json" in names
    # the source directory is left alone
    assert directory.is_dir()


def test_pack_missing_directory(tmp_path):
    with pytest.raises(PackagingFailed):
        TarPackager().pack(str(tmp_path / "gone"))


def test_pack_unwritable_destination_leaves_no_partial_archive(tmp_path, monkeypatch):
    directory = _collection(tmp_path)

    def broken_open(*args, **kwargs):
        raise OSError("No space left on device")

    monkeypatch.setattr(tarfile, "open", broken_open)
    with pytest.raises(PackagingFailed) as excinfo:
        TarPackager().pack(str(directory))
    assert "No space left" in str(excinfo.value)
    assert not os.path.exists(str(directory) + ".tar.xz")


def test_unknown_compression():
    with pytest.raises(ValueError):
        TarPackager("zip")
