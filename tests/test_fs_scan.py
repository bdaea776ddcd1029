"""Tests for compile_cache.tools.fs_scan."""
import hashlib
import os
from pathlib import Path

import pytest

from compile_cache.models.errors import ConfigError
from compile_cache.tools.fs_scan import compute_digest, fingerprint_directory


def test_fingerprint_empty_dir(tmp_path: Path) -> None:
    assert fingerprint_directory(tmp_path) == {}


def test_fingerprint_lists_files(tmp_path: Path) -> None:
    (tmp_path / "a.c").write_text("x")
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "b.c").write_text("y")
    fingerprints = fingerprint_directory(tmp_path)
    assert list(fingerprints) == ["/a.c", "/sub/b.c"]
    assert fingerprints["/a.c"] == hashlib.md5(b"x").hexdigest()
    assert fingerprints["/sub/b.c"] == hashlib.md5(b"y").hexdigest()


def test_fingerprint_is_deterministic(tmp_path: Path) -> None:
    for i in range(5):
        (tmp_path / f"f{i}.txt").write_bytes(bytes([i]) * 100)
    assert fingerprint_directory(tmp_path) == fingerprint_directory(tmp_path)


def test_one_byte_change_only_affects_that_file(tmp_path: Path) -> None:
    (tmp_path / "a.txt").write_bytes(b"hello")
    (tmp_path / "b.txt").write_bytes(b"world")
    before = fingerprint_directory(tmp_path)

    (tmp_path / "a.txt").write_bytes(b"hellp")
    after = fingerprint_directory(tmp_path)

    assert before["/a.txt"] != after["/a.txt"]
    assert before["/b.txt"] == after["/b.txt"]


def test_listing_file_is_excluded(tmp_path: Path) -> None:
    (tmp_path / "main.go").write_text("package main")
    (tmp_path / "listing").write_text("/main.go 00\n")
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "listing").write_text("nested, kept")

    fingerprints = fingerprint_directory(tmp_path, listing_name="listing")

    assert "/listing" not in fingerprints
    assert "/sub/listing" in fingerprints
    assert "/main.go" in fingerprints


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unsupported")
def test_symlinks_are_skipped(tmp_path: Path) -> None:
    (tmp_path / "real.txt").write_text("data")
    (tmp_path / "link.txt").symlink_to(tmp_path / "real.txt")
    (tmp_path / "dir").mkdir()
    (tmp_path / "dir" / "inner.txt").write_text("inner")
    (tmp_path / "dirlink").symlink_to(tmp_path / "dir", target_is_directory=True)

    fingerprints = fingerprint_directory(tmp_path)

    assert set(fingerprints) == {"/real.txt", "/dir/inner.txt"}


def test_parallel_hashing_matches_serial(tmp_path: Path) -> None:
    for i in range(20):
        (tmp_path / f"file{i:02d}.bin").write_bytes(os.urandom(1024))
    assert fingerprint_directory(tmp_path, max_workers=4) == fingerprint_directory(tmp_path)


def test_progress_callback_called_per_file(tmp_path: Path) -> None:
    (tmp_path / "a").write_text("1")
    (tmp_path / "b").write_text("2")
    seen = []
    fingerprint_directory(tmp_path, progress_callback=seen.append)
    assert sorted(seen) == ["/a", "/b"]


def test_missing_root_raises(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        fingerprint_directory(tmp_path / "nope")


def test_compute_digest_other_algorithm(tmp_path: Path) -> None:
    path = tmp_path / "f"
    path.write_bytes(b"abc" * 10000)
    assert compute_digest(path, "sha256") == hashlib.sha256(b"abc" * 10000).hexdigest()


def test_compute_digest_unknown_algorithm(tmp_path: Path) -> None:
    path = tmp_path / "f"
    path.write_bytes(b"abc")
    with pytest.raises(ConfigError):
        compute_digest(path, "not-a-hash")


def test_unlistable_subdirectory_raises(tmp_path: Path, monkeypatch) -> None:
    (tmp_path / "a.c").write_text("a")
    (tmp_path / "locked").mkdir()
    (tmp_path / "locked" / "b.c").write_text("b")

    real_scandir = os.scandir

    def scandir(path="."):
        if Path(path).name == "locked":
            raise PermissionError(13, "Permission denied", str(path))
        return real_scandir(path)

    monkeypatch.setattr(os, "scandir", scandir)
    with pytest.raises(OSError):
        fingerprint_directory(tmp_path)
