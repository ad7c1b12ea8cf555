import os
from pathlib import Path

from sab import walker
from sab.walker import tree_size, walk_files


def _touch(p: Path, data: bytes = b"") -> Path:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_bytes(data)
    return p


def test_walk_yields_every_file_depth_first_in_name_order(tmp_path):
    _touch(tmp_path / "b.txt")
    _touch(tmp_path / "a" / "z.png")
    _touch(tmp_path / "a" / "deep" / "x.jpg")
    _touch(tmp_path / "c" / "y.gif")
    (tmp_path / "empty").mkdir()

    got = [p.relative_to(tmp_path).as_posix() for p in walk_files(tmp_path)]

    assert got == ["b.txt", "a/z.png", "a/deep/x.jpg", "c/y.gif"]


def test_walk_is_repeatable_and_one_shot(tmp_path):
    for name in ("one.png", "two.png", "sub/three.png"):
        _touch(tmp_path / name)

    it = walk_files(tmp_path)
    first = list(it)
    assert list(it) == []  # exhausted

    assert list(walk_files(tmp_path)) == first


def test_missing_root_yields_nothing(tmp_path):
    assert list(walk_files(tmp_path / "nope")) == []


def test_unreadable_directory_is_skipped(tmp_path, monkeypatch):
    _touch(tmp_path / "ok" / "a.png")
    _touch(tmp_path / "locked" / "b.png")
    _touch(tmp_path / "z.png")

    real_scandir = os.scandir

    def fake_scandir(path):
        if Path(path).name == "locked":
            raise PermissionError("denied")
        return real_scandir(path)

    monkeypatch.setattr(walker.os, "scandir", fake_scandir)

    got = sorted(p.name for p in walk_files(tmp_path))
    assert got == ["a.png", "z.png"]


def test_directory_symlinks_are_not_followed(tmp_path):
    _touch(tmp_path / "real" / "a.png")
    (tmp_path / "loop").symlink_to(tmp_path, target_is_directory=True)

    got = list(walk_files(tmp_path))

    # The symlink itself is reported as a plain entry, never descended into.
    assert sorted(p.name for p in got) == ["a.png", "loop"]


def test_tree_size_sums_file_sizes(tmp_path):
    _touch(tmp_path / "a.bin", b"x" * 10)
    _touch(tmp_path / "d" / "b.bin", b"x" * 32)

    assert tree_size(tmp_path) == 42
    assert tree_size(tmp_path / "missing") == 0
