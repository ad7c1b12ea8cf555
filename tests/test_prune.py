from pathlib import Path

from sab import prune
from sab.prune import cleanup_temp_files, remove_directories
from sab.results import ActionKind


def _touch(p: Path, data: bytes = b"x") -> Path:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_bytes(data)
    return p


def test_excluded_subtree_is_removed_and_outside_file_untouched(tmp_path):
    _touch(tmp_path / "static/images/changelog/a.png", b"a" * 100)
    _touch(tmp_path / "static/images/changelog/deep/b.png", b"b" * 50)
    keep = _touch(tmp_path / "static/images/keep.png", b"keep")

    results = remove_directories(tmp_path, ["static/images/changelog"])

    assert not (tmp_path / "static/images/changelog").exists()
    assert keep.read_bytes() == b"keep"
    assert [r.kind for r in results] == [ActionKind.DELETED]
    assert results[0].bytes_freed == 150


def test_missing_entries_are_ignored(tmp_path):
    assert remove_directories(tmp_path, ["nope", "also/nope"]) == []


def test_paths_outside_root_are_refused(tmp_path):
    root = tmp_path / "site"
    root.mkdir()
    outside = _touch(tmp_path / "precious" / "f.txt")

    results = remove_directories(root, ["../precious", ".", ""])

    assert results == []
    assert outside.exists()
    assert root.exists()


def test_removal_failure_does_not_stop_the_list(tmp_path, monkeypatch):
    _touch(tmp_path / "locked/a.bin")
    _touch(tmp_path / "free/b.bin")
    real_rmtree = prune.shutil.rmtree

    def rmtree(path, *args, **kwargs):
        if Path(path).name == "locked":
            raise PermissionError("busy")
        return real_rmtree(path, *args, **kwargs)

    monkeypatch.setattr(prune.shutil, "rmtree", rmtree)

    results = remove_directories(tmp_path, ["locked", "free"])

    assert [r.kind for r in results] == [ActionKind.FAILED, ActionKind.DELETED]
    assert (tmp_path / "locked").exists()
    assert not (tmp_path / "free").exists()


def test_single_file_entries_are_removed_too(tmp_path):
    _touch(tmp_path / "local-fonts", b"font")

    results = remove_directories(tmp_path, ["local-fonts"])

    assert results[0].kind is ActionKind.DELETED
    assert not (tmp_path / "local-fonts").exists()


def test_cleanup_temp_files_only_touches_suffix(tmp_path):
    stale = _touch(tmp_path / "static/.a.png.k2j3.optimized")
    other = _touch(tmp_path / "static/a.png")

    results = cleanup_temp_files(tmp_path, ".optimized")

    assert [r.path for r in results] == [stale]
    assert not stale.exists()
    assert other.exists()
