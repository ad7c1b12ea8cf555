import csv
import json
from pathlib import Path

import pytest

from sab.cli import build_parser, main


KB = 1024


def _blob(p: Path, size: int) -> Path:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_bytes(b"\x01" * size)
    return p


def test_no_arguments_means_full_run():
    args = build_parser().parse_args([])

    assert args.command == "run"
    assert args.preset == "full"
    assert args.root is None


def test_cleanup_command_writes_reports(tmp_path, capsys):
    site = tmp_path / "site"
    big = _blob(site / "static/images/hero.png", 150 * KB)
    keep = _blob(site / "static/images/ok.png", 10 * KB)
    out = tmp_path / "out"

    rc = main(["cleanup", "--root", str(site), "--report", str(out)])

    assert rc == 0
    assert not big.exists()
    assert keep.exists()

    printed = capsys.readouterr().out
    assert "=== Run Summary ===" in printed

    report = json.loads((out / "report.json").read_text(encoding="utf-8"))
    assert report["summary"]["files_removed"] == 1
    assert report["summary"]["bytes_freed"] == 150 * KB
    images = next(p for p in report["summary"]["phases"] if p["name"] == "images")
    assert images["deleted"] == 1

    with (out / "report.csv").open(encoding="utf-8", newline="") as f:
        rows = list(csv.DictReader(f))
    assert [r["action"] for r in rows] == ["deleted"]
    assert rows[0]["path"].endswith("hero.png")


def test_config_file_replaces_preset(tmp_path):
    site = tmp_path / "site"
    doc = _blob(site / "public/manual.pdf", 5 * KB)
    cfg = tmp_path / "sab.json"
    cfg.write_text(
        json.dumps({"deletion_phases": [{"name": "docs", "root": "public", "max_bytes": 1024, "images_only": False}]}),
        encoding="utf-8",
    )

    rc = main(["--root", str(site), "--config", str(cfg)])

    assert rc == 0
    assert not doc.exists()


def test_bad_config_exits_with_usage_error(tmp_path):
    cfg = tmp_path / "bad.json"
    cfg.write_text("{", encoding="utf-8")

    with pytest.raises(SystemExit) as exc:
        main(["--root", str(tmp_path), "--config", str(cfg)])

    assert exc.value.code == 2


def test_bad_worker_count_exits_with_usage_error(tmp_path):
    with pytest.raises(SystemExit) as exc:
        main(["optimize", "--root", str(tmp_path), "--workers", "0"])

    assert exc.value.code == 2


def test_missing_root(tmp_path):
    assert main(["--root", str(tmp_path / "nope")]) == 2


def test_default_root_must_look_like_a_site(tmp_path, monkeypatch):
    stray = _blob(tmp_path / "lib/.cache.bin.optimized", 10)
    monkeypatch.setattr("sab.cli.DEFAULT_ROOT", tmp_path)

    assert main(["cleanup"]) == 2
    assert stray.exists()


def test_default_root_with_static_dir_runs(tmp_path, monkeypatch):
    big = _blob(tmp_path / "static/images/hero.png", 150 * KB)
    monkeypatch.setattr("sab.cli.DEFAULT_ROOT", tmp_path)

    assert main(["cleanup"]) == 0
    assert not big.exists()
