from __future__ import annotations

import csv
import json
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .results import ActionResult
from .summary import RunSummary


@dataclass(frozen=True)
class FileReport:
    action: str
    path: str
    new_path: Optional[str]
    src_bytes: int
    out_bytes: int
    bytes_freed: int
    saved_percent: float
    reason: Optional[str]


@dataclass(frozen=True)
class RunReport:
    created_utc: str
    summary: dict
    files: List[FileReport]


def build_report(results: List[ActionResult], summary: RunSummary) -> RunReport:
    created_utc = datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")

    files: List[FileReport] = []
    for r in results:
        files.append(
            FileReport(
                action=r.kind.value,
                path=str(r.path),
                new_path=str(r.new_path) if r.new_path else None,
                src_bytes=r.src_bytes,
                out_bytes=r.out_bytes,
                bytes_freed=r.bytes_freed,
                saved_percent=round(r.saved_percent, 2),
                reason=r.reason,
            )
        )

    summary_dict = {
        "files_removed": summary.files_removed,
        "bytes_freed": summary.bytes_freed,
        "phases": [
            {
                "name": p.name,
                "processed": p.processed,
                "files_removed": p.files_removed,
                "deleted": p.deleted,
                "reencoded": p.reencoded,
                "converted": p.converted,
                "rejected": p.rejected,
                "skipped": p.skipped,
                "failed": p.failed,
                "bytes_freed": p.bytes_freed,
            }
            for p in summary.phases
        ],
    }

    return RunReport(created_utc=created_utc, summary=summary_dict, files=files)


def save_report_json(report: RunReport, path: Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with path.open("w", encoding="utf-8") as f:
        json.dump(asdict(report), f, indent=2, ensure_ascii=False)


def save_report_csv(report: RunReport, path: Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fields = list(FileReport.__dataclass_fields__)
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=fields)
        writer.writeheader()
        for row in report.files:
            writer.writerow(asdict(row))
