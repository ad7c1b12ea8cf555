from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from .results import ActionKind, ActionResult


@dataclass
class PhaseSummary:
    """
    Running totals for one phase.

    Fed one ActionResult at a time from a single place (the phase runner),
    read once when the phase ends.
    """
    name: str
    processed: int = 0
    deleted: int = 0
    reencoded: int = 0
    converted: int = 0
    rejected: int = 0
    skipped: int = 0
    failed: int = 0
    bytes_freed: int = 0

    def add(self, r: ActionResult) -> None:
        self.processed += 1
        if r.kind is ActionKind.DELETED:
            self.deleted += 1
        elif r.kind is ActionKind.REENCODED:
            self.reencoded += 1
        elif r.kind is ActionKind.CONVERTED:
            self.converted += 1
        elif r.kind is ActionKind.CONVERSION_REJECTED:
            self.rejected += 1
        elif r.kind is ActionKind.SKIPPED:
            self.skipped += 1
        elif r.kind is ActionKind.FAILED:
            self.failed += 1

        self.bytes_freed += r.bytes_freed

    def extend(self, results: Iterable[ActionResult]) -> "PhaseSummary":
        for r in results:
            self.add(r)
        return self

    @property
    def files_removed(self) -> int:
        return self.deleted + self.converted


@dataclass
class RunSummary:
    phases: List[PhaseSummary] = field(default_factory=list)

    def add_phase(self, phase: PhaseSummary) -> None:
        self.phases.append(phase)

    def phase(self, name: str) -> Optional[PhaseSummary]:
        for p in self.phases:
            if p.name == name:
                return p
        return None

    @property
    def files_removed(self) -> int:
        return sum(p.files_removed for p in self.phases)

    @property
    def bytes_freed(self) -> int:
        return sum(p.bytes_freed for p in self.phases)
