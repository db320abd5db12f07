# buildrepo/stats.py
"""Per-repository counters and the end-of-run summary."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class RepoRunStats:
    repo: str
    total: int = 0
    attempted: int = 0
    built: int = 0
    deleted: int = 0
    elapsed: float = 0.0
    _started: float = field(default_factory=time.monotonic, repr=False, compare=False)

    @property
    def total_built(self) -> int:
        """Aports that did not need a build plus the ones built in this pass."""
        return self.total - self.attempted + self.built

    def finish(self) -> None:
        self.elapsed = time.monotonic() - self._started

    def summary_lines(self) -> List[str]:
        return [
            f"{self.repo} built:\t{self.built}",
            f"{self.repo} tried:\t{self.attempted}",
            f"{self.repo} deleted:\t{self.deleted}",
            f"{self.repo} time:\t{self.elapsed:.3f}",
            f"{self.repo} total built:\t{self.total_built}",
            f"{self.repo} total aports:\t{self.total}",
        ]


class StatsCollector:
    def __init__(self):
        self._runs: List[RepoRunStats] = []

    def start(self, repo: str) -> RepoRunStats:
        stats = RepoRunStats(repo)
        self._runs.append(stats)
        return stats

    def get(self, repo: str) -> Optional[RepoRunStats]:
        for stats in reversed(self._runs):
            if stats.repo == repo:
                return stats
        return None

    def __iter__(self):
        return iter(self._runs)

    def summary_lines(self) -> List[str]:
        lines: List[str] = []
        for stats in self._runs:
            lines.extend(stats.summary_lines())
        return lines
