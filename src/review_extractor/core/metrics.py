"""
Purpose: In-process counters for extraction and matching, with JSON snapshots.
Constraints: No external dependencies; file-based output only.
"""

from __future__ import annotations

import json
import threading
import time
from collections import Counter, deque
from pathlib import Path
from typing import Deque, Dict, Optional


class MetricsCollector:
    """Thread-safe counters plus a rolling window of recent events per name.

    Failures are counted separately so a snapshot can show, say, how many
    images were unreadable against how many were inspected.
    """

    def __init__(self, window_seconds: int = 60):
        self.window_seconds = window_seconds
        self._lock = threading.Lock()
        self._started = time.time()
        self._totals: Counter = Counter()
        self._failures: Counter = Counter()
        self._recent: Dict[str, Deque[float]] = {}

    def record(self, name: str, success: bool = True) -> None:
        now = time.time()
        with self._lock:
            self._totals[name] += 1
            if not success:
                self._failures[name] += 1
            recent = self._recent.setdefault(name, deque())
            recent.append(now)
            self._expire(recent, now)

    def record_error(self, name: str = "error") -> None:
        self.record(name, success=False)

    def record_match(self, kind: str) -> None:
        self.record("match.matched")
        self.record(f"match.{kind}")

    def record_skip(self, unreadable: bool = False) -> None:
        self.record("match.unreadable" if unreadable else "match.skipped", success=not unreadable)

    def record_session(self, status: str) -> None:
        self.record(f"session.{status}", success=status == "complete")

    def count(self, name: str) -> int:
        with self._lock:
            return self._totals[name]

    def snapshot(self) -> Dict[str, object]:
        now = time.time()
        with self._lock:
            per_minute = {}
            for name, recent in self._recent.items():
                self._expire(recent, now)
                per_minute[name] = self._per_minute(len(recent))
            inspected = sum(self._totals[k] for k in ("match.matched", "match.skipped", "match.unreadable"))
            return {
                "timestamp_utc": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(now)),
                "uptime_seconds": int(now - self._started),
                "window_seconds": self.window_seconds,
                "totals": dict(self._totals),
                "errors": dict(self._failures),
                "rates_per_min": per_minute,
                "images_inspected": inspected,
                "match_ratio": round(self._totals["match.matched"] / inspected, 3) if inspected else None,
            }

    def write_snapshot(self, path: Path) -> None:
        line = json.dumps(self.snapshot())
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")

    def _expire(self, recent: Deque[float], now: float) -> None:
        while recent and recent[0] < now - self.window_seconds:
            recent.popleft()

    def _per_minute(self, events: int) -> float:
        if self.window_seconds <= 0:
            return 0.0
        return round(events * 60.0 / self.window_seconds, 3)


_metrics: Optional[MetricsCollector] = None
_metrics_lock = threading.Lock()


def get_metrics() -> MetricsCollector:
    global _metrics
    with _metrics_lock:
        if _metrics is None:
            _metrics = MetricsCollector()
        return _metrics
