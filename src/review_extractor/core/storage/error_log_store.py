"""
Purpose: Persist failure records as JSON Lines, one record per failure.
Constraints: Storage only; callers decide what counts as a failure.
"""

from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from review_extractor.core.models import MatchEvent


ERROR_LOG_DEFAULT_PATH = "data/error_logs.jsonl"


def _now_utc() -> str:
    return datetime.now(timezone.utc).isoformat()


class ErrorLogStore:
    """Append-only error log modelled on the scraping error table.

    Also acts as a match event sink: ``report`` stores the event.
    """

    def __init__(self, path: Path | str = ERROR_LOG_DEFAULT_PATH, url: str = "", title: str = ""):
        self.path = Path(path)
        self.url = url
        self.title = title
        self._lock = threading.Lock()

    def append(
        self,
        error_message: str,
        *,
        session_id: str = "",
        error_details: Optional[Dict[str, Any]] = None,
        options: Optional[Dict[str, Any]] = None,
        number_of_images: Optional[int] = None,
    ) -> Dict[str, Any]:
        record = {
            "session_id": session_id,
            "url": self.url,
            "title": self.title,
            "error_message": error_message,
            "number_of_images": number_of_images,
            "error_details": error_details or {},
            "options": options or {},
            "failed_at": _now_utc(),
            "retry_count": 0,
            "status": "failed",
        }
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(record, default=str) + "\n")
        return record

    def report(self, event: MatchEvent) -> None:
        details = event.to_dict()
        self.append(
            event.message,
            session_id=event.session_id,
            error_details=details,
            number_of_images=event.attempts,
        )

    def load(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        records = []
        for line in self.path.read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        return records

    def by_session(self, session_id: str) -> List[Dict[str, Any]]:
        return [r for r in self.load() if r.get("session_id") == session_id]
