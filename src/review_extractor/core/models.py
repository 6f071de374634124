"""
Purpose: Shared data models for threads, viewer position and match results.
Constraints: Data containers only; behaviour lives in the matcher.
"""

# Imports
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

# Constants
STATUS_COMPLETE = "complete"
STATUS_INCOMPLETE = "incomplete"
STATUS_FAILED = "failed"

OP_NAVIGATION_ERROR = "navigation-error"
OP_INCOMPLETE_MATCH = "incomplete-match"
OP_FATAL_MATCH_ERROR = "fatal-match-error"

MATCH_EXACT = "exact"
MATCH_PARTIAL = "partial"


# Public API
@dataclass(frozen=True)
class PinComment:
    """One comment inside a thread, as scraped from the sidebar."""

    id: str
    index: int
    pin_number: int
    author: str = ""
    text: str = ""
    attachments: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["attachments"] = list(self.attachments)
        return payload


@dataclass
class ThreadDescriptor:
    """A named comment thread; image fields are filled once after matching."""

    name: str
    pin_comments: Tuple[PinComment, ...] = ()
    image_path: Optional[str] = None
    image_filename: Optional[str] = None
    image_index: Optional[int] = None

    @property
    def has_attachments(self) -> bool:
        return any(comment.attachments for comment in self.pin_comments)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "threadName": self.name,
            "comments": [comment.to_dict() for comment in self.pin_comments],
            "hasAttachments": self.has_attachments,
            "imageIndex": self.image_index,
            "imagePath": self.image_path or "",
            "imageFilename": self.image_filename or "",
        }


@dataclass
class ViewerState:
    """Position of the paginated viewer during one matching pass."""

    current_index: int = 0
    current_image_name: Optional[str] = None

    def advance(self) -> None:
        self.current_index += 1
        self.current_image_name = None


@dataclass(frozen=True)
class MatchResult:
    """Outcome for one thread. ``matched`` False means Unmatched."""

    thread_name: str
    matched: bool
    image_index: Optional[int] = None
    image_name: Optional[str] = None
    image_path: str = ""
    image_filename: str = ""
    match_kind: Optional[str] = None

    @classmethod
    def unmatched(cls, thread_name: str) -> "MatchResult":
        return cls(thread_name=thread_name, matched=False)


@dataclass
class MatchSession:
    """Aggregate result of one pass of the screenshot matcher."""

    expected_count: int
    safety_limit: int
    session_id: str = ""
    status: str = STATUS_INCOMPLETE
    stop_reason: str = ""
    attempts: int = 0
    results: Dict[str, MatchResult] = field(default_factory=dict)
    matched_names: List[str] = field(default_factory=list)
    unmatched_names: List[str] = field(default_factory=list)
    visited: List[Tuple[int, Optional[str]]] = field(default_factory=list)
    error: Optional[str] = None
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    finished_at: Optional[str] = None

    @property
    def matched_count(self) -> int:
        return len(self.matched_names)

    @property
    def is_incomplete(self) -> bool:
        return self.status != STATUS_COMPLETE

    @property
    def failed(self) -> bool:
        return self.status == STATUS_FAILED

    def summary(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "status": self.status,
            "stop_reason": self.stop_reason,
            "expected_count": self.expected_count,
            "matched_count": self.matched_count,
            "matched": list(self.matched_names),
            "unmatched": list(self.unmatched_names),
            "attempts": self.attempts,
            "safety_limit": self.safety_limit,
            "error": self.error,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }


@dataclass
class MatchEvent:
    """Structured record handed to an event sink."""

    operation: str
    message: str
    session_id: str = ""
    matched: List[str] = field(default_factory=list)
    unmatched: List[str] = field(default_factory=list)
    attempts: int = 0
    safety_limit: int = 0
    context: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    traceback: Optional[str] = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
