"""
Purpose: Event sinks that receive structured matcher failure events.
Constraints: Reporting only; a sink must not alter the matching outcome.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Protocol

from review_extractor.core.logging import UnifiedLogger
from review_extractor.core.models import MatchEvent, OP_INCOMPLETE_MATCH


class MatchEventSink(Protocol):
    def report(self, event: MatchEvent) -> None:
        ...


class LoggingEventSink:
    """Writes each event as a structured ACTIVITY log line."""

    def __init__(self, unified_logger: UnifiedLogger | None = None):
        self.unified_logger = unified_logger or UnifiedLogger("review_extractor.events")

    def report(self, event: MatchEvent) -> None:
        level = "WARNING" if event.operation == OP_INCOMPLETE_MATCH else "ERROR"
        self.unified_logger.log_activity(
            event.operation,
            event.to_dict(),
            level=level,
            session=event.session_id or None,
        )


class CompositeEventSink:
    """Fans an event out to several sinks; one failing sink does not stop the rest."""

    def __init__(self, sinks: Iterable[MatchEventSink]):
        self.sinks: List[MatchEventSink] = list(sinks)
        self.logger = logging.getLogger(__name__)

    def report(self, event: MatchEvent) -> None:
        for sink in self.sinks:
            try:
                sink.report(event)
            except Exception as exc:
                self.logger.warning(
                    "Event sink %s failed for %s: %s", type(sink).__name__, event.operation, exc
                )
