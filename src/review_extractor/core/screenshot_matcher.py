"""
Purpose: Walk the paginated image viewer and pair each image with its thread.
Constraints: Talks to the viewer only through the page driver interface;
never raises past its boundary. Every failure becomes a session field, a
log line and (when incomplete or failed) one sink event.
"""

# Imports
from __future__ import annotations

import os
import traceback
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple, Union

from review_extractor.core.errors import EndOfViewer, ImageNameUnavailable, NavigationError, ViewerUnavailable
from review_extractor.core.logging import UnifiedLogger
from review_extractor.core.metrics import get_metrics
from review_extractor.core.models import (
    MATCH_EXACT,
    MATCH_PARTIAL,
    OP_FATAL_MATCH_ERROR,
    OP_INCOMPLETE_MATCH,
    OP_NAVIGATION_ERROR,
    STATUS_COMPLETE,
    STATUS_FAILED,
    STATUS_INCOMPLETE,
    MatchEvent,
    MatchResult,
    MatchSession,
    ThreadDescriptor,
    ViewerState,
)
from review_extractor.core.sinks import MatchEventSink
from review_extractor.core.text_normalization import EXACT_MATCH, best_candidate, normalize_name

# Constants
DEFAULT_SAFETY_MULTIPLIER = 3

STOP_ALL_MATCHED = "all_matched"
STOP_SAFETY_LIMIT = "safety_limit"
STOP_END_OF_VIEWER = "end_of_viewer"
STOP_NAVIGATION_ERROR = "navigation_error"
STOP_FATAL = "fatal_error"
STOP_NOTHING_TO_MATCH = "nothing_to_match"

CaptureHook = Callable[[ThreadDescriptor, int, str], Optional[Union[str, os.PathLike]]]


class PageDriver(Protocol):
    def read_current_image_name(self) -> str:
        ...

    def advance_to_next(self) -> None:
        ...


# Helpers
def safety_limit_for(expected_count: int, multiplier: int = DEFAULT_SAFETY_MULTIPLIER) -> int:
    return max(0, expected_count) * max(1, multiplier)


def _viewer_context(viewer: Any, state: ViewerState) -> Dict[str, Any]:
    context: Dict[str, Any] = {
        "index": state.current_index,
        "image_name": state.current_image_name,
    }
    describe = getattr(viewer, "describe", None)
    if callable(describe):
        try:
            context.update(describe() or {})
        except Exception as exc:
            context["describe_error"] = str(exc)
    return context


class _MatchRun:
    """State for one pass; built and discarded inside match_threads_to_images."""

    def __init__(self, threads, viewer, sink, safety_multiplier, capture, session_id):
        self.threads: List[ThreadDescriptor] = list(threads)
        self.viewer = viewer
        self.sink = sink
        self.capture = capture
        self.unified = UnifiedLogger("review_extractor.matcher")
        self.logger = self.unified.get_logger()
        self.metrics = get_metrics()

        if safety_multiplier < 1:
            self.logger.warning("safety_multiplier %s < 1; using 1", safety_multiplier)
            safety_multiplier = 1
        self.session = MatchSession(
            expected_count=len(self.threads),
            safety_limit=safety_limit_for(len(self.threads), safety_multiplier),
            session_id=session_id or str(uuid.uuid4()),
        )
        self.state = ViewerState()
        self.remaining: List[Tuple[int, str]] = []
        self.results: Dict[int, MatchResult] = {}

        for position, thread in enumerate(self.threads):
            key = normalize_name(thread.name)
            if not key:
                self.logger.warning(
                    "Thread %d has no usable name (%r); recorded as unmatched", position + 1, thread.name
                )
                continue
            self.remaining.append((position, key))

    # Loop
    def run(self) -> MatchSession:
        session = self.session
        if not self.threads:
            self.logger.warning("No threads supplied; nothing to match")
        if not self.remaining:
            session.stop_reason = STOP_NOTHING_TO_MATCH
            return self.finalize()

        self.logger.info(
            "Matching %d threads against viewer images (limit %d attempts)",
            len(self.remaining),
            session.safety_limit,
        )
        try:
            for attempt in range(session.safety_limit):
                session.attempts = attempt + 1
                self.inspect_current_image()

                if not self.remaining:
                    session.stop_reason = STOP_ALL_MATCHED
                    break
                if session.attempts >= session.safety_limit:
                    session.stop_reason = STOP_SAFETY_LIMIT
                    self.logger.warning(
                        "Safety limit of %d attempts reached with %d threads unmatched",
                        session.safety_limit,
                        len(self.remaining),
                    )
                    break
                if not self.advance():
                    break
        except Exception as exc:
            self.on_fatal(exc)
        return self.finalize()

    def inspect_current_image(self) -> None:
        state = self.state
        try:
            raw_name = self.viewer.read_current_image_name()
        except ImageNameUnavailable as exc:
            raw_name = None
            self.metrics.record_skip(unreadable=True)
            self.logger.warning(
                "Could not read image name at index %d: %s (context: %s)",
                state.current_index,
                exc,
                _viewer_context(self.viewer, state),
            )

        state.current_image_name = raw_name or None
        self.session.visited.append((state.current_index, state.current_image_name))
        if not raw_name:
            return

        image_key = normalize_name(raw_name)
        candidates = [(self.threads[position].name, key) for position, key in self.remaining]
        pick = best_candidate(image_key, candidates)
        if pick is None:
            self.metrics.record_skip()
            self.logger.debug("Image %d (%r) is not relevant; skipping", state.current_index, raw_name)
            return

        slot, score = pick
        position, _ = self.remaining[slot]
        self.record_match(position, raw_name, MATCH_EXACT if score == EXACT_MATCH else MATCH_PARTIAL)
        del self.remaining[slot]

    def record_match(self, position: int, image_name: str, kind: str) -> None:
        thread = self.threads[position]
        index = self.state.current_index
        image_path = ""
        image_filename = image_name
        if self.capture is not None:
            try:
                captured = self.capture(thread, index, image_name)
            except ViewerUnavailable:
                raise
            except Exception as exc:
                self.logger.warning("Screenshot capture failed for thread %r: %s", thread.name, exc)
                captured = None
            if captured:
                image_path = str(captured)
                image_filename = Path(image_path).name

        self.results[position] = MatchResult(
            thread_name=thread.name,
            matched=True,
            image_index=index,
            image_name=image_name,
            image_path=image_path,
            image_filename=image_filename,
            match_kind=kind,
        )
        self.metrics.record_match(kind)
        self.logger.info("Matched thread %r to image %d (%r, %s)", thread.name, index, image_name, kind)

    def advance(self) -> bool:
        try:
            self.viewer.advance_to_next()
        except NavigationError as exc:
            end_of_viewer = isinstance(exc, EndOfViewer)
            self.session.stop_reason = STOP_END_OF_VIEWER if end_of_viewer else STOP_NAVIGATION_ERROR
            self.metrics.record_error("navigation.error")
            context = _viewer_context(self.viewer, self.state)
            context["end_of_sequence"] = end_of_viewer
            self.logger.warning(
                "Navigation stopped after image %d (%d/%d attempts, %d matched): %s",
                self.state.current_index,
                self.session.attempts,
                self.session.safety_limit,
                len(self.results),
                exc,
            )
            self.report(
                OP_NAVIGATION_ERROR,
                f"Navigation failed after image {self.state.current_index}: {exc}",
                context=context,
                error=exc,
            )
            return False
        self.state.advance()
        return True

    def on_fatal(self, exc: Exception) -> None:
        session = self.session
        session.status = STATUS_FAILED
        session.stop_reason = STOP_FATAL
        session.error = f"{type(exc).__name__}: {exc}"
        context = _viewer_context(self.viewer, self.state)
        context.update({
            "remaining_threads": self.remaining_names(),
            "attempts": session.attempts,
            "safety_limit": session.safety_limit,
        })
        self.unified.log_error_with_context(exc, context)
        self.report(OP_FATAL_MATCH_ERROR, f"Matching aborted: {session.error}", context=context, error=exc)

    # Finalize
    def remaining_names(self) -> List[str]:
        return [self.threads[position].name for position, _ in self.remaining]

    def finalize(self) -> MatchSession:
        session = self.session
        session.matched_names = []
        session.unmatched_names = []
        session.results = {}
        for position, thread in enumerate(self.threads):
            result = self.results.get(position) or MatchResult.unmatched(thread.name)
            session.results[thread.name] = result
            if result.matched:
                session.matched_names.append(thread.name)
            else:
                session.unmatched_names.append(thread.name)

        if session.status != STATUS_FAILED:
            session.status = STATUS_INCOMPLETE if session.unmatched_names else STATUS_COMPLETE
        session.finished_at = datetime.now(timezone.utc).isoformat()
        self.metrics.record_session(session.status)

        if session.status == STATUS_INCOMPLETE:
            self.logger.warning(
                "Incomplete match: %d/%d threads matched after %d attempts (%s); unmatched: %s",
                session.matched_count,
                session.expected_count,
                session.attempts,
                session.stop_reason,
                session.unmatched_names,
            )
            self.report(
                OP_INCOMPLETE_MATCH,
                f"Matched {session.matched_count} of {session.expected_count} threads",
                context={"stop_reason": session.stop_reason, "visited": session.visited},
            )
        elif session.status == STATUS_COMPLETE:
            self.logger.info(
                "All %d threads matched in %d attempts", session.expected_count, session.attempts
            )
        return session

    def report(self, operation: str, message: str, context: Dict[str, Any], error: Optional[BaseException] = None) -> None:
        if self.sink is None:
            return
        event = MatchEvent(
            operation=operation,
            message=message,
            session_id=self.session.session_id,
            matched=[self.threads[p].name for p in sorted(self.results)],
            unmatched=[
                t.name for p, t in enumerate(self.threads) if p not in self.results
            ],
            attempts=self.session.attempts,
            safety_limit=self.session.safety_limit,
            context=context,
            error=f"{type(error).__name__}: {error}" if error else None,
            traceback="".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            ) if error else None,
        )
        try:
            self.sink.report(event)
        except Exception as exc:
            self.logger.warning("Event sink failed for %s: %s", operation, exc)


# Public API
def match_threads_to_images(
    threads: Sequence[ThreadDescriptor],
    viewer: PageDriver,
    sink: Optional[MatchEventSink] = None,
    *,
    safety_multiplier: int = DEFAULT_SAFETY_MULTIPLIER,
    capture: Optional[CaptureHook] = None,
    session_id: Optional[str] = None,
) -> MatchSession:
    """Match each thread to at most one viewer image, moving forward only.

    The viewer must be positioned on its first image and must not be used by
    anything else until this returns. At most ``safety_multiplier`` times the
    thread count images are inspected. Always returns a session; failures are
    reported to ``sink`` (navigation errors, incomplete and fatal passes).
    ``capture`` runs while the viewer shows a matched image and returns the
    stored screenshot path.
    """
    return _MatchRun(threads, viewer, sink, safety_multiplier, capture, session_id).run()


def apply_matches(threads: Sequence[ThreadDescriptor], session: MatchSession) -> int:
    """Attach image references from ``session`` onto matched threads.

    Threads that already carry an image index are left alone. Returns the
    number of threads updated.
    """
    updated = 0
    for thread in threads:
        result = session.results.get(thread.name)
        if result is None or not result.matched or thread.image_index is not None:
            continue
        thread.image_index = result.image_index
        thread.image_path = result.image_path
        thread.image_filename = result.image_filename
        updated += 1
    return updated
