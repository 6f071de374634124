"""
Purpose: End-to-end extraction of one review page in a single browser session.
Constraints: Owns exactly one browser and one viewer; never shares them.
"""

from __future__ import annotations

import json
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from selenium.common.exceptions import WebDriverException

from review_extractor.core.config import ConfigManager
from review_extractor.core.errors import ExtractionError
from review_extractor.core.logging import UnifiedLogger
from review_extractor.core.models import (
    OP_FATAL_MATCH_ERROR,
    OP_NAVIGATION_ERROR,
    MatchEvent,
    MatchSession,
    ThreadDescriptor,
)
from review_extractor.core.screenshot_matcher import apply_matches, match_threads_to_images
from review_extractor.core.sinks import CompositeEventSink, LoggingEventSink
from review_extractor.core.storage.csv_log_writer import append_session_summary
from review_extractor.core.storage.error_log_store import ErrorLogStore
from review_extractor.core.storage.payload_store import save_payload
from review_extractor.core.utils.retry import retry
from review_extractor.markup_selenium.browser_manager import BrowserManager
from review_extractor.markup_selenium.page_helpers import dismiss_overlays
from review_extractor.markup_selenium.sidebar import SidebarExtractor
from review_extractor.markup_selenium.viewer import SeleniumViewerDriver

_AUTH_MARKERS = ("login", "auth", "signin", "sign-in")


@dataclass
class ExtractionResult:
    success: bool
    url: str
    session_id: str
    project_name: str = ""
    threads: List[ThreadDescriptor] = field(default_factory=list)
    match: Optional[MatchSession] = None
    payload_path: Optional[str] = None
    error: Optional[str] = None
    duration_seconds: float = 0.0
    dry_run: bool = False

    @property
    def incomplete(self) -> bool:
        return self.match is not None and self.match.is_incomplete


def build_payload(url: str, project_name: str, threads: List[ThreadDescriptor], session: Optional[MatchSession]) -> Dict[str, Any]:
    """Payload written to storage: project, threads with image references, match summary."""
    return {
        "success": session is not None and not session.failed,
        "url": url,
        "projectName": project_name,
        "threads": [thread.to_dict() for thread in threads],
        "totalThreads": len(threads),
        "totalScreenshots": len([t for t in threads if t.image_path]),
        "match": session.summary() if session else None,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


class DiagnosticScreenshotSink:
    """Saves a page screenshot when the viewer pass hits a navigation or fatal error."""

    def __init__(self, session: "ExtractionSession"):
        self.session = session

    def report(self, event: MatchEvent) -> None:
        if event.operation not in (OP_NAVIGATION_ERROR, OP_FATAL_MATCH_ERROR):
            return
        index = int(event.context.get("index") or 0)
        self.session.save_diagnostic(f"image_{index + 1}_error")


class ExtractionSession:
    """
    Extracts threads and matched screenshots from one review URL.
    Handles browser setup, page load retries, persistence and cleanup.
    """

    def __init__(
        self,
        url: str,
        config_manager: Optional[ConfigManager] = None,
        dry_run: bool = False,
        driver_factory: Optional[Callable[[], Any]] = None,
    ):
        if not url:
            raise ValueError("URL is required for extraction")
        self.unified = UnifiedLogger(self.__class__.__name__)
        self.logger = self.unified.get_logger()
        self.url = url
        self.dry_run = dry_run
        self.config_manager = config_manager or ConfigManager().load_all()
        self.session_id = str(uuid.uuid4())
        self.run_id = datetime.now().strftime("%Y%m%d_%H%M%S")

        storage = self.config_manager.storage_settings
        self.output_dir = Path(storage.output_dir) / self.run_id
        self.payload_dir = Path(storage.payload_dir)
        self.session_summary_path = Path(storage.session_summary_path)
        self.run_log_path = Path(storage.run_log_dir) / f"extraction_{self.run_id}.jsonl"
        self.error_log = ErrorLogStore(storage.error_log_path, url=url)
        sinks = [LoggingEventSink(self.unified), self.error_log]
        if self.config_manager.extraction_settings.debug_mode:
            sinks.append(DiagnosticScreenshotSink(self))
        self.event_sink = CompositeEventSink(sinks)

        self._driver_factory = driver_factory
        self.browser_manager: Optional[BrowserManager] = None
        self.driver = None
        self.page_title = ""
        self.last_result: Optional[ExtractionResult] = None
        self._write_run_log(event="start")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.cleanup()
        return False

    def _setup_browser(self) -> None:
        if self.driver is not None:
            return
        if self._driver_factory is not None:
            self.driver = self._driver_factory()
            return
        self.browser_manager = BrowserManager(self.config_manager.selenium_settings)
        self.driver = self.browser_manager.create_driver()

    def _load_page(self) -> None:
        self.logger.info("Navigating to: %s", self.url)
        self.driver.get(self.url)
        current = (self.driver.current_url or "").lower()
        if any(marker in current for marker in _AUTH_MARKERS):
            raise ExtractionError("Page requires authentication")
        self.page_title = self.driver.title or ""
        self.error_log.title = self.page_title
        self.logger.info("Page loaded: %s", self.page_title)

    def navigate(self) -> None:
        settings = self.config_manager.extraction_settings
        retry(
            self._load_page,
            attempts=settings.retry_attempts,
            base_delay=settings.retry_base_delay,
            description="Page navigation",
        )

    def _prepare_page(self) -> None:
        self._setup_browser()
        self.navigate()
        dismiss_overlays(self.driver, self.config_manager.viewer_settings.overlay_selectors)

    def extract_threads(self) -> tuple[str, List[ThreadDescriptor]]:
        """Load the page and read the sidebar only (no viewer pass)."""
        self._prepare_page()
        return SidebarExtractor(self.driver, self.config_manager.extraction_settings).extract()

    def run(self) -> ExtractionResult:
        start = time.time()
        if self.dry_run:
            self.logger.info("Dry-run enabled; skipping browser extraction for %s", self.url)
            result = ExtractionResult(True, self.url, self.session_id, dry_run=True)
            self.last_result = result
            return result

        project_name = ""
        threads: List[ThreadDescriptor] = []
        try:
            with self.unified.time_operation("extraction"):
                project_name, threads = self.extract_threads()
                if not threads:
                    raise ExtractionError("No threads found in the sidebar")

                viewer = SeleniumViewerDriver(
                    self.driver, self.config_manager.viewer_settings, output_dir=self.output_dir
                )
                viewer.open(container_timeout=self.config_manager.selenium_settings.wait_time)
                matcher_settings = self.config_manager.matcher_settings
                capture = None
                if matcher_settings.capture_screenshots:
                    def capture(thread, index, image_name):
                        return viewer.capture_current_image(thread.name)

                session = match_threads_to_images(
                    threads,
                    viewer,
                    self.event_sink,
                    safety_multiplier=matcher_settings.safety_multiplier,
                    capture=capture,
                    session_id=self.session_id,
                )
                apply_matches(threads, session)

                payload = build_payload(self.url, project_name, threads, session)
                payload_path = save_payload(self.payload_dir, payload)
                append_session_summary(self.session_summary_path, session, url=self.url, project_name=project_name)

            result = ExtractionResult(
                success=not session.failed,
                url=self.url,
                session_id=self.session_id,
                project_name=project_name,
                threads=threads,
                match=session,
                payload_path=str(payload_path),
                error=session.error,
                duration_seconds=round(time.time() - start, 2),
            )
            self.logger.info(
                "Extraction finished: %d threads, %d matched, status %s",
                len(threads),
                session.matched_count,
                session.status,
            )
        except Exception as exc:
            details = self.unified.log_error_with_context(
                exc, {"url": self.url, "title": self.page_title, "threads": len(threads)}
            )
            if self.config_manager.extraction_settings.debug_mode:
                self.save_diagnostic("error_state")
            self.error_log.append(
                f"Extraction failed: {exc}",
                session_id=self.session_id,
                error_details=details,
                number_of_images=len(threads),
            )
            result = ExtractionResult(
                success=False,
                url=self.url,
                session_id=self.session_id,
                project_name=project_name,
                threads=threads,
                error=f"{type(exc).__name__}: {exc}",
                duration_seconds=round(time.time() - start, 2),
            )
        self.last_result = result
        return result

    def save_diagnostic(self, label: str) -> Optional[Path]:
        """Full-page screenshot for debugging; never raises."""
        if self.driver is None:
            return None
        path = self.output_dir / f"{label}.png"
        try:
            data = self.driver.get_screenshot_as_png()
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except (WebDriverException, OSError) as exc:
            self.logger.warning("Diagnostic screenshot %s failed: %s", label, exc)
            return None
        self.logger.info("Diagnostic screenshot saved: %s", path)
        return path

    def cleanup(self) -> None:
        if self.driver is not None:
            if self.browser_manager is not None:
                self.browser_manager.close_driver(self.driver)
            else:
                try:
                    self.driver.quit()
                except Exception as exc:
                    self.logger.warning("Error while closing browser: %s", exc)
            self.driver = None
        self._write_run_log(event="end")

    def _write_run_log(self, event: str) -> None:
        payload: Dict[str, Any] = {
            "event": event,
            "timestamp": datetime.now().isoformat(),
            "session_id": self.session_id,
            "url": self.url,
            "dry_run": self.dry_run,
        }
        result = self.last_result
        if event == "end" and result is not None:
            payload.update({
                "success": result.success,
                "error": result.error,
                "duration_seconds": result.duration_seconds,
                "match": result.match.summary() if result.match else None,
            })
        try:
            self.run_log_path.parent.mkdir(parents=True, exist_ok=True)
            with self.run_log_path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(payload, default=str) + "\n")
        except OSError as exc:
            self.logger.warning("Could not write run log %s: %s", self.run_log_path, exc)
