"""
Purpose: Centralized logging configuration with structured output support.
Constraints: Logging only; no extraction or matching logic.
"""

# Imports
import logging
import sys
import json
import os
import threading
import time
import re
from datetime import datetime
from pathlib import Path
from logging.handlers import RotatingFileHandler
from contextlib import contextmanager
from typing import Optional, Dict, Any
import traceback

from review_extractor.core.metrics import get_metrics

_REDACTED = "[redacted]"

_TOKEN_PATTERNS = [
    re.compile(r"\beyJ[a-zA-Z0-9_\-]+=*\.[a-zA-Z0-9_\-]+=*\.[a-zA-Z0-9_\-]+=*\b"),
    re.compile(r"\bsbp_[A-Za-z0-9]{20,}\b"),
    re.compile(r"\bghp_[A-Za-z0-9]{20,}\b"),
]

_URL_QUERY_PATTERN = re.compile(r"(https?://[^\s?#]+)\?[^\s]+", re.IGNORECASE)

_EXTRA_FIELDS = ("action", "details", "session")


def _env_enabled(name: str, default: str = "1") -> bool:
    return os.getenv(name, default).lower() not in ("0", "false", "no")


def _redact_text(text: str) -> str:
    if not text:
        return text
    redacted = text
    for pattern in _TOKEN_PATTERNS:
        redacted = pattern.sub(_REDACTED, redacted)
    # Signed storage URLs carry tokens in the query string.
    if _env_enabled("REDACT_URL_QUERIES"):
        redacted = _URL_QUERY_PATTERN.sub(lambda m: f"{m.group(1)}?{_REDACTED}", redacted)
    return redacted


def _redact_obj(value):
    if isinstance(value, str):
        return _redact_text(value)
    if isinstance(value, dict):
        return {k: _redact_obj(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_redact_obj(v) for v in value]
    if isinstance(value, tuple):
        return tuple(_redact_obj(v) for v in value)
    return value


# Public API
class UnifiedLogger:
    """Process-wide logging setup plus structured helpers for the extractor."""

    _lock = threading.Lock()
    _sentry_initialized = False
    _metrics_thread_started = False
    _global_initialized = False

    def __init__(self, name: str = "review_extractor", log_level: Optional[str] = None):
        self.name = name

        if log_level is None:
            log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        level = getattr(logging, log_level, logging.INFO)

        with self._lock:
            self.logger = logging.getLogger(name)
            self.logger.setLevel(level)
            # Configure root logger once; all loggers propagate to root
            if not UnifiedLogger._global_initialized:
                logs_dir = Path(os.getenv("REVIEW_EXTRACTOR_LOG_DIR", "logs"))
                timestamp = datetime.now().strftime("%Y%m%d")

                self._ensure_root_logger(logs_dir, timestamp, level)

                if _env_enabled("METRICS_ENABLED"):
                    self._start_metrics_thread(logs_dir)

                self._maybe_init_sentry()

                UnifiedLogger._global_initialized = True
                self.logger.debug("Logger initialized. Log dir: %s", logs_dir)
            self.logger.propagate = True

    def get_logger(self) -> logging.Logger:
        """Get the underlying logger instance"""
        return self.logger

    def log_activity(self, action: str, details: Dict[str, Any], level: str = "INFO", session: Optional[str] = None):
        """Log an extraction or matching activity with structured data"""
        log_level = getattr(logging, level.upper(), logging.INFO)
        extra = {"action": action, "details": details}
        if session:
            extra["session"] = session
        self.logger.log(log_level, f"ACTIVITY: {action}", extra=extra)
        get_metrics().record(f"activity.{action}", success=log_level < logging.ERROR)

    def log_performance(self, operation: str, duration: float):
        """Log performance metrics"""
        self.logger.info(f"PERFORMANCE: {operation} took {duration:.2f}s")
        get_metrics().record(f"performance.{operation}", success=True)

    def log_error_with_context(self, error: BaseException, context: Dict[str, Any], level: str = "ERROR") -> Dict[str, Any]:
        """Log an error with context and its traceback; returns the logged details."""
        error_details = {
            "timestamp": datetime.now().isoformat(),
            "error_type": type(error).__name__,
            "error_message": str(error),
            "context": context,
            "traceback": "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            ),
        }
        self.logger.log(
            getattr(logging, level.upper(), logging.ERROR),
            f"ERROR: {type(error).__name__}: {str(error)}",
            extra={"details": error_details},
        )
        get_metrics().record_error("exception")
        return error_details

    @contextmanager
    def time_operation(self, operation_name: str):
        """Context manager for timing operations"""
        start_time = time.time()
        try:
            yield
        finally:
            duration = time.time() - start_time
            self.log_performance(operation_name, duration)

    def _start_metrics_thread(self, logs_dir: Path) -> None:
        if UnifiedLogger._metrics_thread_started:
            return
        interval = int(os.getenv("METRICS_SNAPSHOT_INTERVAL_SEC", "60"))
        if interval <= 0:
            return
        metrics_path = logs_dir / "metrics.jsonl"

        def _loop():
            while True:
                time.sleep(interval)
                try:
                    get_metrics().write_snapshot(metrics_path)
                except OSError as exc:
                    logging.getLogger(__name__).debug("Metrics snapshot failed: %s", exc)

        t = threading.Thread(target=_loop, daemon=True, name="metrics-snapshotter")
        t.start()
        UnifiedLogger._metrics_thread_started = True

    def _maybe_init_sentry(self) -> None:
        if UnifiedLogger._sentry_initialized:
            return
        dsn = os.getenv("SENTRY_DSN", "").strip()
        if not dsn:
            return
        try:
            import sentry_sdk
            from sentry_sdk.integrations.logging import LoggingIntegration
        except ImportError:
            self.logger.warning("SENTRY_DSN is set but sentry-sdk is not installed")
            return

        sentry_logging = LoggingIntegration(
            level=logging.INFO,
            event_level=logging.ERROR,
        )
        sentry_sdk.init(
            dsn=dsn,
            environment=os.getenv("SENTRY_ENVIRONMENT", "production"),
            release=os.getenv("SENTRY_RELEASE"),
            traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.0")),
            integrations=[sentry_logging],
        )
        UnifiedLogger._sentry_initialized = True

    def _ensure_root_logger(self, logs_dir: Path, timestamp: str, level: int) -> None:
        if not _env_enabled("ENABLE_ROOT_LOGGER"):
            return
        root_logger = logging.getLogger()
        if root_logger.handlers:
            return

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(
            getattr(logging, os.getenv("CONSOLE_LOG_LEVEL", "INFO").upper(), logging.INFO)
        )
        console_handler.setFormatter(_RedactingFormatter(
            logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
        ))
        root_logger.setLevel(level)
        root_logger.addHandler(console_handler)

        if _env_enabled("ENABLE_FILE_LOGGING"):
            logs_dir.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                logs_dir / f"extractor_{timestamp}.log",
                maxBytes=10*1024*1024,
                backupCount=5,
                encoding="utf-8"
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(_RedactingFormatter(logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
            )))
            root_logger.addHandler(file_handler)

            if _env_enabled("ENABLE_JSON_LOGGING"):
                json_handler = RotatingFileHandler(
                    logs_dir / f"extractor_json_{timestamp}.log",
                    maxBytes=5*1024*1024,
                    backupCount=3,
                    encoding="utf-8"
                )
                json_handler.setLevel(level)
                json_handler.setFormatter(_RedactingJsonFormatter())
                root_logger.addHandler(json_handler)

        if _env_enabled("METRICS_ENABLED"):
            root_logger.addHandler(_MetricsHandler())



class _MetricsHandler(logging.Handler):
    """Update counters for every log record."""

    def emit(self, record: logging.LogRecord) -> None:
        metrics = get_metrics()
        metrics.record(f"log.{record.levelname.lower()}", success=record.levelno < logging.ERROR)
        if record.levelno >= logging.ERROR:
            metrics.record_error("log.error")


class _RedactingFormatter(logging.Formatter):
    def __init__(self, base: logging.Formatter):
        style = getattr(base, "style", "%")
        super().__init__(base._fmt, base.datefmt, style)
        self._base = base

    def format(self, record: logging.LogRecord) -> str:
        if not _env_enabled("LOG_REDACTION"):
            return self._base.format(record)
        original_msg, original_args = record.msg, record.args
        record.msg = _redact_text(record.getMessage())
        record.args = ()
        try:
            return self._base.format(record)
        finally:
            record.msg, record.args = original_msg, original_args


class _RedactingJsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        redact = _env_enabled("LOG_REDACTION")
        log_obj = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": _redact_text(record.getMessage()) if redact else record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        for key in _EXTRA_FIELDS:
            if hasattr(record, key):
                value = getattr(record, key)
                log_obj[key] = _redact_obj(value) if redact else value
        return json.dumps(log_obj, default=str)
