"""
Purpose: Load environment and JSON configuration for the extractor.
Constraints: Pure config I/O only; no network or browser side effects.
"""

# Imports
import os
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError

from review_extractor.core.config_models import (
    ExtractionSettings,
    MatcherSettings,
    SeleniumSettings,
    StorageSettings,
    ViewerSettings,
)

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("true", "1", "yes", "y", "on")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in _TRUE_VALUES


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer", name, raw)
        return default


# Public API
class ConfigManager:
    """Settings for one extractor process, from .env files and settings.json"""

    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = Path(
            config_dir or os.getenv("REVIEW_EXTRACTOR_CONFIG_DIR") or Path.cwd() / "config"
        )
        self.selenium_settings = SeleniumSettings()
        self.viewer_settings = ViewerSettings()
        self.matcher_settings = MatcherSettings()
        self.storage_settings = StorageSettings()
        self.extraction_settings = ExtractionSettings()
        self.loaded_env_file: Optional[Path] = None

    def load_all(self):
        """Load all configurations; environment overrides settings.json"""
        self.load_settings()
        self.load_env()
        return self

    def load_env(self):
        """Load the first .env file found and apply environment overrides"""
        env_files = [
            self.config_dir / "credentials.env",
            Path.cwd() / ".env",
            Path.home() / ".review_extractor.env",
        ]
        for env_file in env_files:
            if env_file.exists():
                load_dotenv(env_file)
                self.loaded_env_file = env_file
                break

        if self.loaded_env_file:
            logger.info("Loaded environment from: %s", self.loaded_env_file)
        else:
            logger.debug("No .env file found")

        selenium = self.selenium_settings
        self.selenium_settings = SeleniumSettings(
            **{
                **selenium.model_dump(),
                "headless": _env_flag("SELENIUM_HEADLESS", str(selenium.headless)),
                "wait_time": _env_int("SELENIUM_WAIT_TIME", selenium.wait_time),
                "page_timeout": _env_int("SCRAPER_TIMEOUT", selenium.page_timeout),
                "chrome_binary": os.getenv("CHROME_BIN", selenium.chrome_binary),
                "use_undetected": _env_flag("SELENIUM_USE_UNDETECTED", str(selenium.use_undetected)),
            }
        )

        multiplier = os.getenv("MATCH_SAFETY_MULTIPLIER")
        if multiplier:
            try:
                self.matcher_settings = MatcherSettings(
                    **{**self.matcher_settings.model_dump(), "safety_multiplier": int(multiplier)}
                )
            except (ValueError, ValidationError) as exc:
                logger.warning("Ignoring MATCH_SAFETY_MULTIPLIER=%r: %s", multiplier, exc)

        output_dir = os.getenv("SCRAPER_OUTPUT_DIR")
        if output_dir:
            self.storage_settings = StorageSettings(
                **{**self.storage_settings.model_dump(), "output_dir": output_dir}
            )

        extraction = self.extraction_settings
        self.extraction_settings = ExtractionSettings(
            **{
                **extraction.model_dump(),
                "retry_attempts": _env_int("SCRAPER_RETRY_ATTEMPTS", extraction.retry_attempts),
                "debug_mode": _env_flag("SCRAPER_DEBUG_MODE", str(extraction.debug_mode)),
            }
        )
        return self

    def load_settings(self):
        """Load settings.json sections into typed models"""
        raw = self.load_json("settings.json", default={}) or {}
        if not isinstance(raw, dict):
            logger.warning("settings.json should contain a JSON object; using defaults")
            raw = {}

        self.viewer_settings = self._section(raw, "viewer", ViewerSettings)
        self.matcher_settings = self._section(raw, "matcher", MatcherSettings)
        self.storage_settings = self._section(raw, "storage", StorageSettings)
        self.extraction_settings = self._section(raw, "extraction", ExtractionSettings)
        self.selenium_settings = self._section(raw, "selenium", SeleniumSettings)
        return self

    def _section(self, raw: Dict[str, Any], key: str, model: type[BaseModel]):
        try:
            return model(**(raw.get(key) or {}))
        except ValidationError as exc:
            logger.warning("Invalid '%s' section in settings.json: %s", key, exc)
            return model()

    def load_json(self, path: str, default: Any = None) -> Any:
        """Load JSON data from a path (relative paths resolve against config_dir)."""
        if not path:
            return default

        path_obj = Path(path)
        if not path_obj.is_absolute():
            path_obj = self.config_dir / path_obj

        if not path_obj.exists():
            return default

        try:
            with path_obj.open("r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Error reading %s: %s", path_obj, e)
            return default

    def summary(self) -> Dict[str, Any]:
        return {
            "config_dir": str(self.config_dir),
            "env_file": str(self.loaded_env_file) if self.loaded_env_file else None,
            "selenium": self.selenium_settings.model_dump(),
            "matcher": self.matcher_settings.model_dump(),
            "storage": self.storage_settings.model_dump(),
            "extraction": self.extraction_settings.model_dump(),
        }
