"""
Purpose: Typed configuration models with validation.
Constraints: Pure models; no file I/O or side effects.
"""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field, ConfigDict, field_validator


class SeleniumSettings(BaseModel):
    model_config = ConfigDict(extra="allow")
    headless: bool = True
    wait_time: int = 30
    page_timeout: int = 60
    chrome_binary: str = ""
    use_undetected: bool = False
    window_width: int = 1920
    window_height: int = 1080


class ViewerSettings(BaseModel):
    model_config = ConfigDict(extra="allow")
    image_container_selector: str = ".image-container"
    fullscreen_selectors: List[str] = Field(
        default_factory=lambda: [
            ".fullscreen-button",
            ".info-bar__control-icons .fullscreen-button",
            "[class*='fullscreen']",
            "[aria-label*='fullscreen' i]",
            "[aria-label*='expand' i]",
            "[title*='fullscreen' i]",
            "button[class*='expand']",
        ]
    )
    next_selectors: List[str] = Field(
        default_factory=lambda: [
            ".right-flipper",
            ".image-flippers .right-flipper",
            ".next-button",
            "[aria-label*='next' i]",
            "[title*='next' i]",
        ]
    )
    name_selectors: List[str] = Field(
        default_factory=lambda: [
            ".info-bar__title",
            ".info-bar__filename",
            ".image-title",
            ".file-name",
            "[class*='filename']",
        ]
    )
    counter_selectors: List[str] = Field(
        default_factory=lambda: [".info-bar__counter", ".image-counter", ".image-flippers__counter"]
    )
    image_selector: str = ".image-container img"
    overlay_selectors: List[str] = Field(
        default_factory=lambda: [
            "[aria-label*='close' i]",
            "[aria-label*='dismiss' i]",
            ".modal-close",
            ".popup-close",
            ".overlay-close",
        ]
    )
    selector_timeout: float = 2.0
    name_change_timeout: float = 8.0
    settle_delay: float = 1.0
    image_load_timeout: float = 10.0
    screenshot_min_bytes: int = 1000


class MatcherSettings(BaseModel):
    model_config = ConfigDict(extra="allow")
    safety_multiplier: int = 3
    capture_screenshots: bool = True

    @field_validator("safety_multiplier")
    @classmethod
    def _positive_multiplier(cls, value: int) -> int:
        if value < 1:
            raise ValueError("safety_multiplier must be >= 1")
        return value


class StorageSettings(BaseModel):
    model_config = ConfigDict(extra="allow")
    output_dir: str = "screenshots"
    payload_dir: str = "data/payloads"
    error_log_path: str = "data/error_logs.jsonl"
    session_summary_path: str = "data/match_sessions.csv"
    run_log_dir: str = "data/extraction_runs"


class ExtractionSettings(BaseModel):
    model_config = ConfigDict(extra="allow")
    retry_attempts: int = 3
    retry_base_delay: float = 2.0
    thread_list_timeout: int = 30
    expand_delay: float = 2.0
    collect_attachments: bool = True
    attachment_delay: float = 1.0
    debug_mode: bool = False
