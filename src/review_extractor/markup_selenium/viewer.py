"""
Purpose: Selenium page driver for the full-screen paginated image viewer.
Constraints: One instance per browser tab; callers use it sequentially.
"""

# Imports
import logging
import posixpath
import time
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from urllib.parse import unquote, urlparse

from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.common.by import By
from selenium.webdriver.common.keys import Keys
from selenium.webdriver.support.ui import WebDriverWait

from review_extractor.core.config_models import ViewerSettings
from review_extractor.core.errors import (
    EndOfViewer,
    ImageNameUnavailable,
    NavigationError,
    ViewerUnavailable,
)
from review_extractor.core.text_normalization import normalize_name
from review_extractor.markup_selenium.page_helpers import (
    click_element,
    find_first_clickable,
    first_text,
    is_session_lost,
    wait_for,
)

logger = logging.getLogger(__name__)

_IMAGES_LOADED_JS = """
const visible = Array.from(document.querySelectorAll(arguments[0]))
  .filter(img => img.offsetParent !== null || img.getClientRects().length > 0);
return visible.every(img => img.complete && img.naturalHeight > 0);
"""

# (position counter, image src, displayed name)
Fingerprint = Tuple[str, str, str]


def _basename_from_src(src: str) -> str:
    if not src or src.startswith("data:"):
        return ""
    return unquote(posixpath.basename(urlparse(src).path))


def screenshot_filename(index: int, label: str) -> str:
    slug = normalize_name(label).replace(" ", "_")[:60] or "image"
    return f"{index + 1:02d}_{slug}.png"


class SeleniumViewerDriver:
    """Reads image names from the viewer and steps it forward.

    A move to the next image is confirmed by a change of the viewer
    fingerprint (position counter, visible image ``src`` and displayed
    name), so images with unreadable or repeated names still count as new.
    """

    def __init__(self, driver, settings: Optional[ViewerSettings] = None, output_dir: Optional[Path] = None):
        self.driver = driver
        self.settings = settings or ViewerSettings()
        self.output_dir = Path(output_dir or "screenshots")
        self.index = 0

    def open(self, container_timeout: float = 30.0) -> bool:
        """Wait for the image container and switch the viewer to full screen."""
        try:
            wait_for(self.driver, self.settings.image_container_selector, container_timeout, visible=True)
            button, selector = find_first_clickable(
                self.driver, self.settings.fullscreen_selectors, timeout=self.settings.selector_timeout
            )
            if button is None:
                logger.warning("No clickable fullscreen control found; using the inline viewer")
                return False
            click_element(self.driver, button, settle=min(0.5, self.settings.settle_delay))
        except TimeoutException as exc:
            raise ViewerUnavailable(
                f"image container {self.settings.image_container_selector!r} did not appear"
            ) from exc
        except WebDriverException as exc:
            raise ViewerUnavailable(f"viewer could not be opened: {exc}") from exc
        logger.info("Fullscreen viewer opened via %s", selector)
        self._settle()
        self.wait_for_image_load()
        return True

    def _settle(self) -> None:
        if self.settings.settle_delay > 0:
            time.sleep(self.settings.settle_delay)

    def _visible_images(self):
        return [
            image
            for image in self.driver.find_elements(By.CSS_SELECTOR, self.settings.image_selector)
            if image.is_displayed()
        ]

    def _displayed_name(self) -> str:
        name = first_text(self.driver, self.settings.name_selectors)
        if name:
            return name
        for image in self._visible_images():
            alt = (image.get_attribute("alt") or "").strip()
            if alt:
                return alt
            src_name = _basename_from_src(image.get_attribute("src") or "")
            if src_name:
                return src_name
        return ""

    def _fingerprint(self) -> Optional[Fingerprint]:
        """Current viewer identity, or None when the page could not be read."""
        try:
            counter = first_text(self.driver, self.settings.counter_selectors)
            images = self._visible_images()
            src = (images[0].get_attribute("src") or "") if images else ""
            return counter, src, self._displayed_name()
        except WebDriverException as exc:
            if is_session_lost(exc):
                raise ViewerUnavailable(f"browser session lost: {exc}") from exc
            return None

    def read_current_image_name(self) -> str:
        try:
            name = self._displayed_name()
        except WebDriverException as exc:
            if is_session_lost(exc):
                raise ViewerUnavailable(f"browser session lost: {exc}") from exc
            raise ImageNameUnavailable(f"image name lookup failed: {exc}") from exc
        if not name:
            raise ImageNameUnavailable("no image name displayed")
        return name

    def wait_for_image_load(self, timeout: Optional[float] = None) -> bool:
        """Wait until every visible viewer image reports complete with a height."""
        try:
            WebDriverWait(self.driver, timeout if timeout is not None else self.settings.image_load_timeout).until(
                lambda d: d.execute_script(_IMAGES_LOADED_JS, self.settings.image_selector)
            )
            return True
        except TimeoutException:
            logger.warning("Viewer image %d did not finish loading", self.index)
            return False

    def advance_to_next(self) -> None:
        previous = self._fingerprint()
        try:
            button, selector = find_first_clickable(
                self.driver, self.settings.next_selectors, timeout=self.settings.selector_timeout
            )
            if button is not None:
                click_element(self.driver, button, settle=min(0.5, self.settings.settle_delay))
                logger.debug("Advanced viewer with %s", selector)
            else:
                logger.debug("No next control found; sending ArrowRight")
                self.driver.find_element(By.TAG_NAME, "body").send_keys(Keys.ARROW_RIGHT)
        except WebDriverException as exc:
            if is_session_lost(exc):
                raise ViewerUnavailable(f"browser session lost: {exc}") from exc
            raise NavigationError(f"could not move past image {self.index}: {exc}") from exc

        if previous and any(previous):
            try:
                WebDriverWait(self.driver, self.settings.name_change_timeout).until(
                    lambda _d: self._changed_from(previous)
                )
            except TimeoutException as exc:
                raise EndOfViewer(
                    f"viewer stayed on {previous[2] or previous[1]!r} after navigating from index {self.index}"
                ) from exc
        else:
            self._settle()

        self.index += 1
        self.wait_for_image_load()

    def _changed_from(self, previous: Fingerprint) -> bool:
        current = self._fingerprint()
        return current is not None and any(current) and current != previous

    def capture_current_image(self, label: str) -> Path:
        """Screenshot the image container (or the page) to the output directory."""
        if not self.wait_for_image_load():
            raise ValueError(f"image {self.index} still loading; screenshot skipped")
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / screenshot_filename(self.index, label)
        try:
            containers = self.driver.find_elements(By.CSS_SELECTOR, self.settings.image_container_selector)
            target = next((c for c in containers if c.is_displayed()), None)
            data = target.screenshot_as_png if target is not None else self.driver.get_screenshot_as_png()
        except WebDriverException as exc:
            if is_session_lost(exc):
                raise ViewerUnavailable(f"browser session lost: {exc}") from exc
            raise
        if len(data) < self.settings.screenshot_min_bytes:
            raise ValueError(f"screenshot too small ({len(data)} bytes), possible capture error")
        path.write_bytes(data)
        logger.info("Screenshot saved: %s (%.1f KB)", path, len(data) / 1024)
        return path

    def describe(self) -> Dict[str, Any]:
        try:
            return {"url": self.driver.current_url, "title": self.driver.title, "viewer_index": self.index}
        except WebDriverException as exc:
            return {"viewer_index": self.index, "describe_error": str(exc)}
