"""
Purpose: Selector fallback lookups, clickability checks and waits.
Constraints: UI interactions only; callers decide what a failure means.
"""

# Imports
import logging
import time
from typing import Optional, Sequence, Tuple

from selenium.common.exceptions import (
    InvalidSessionIdException,
    NoSuchWindowException,
    StaleElementReferenceException,
    TimeoutException,
    WebDriverException,
)
from selenium.webdriver.common.by import By
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait

# Constants
logger = logging.getLogger(__name__)

_SESSION_LOST_MARKERS = (
    "invalid session id",
    "session deleted",
    "no such window",
    "disconnected",
    "target window already closed",
    "chrome not reachable",
)

_IS_CLICKABLE_JS = """
const el = arguments[0];
const rect = el.getBoundingClientRect();
const style = window.getComputedStyle(el);
return rect.width > 0 && rect.height > 0 &&
       style.visibility !== 'hidden' &&
       style.display !== 'none' &&
       !el.disabled &&
       style.pointerEvents !== 'none';
"""


# Helpers
def is_session_lost(exc: BaseException) -> bool:
    """True when the browser session behind the driver is gone."""
    if isinstance(exc, (InvalidSessionIdException, NoSuchWindowException)):
        return True
    message = str(exc).lower()
    return any(marker in message for marker in _SESSION_LOST_MARKERS)


def wait_for(driver, selector: str, timeout: float, visible: bool = False):
    """Wait for a CSS selector; raises TimeoutException."""
    condition = EC.visibility_of_element_located if visible else EC.presence_of_element_located
    return WebDriverWait(driver, timeout).until(condition((By.CSS_SELECTOR, selector)))


def is_clickable(driver, element) -> bool:
    try:
        return bool(driver.execute_script(_IS_CLICKABLE_JS, element))
    except StaleElementReferenceException:
        return False


def find_first_clickable(driver, selectors: Sequence[str], timeout: float = 2.0) -> Tuple[Optional[object], Optional[str]]:
    """Return ``(element, selector)`` for the first visible, enabled match."""
    for selector in selectors:
        try:
            wait_for(driver, selector, timeout)
            for element in driver.find_elements(By.CSS_SELECTOR, selector):
                if is_clickable(driver, element):
                    return element, selector
        except TimeoutException:
            logger.debug("Selector not found: %s", selector)
        except WebDriverException as exc:
            if is_session_lost(exc):
                raise
            logger.debug("Selector %s failed: %s", selector, exc)
    return None, None


def first_text(driver, selectors: Sequence[str]) -> str:
    """Text of the first displayed element with non-empty text."""
    for selector in selectors:
        for element in driver.find_elements(By.CSS_SELECTOR, selector):
            try:
                if not element.is_displayed():
                    continue
                text = (element.text or element.get_attribute("title") or "").strip()
            except StaleElementReferenceException:
                continue
            if text:
                return text
    return ""


def click_element(driver, element, settle: float = 0.5) -> None:
    """Scroll an element into view and click it, using JS if the click is intercepted."""
    driver.execute_script("arguments[0].scrollIntoView({block: 'center'});", element)
    if settle:
        time.sleep(settle)
    try:
        element.click()
    except WebDriverException as exc:
        if is_session_lost(exc):
            raise
        logger.debug("Native click failed (%s); using JS click", exc)
        driver.execute_script("arguments[0].click();", element)


def dismiss_overlays(driver, selectors: Sequence[str], timeout: float = 1.0) -> int:
    """Click away cookie banners and popups; returns how many were closed."""
    closed = 0
    for selector in selectors:
        element, _ = find_first_clickable(driver, [selector], timeout=timeout)
        if element is None:
            continue
        try:
            click_element(driver, element, settle=0)
            closed += 1
            logger.info("Closed overlay: %s", selector)
        except WebDriverException as exc:
            if is_session_lost(exc):
                raise
            logger.debug("Overlay %s could not be closed: %s", selector, exc)
    return closed
