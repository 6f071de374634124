"""
Purpose: Create and dispose of the Chrome session used for one extraction.
Constraints: Browser lifecycle only; no page interaction here.
"""

# Imports
import logging
import random
from typing import Optional

from selenium import webdriver
from selenium.common.exceptions import WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service

from review_extractor.core.config_models import SeleniumSettings

logger = logging.getLogger(__name__)

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
]

_COMMON_ARGS = (
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-extensions",
    "--no-first-run",
    "--disable-default-apps",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
)


class BrowserManager:
    def __init__(self, settings: Optional[SeleniumSettings] = None):
        self.settings = settings or SeleniumSettings()

    def _apply_arguments(self, options) -> None:
        s = self.settings
        options.add_argument(f"user-agent={random.choice(USER_AGENTS)}")
        for arg in _COMMON_ARGS:
            options.add_argument(arg)
        options.add_argument(f"--window-size={s.window_width},{s.window_height}")
        if s.headless:
            options.add_argument("--headless=new")
        if s.chrome_binary:
            options.binary_location = s.chrome_binary

    def create_driver(self):
        """Create a Chrome driver configured from SeleniumSettings"""
        if self.settings.use_undetected:
            driver = self._create_undetected_driver()
        else:
            driver = self._create_regular_driver()
        driver.set_page_load_timeout(self.settings.page_timeout)
        try:
            driver.set_window_size(self.settings.window_width, self.settings.window_height)
        except WebDriverException as exc:
            logger.debug("Could not set window size: %s", exc)
        logger.info("Chrome browser created (headless=%s)", self.settings.headless)
        return driver

    def _create_undetected_driver(self):
        import undetected_chromedriver as uc

        options = uc.ChromeOptions()
        self._apply_arguments(options)
        return uc.Chrome(options=options, use_subprocess=False)

    def _create_regular_driver(self):
        from webdriver_manager.chrome import ChromeDriverManager

        options = Options()
        self._apply_arguments(options)
        options.add_experimental_option("excludeSwitches", ["enable-automation"])
        try:
            service = Service(ChromeDriverManager().install())
            driver = webdriver.Chrome(service=service, options=options)
            logger.info("Chrome driver resolved with webdriver-manager")
        except (ValueError, OSError, WebDriverException) as exc:
            # Selenium Manager resolves the driver when webdriver-manager cannot.
            logger.warning("webdriver-manager failed (%s); using Selenium Manager", exc)
            driver = webdriver.Chrome(options=options)
        return driver

    def close_driver(self, driver) -> None:
        if driver is None:
            return
        try:
            driver.quit()
            logger.info("Browser closed")
        except WebDriverException as exc:
            logger.warning("Error while closing browser: %s", exc)
