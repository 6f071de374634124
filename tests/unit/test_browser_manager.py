import unittest
from unittest import mock

from selenium.common.exceptions import WebDriverException

from review_extractor.core.config_models import SeleniumSettings
from review_extractor.markup_selenium.browser_manager import BrowserManager


class FakeOptions:
    def __init__(self):
        self.arguments = []
        self.binary_location = ""

    def add_argument(self, arg):
        self.arguments.append(arg)


class BrowserManagerTest(unittest.TestCase):
    def test_headless_arguments(self):
        options = FakeOptions()
        BrowserManager(SeleniumSettings(headless=True, chrome_binary="/opt/chrome"))._apply_arguments(options)

        self.assertIn("--headless=new", options.arguments)
        self.assertIn("--window-size=1920,1080", options.arguments)
        self.assertEqual(options.binary_location, "/opt/chrome")

    def test_headed_has_no_headless_flag(self):
        options = FakeOptions()
        BrowserManager(SeleniumSettings(headless=False))._apply_arguments(options)

        self.assertNotIn("--headless=new", options.arguments)

    def test_create_driver_uses_undetected_when_enabled(self):
        manager = BrowserManager(SeleniumSettings(use_undetected=True, page_timeout=45))
        driver = mock.Mock()
        with mock.patch.object(manager, "_create_undetected_driver", return_value=driver) as undetected:
            self.assertIs(manager.create_driver(), driver)

        undetected.assert_called_once_with()
        driver.set_page_load_timeout.assert_called_once_with(45)

    def test_close_driver_swallows_webdriver_errors(self):
        driver = mock.Mock()
        driver.quit.side_effect = WebDriverException("chrome not reachable")

        BrowserManager().close_driver(driver)
        BrowserManager().close_driver(None)

        driver.quit.assert_called_once_with()


if __name__ == "__main__":
    unittest.main()
