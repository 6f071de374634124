"""In-memory stand-ins for the viewer and a Selenium driver showing a review page."""

from selenium.common.exceptions import NoSuchElementException, WebDriverException

from review_extractor.core.errors import EndOfViewer, ImageNameUnavailable, NavigationError
from review_extractor.core.config_models import ExtractionSettings, ViewerSettings
from review_extractor.markup_selenium import sidebar as sidebar_module
from review_extractor.markup_selenium import viewer as viewer_module
from review_extractor.markup_selenium.page_helpers import _IS_CLICKABLE_JS

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"0" * 64


class FakeViewer:
    """Page driver over a list of image names.

    ``None`` entries cannot be read; an exception instance raises when read.
    """

    def __init__(self, names, fail_advance_at=None):
        self.names = list(names)
        self.index = 0
        self.reads = 0
        self.advances = 0
        self.read_indices = []
        self.fail_advance_at = fail_advance_at

    def read_current_image_name(self):
        self.reads += 1
        self.read_indices.append(self.index)
        name = self.names[self.index]
        if isinstance(name, Exception):
            raise name
        if name is None:
            raise ImageNameUnavailable(f"no name at {self.index}")
        return name

    def advance_to_next(self):
        if self.fail_advance_at is not None and self.index == self.fail_advance_at:
            raise NavigationError("next button vanished")
        if self.index + 1 >= len(self.names):
            raise EndOfViewer("no more images")
        self.advances += 1
        self.index += 1

    def describe(self):
        return {"viewer_index": self.index}


class RecordingSink:
    def __init__(self):
        self.events = []

    def report(self, event):
        self.events.append(event)

    @property
    def operations(self):
        return [event.operation for event in self.events]


class BrokenSink:
    def report(self, event):
        raise RuntimeError("sink offline")


class FakeElement:
    def __init__(self, text="", attributes=None, displayed=True, on_click=None, png=PNG_BYTES, children=None):
        self.text = text
        self.attributes = attributes or {}
        self.displayed = displayed
        self.on_click = on_click
        self.screenshot_as_png = png
        self.keys = []
        self.children = children or {}

    def is_displayed(self):
        return self.displayed

    def get_attribute(self, name):
        return self.attributes.get(name)

    def click(self):
        if self.on_click:
            self.on_click()

    def send_keys(self, *keys):
        self.keys.extend(keys)

    def find_elements(self, by, selector):
        return list(self.children.get(selector, []))


def viewer_settings(**overrides):
    values = {
        "overlay_selectors": [],
        "fullscreen_selectors": [".fullscreen-button"],
        "next_selectors": [".right-flipper"],
        "selector_timeout": 0.1,
        "name_change_timeout": 0.2,
        "settle_delay": 0,
        "screenshot_min_bytes": 1,
        "image_load_timeout": 0.2,
    }
    values.update(overrides)
    return ViewerSettings(**values)


def extraction_settings(**overrides):
    values = {
        "retry_attempts": 1,
        "retry_base_delay": 0,
        "thread_list_timeout": 0,
        "expand_delay": 0,
        "collect_attachments": False,
        "attachment_delay": 0,
    }
    values.update(overrides)
    return ExtractionSettings(**values)


def group(name, *comments, expected=0):
    return {
        "position": 0,
        "name": name,
        "expected": expected,
        "comments": [
            {"id": f"{name}-{i}", "pin": str(i + 1), "text": text, "author": "reviewer", "attachments": []}
            for i, text in enumerate(comments)
        ],
    }


class FakeReviewDriver:
    """Answers the lookups the sidebar extractor and viewer driver make.

    ``images`` are the names shown by the viewer in order; the next button
    does nothing on the last image. ``name_style`` picks where the name is
    shown: ``title`` (info bar), ``alt`` or ``src`` on the image element.
    """

    def __init__(
        self,
        images=(),
        groups=(),
        project_name="Landing Page Review",
        name_style="title",
        redirect_to=None,
        has_thread_list=True,
        lost_session=False,
        images_loaded=True,
    ):
        self.images = list(images)
        self.groups = list(groups)
        self.project_name = project_name
        self.name_style = name_style
        self.redirect_to = redirect_to
        self.has_thread_list = has_thread_list
        self.lost_session = lost_session
        self.images_loaded = images_loaded
        self.screenshots = 0
        self.index = 0
        self.current_url = ""
        self.title = ""
        self.visited_urls = []
        self.quit_called = False
        self.body = FakeElement()
        self.next_button = FakeElement(on_click=self._next)
        self.fullscreen_button = FakeElement()
        self.container = FakeElement()

    def _next(self):
        if self.index + 1 < len(self.images):
            self.index += 1

    def _current(self):
        return self.images[self.index] if self.images else ""

    # WebDriver surface
    def get(self, url):
        self.visited_urls.append(url)
        self.current_url = self.redirect_to or url
        self.title = f"Review | {self.project_name or ''}"

    def quit(self):
        self.quit_called = True

    def get_screenshot_as_png(self):
        self.screenshots += 1
        return PNG_BYTES

    def execute_script(self, script, *args):
        if script == _IS_CLICKABLE_JS:
            return True
        if script == viewer_module._IMAGES_LOADED_JS:
            return self.images_loaded
        if script == sidebar_module._PROJECT_NAME_JS:
            return self.project_name
        if script == sidebar_module._EXPAND_JS:
            return 0
        if script == sidebar_module._THREADS_JS:
            return self.groups if self.has_thread_list else None
        return None

    def find_element(self, by, selector):
        found = self.find_elements(by, selector)
        if not found:
            raise NoSuchElementException(selector)
        return found[0]

    def find_elements(self, by, selector):
        if self.lost_session:
            raise WebDriverException("invalid session id")
        if selector == "body":
            return [self.body]
        if selector == sidebar_module.THREAD_LIST_SELECTOR:
            return [FakeElement()] if self.has_thread_list else []
        if selector == ".right-flipper":
            return [self.next_button]
        if selector == ".fullscreen-button":
            return [self.fullscreen_button]
        if selector == ".image-container":
            return [self.container]
        name = self._current()
        if selector == ".info-bar__title" and self.name_style == "title" and name:
            return [FakeElement(text=name)]
        if selector == ".image-container img" and self.images:
            return [self._image_element(name)]
        return []

    def _image_element(self, name):
        # Each position has its own src; only the "src" style carries the
        # file name in it.
        if self.name_style == "src":
            src = f"https://cdn.example.com/files/{self.index}/{name}?v=2"
        else:
            src = f"data:image/png;base64,{self.index:04d}"
        attributes = {"src": src}
        if self.name_style == "alt" and name:
            attributes["alt"] = name
        return FakeElement(attributes=attributes)
