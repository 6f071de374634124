"""
Purpose: Scrape the comment sidebar into ordered ThreadDescriptor records.
Constraints: Read-only page access apart from expanding collapsed groups and
opening attachment previews.
"""

# Imports
import logging
import re
import time
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.common.by import By
from selenium.webdriver.common.keys import Keys

from review_extractor.core.config_models import ExtractionSettings
from review_extractor.core.errors import ExtractionError
from review_extractor.core.models import PinComment, ThreadDescriptor
from review_extractor.core.text_normalization import preview_text
from review_extractor.markup_selenium.page_helpers import click_element, is_session_lost, wait_for

# Constants
logger = logging.getLogger(__name__)

THREAD_LIST_SELECTOR = "div.thread-list"
DEFAULT_PROJECT_NAME = "Unknown Project"
ATTACHMENT_INDICATOR_SELECTOR = ".thread-list-item-attachment-count"
ATTACHMENT_THUMBNAIL_SELECTOR = "img.associated-file-content.attachment-thumbnail"

_PROJECT_NAME_JS = """
const note = document.querySelector('.note');
const heading = (note && note.querySelector('p.note__heading')) || document.querySelector('p.note__heading');
return heading ? heading.textContent.trim() : null;
"""

_EXPAND_JS = """
let expanded = 0;
const list = document.querySelector('div.thread-list');
if (list) {
  const more = list.querySelector('.expand-button, .show-all, .toggle-button, [aria-expanded="false"]');
  if (more) { more.click(); expanded++; }
  list.style.maxHeight = 'none';
  list.style.overflow = 'visible';
}
document.querySelectorAll(
  'div.thread-list-item-group-header-toggle-button-container, .thread-group-toggle, .expand-toggle'
).forEach(button => {
  const svg = button.querySelector('svg');
  const collapsed = svg && (svg.classList.contains('collapsed') || !svg.classList.contains('open'));
  if (collapsed || button.getAttribute('aria-expanded') === 'false') { button.click(); expanded++; }
});
return expanded;
"""

_THREADS_JS = """
const list = document.querySelector('div.thread-list');
if (!list) return null;
let groups = list.querySelectorAll(':scope > div.thread-list-group');
if (groups.length === 0) groups = document.querySelectorAll('div.thread-list-group');
const firstText = (root, selectors) => {
  for (const sel of selectors) {
    const el = root.querySelector(sel);
    if (el && el.textContent.trim()) return el.textContent.trim();
  }
  return '';
};
const out = [];
groups.forEach((group, groupIndex) => {
  const label = group.querySelector('span.thread-list-item-group-header-label');
  const counter = group.querySelector('span.thread-list-item-group-header-thread-counter');
  let messages = group.querySelectorAll('div[data-thread-id]');
  if (messages.length === 0) messages = group.querySelectorAll('[data-message-id], .thread-item, .comment-item');
  out.push({
    position: groupIndex,
    name: label ? label.textContent.trim() : '',
    expected: counter ? parseInt(counter.textContent.trim(), 10) || 0 : 0,
    comments: Array.from(messages).map((el, i) => ({
      id: el.getAttribute('data-thread-id') || el.getAttribute('data-message-id') || '',
      pin: firstText(el, ['.thread-label', '.pin-label', '.label-button', '.pin-number']),
      text: firstText(el, ['div.message-text p', '.message-content', '.comment-text', '.thread-content', 'p']),
      author: firstText(el, ['span.message-author', '.author-name', '.user-name', '.comment-author']),
      attachments: Array.from(el.querySelectorAll('img.attachment-thumbnail')).map(img => img.src).filter(Boolean),
    })),
  });
});
return out;
"""

_PIN_PATTERN = re.compile(r"\d+")


# Helpers
def fallback_thread_name(label: str, position: int) -> str:
    """Sidebar label, or ``Thread N`` for a group without one."""
    return (label or "").strip() or f"Thread {position + 1}"


def parse_pin_number(text: str) -> Optional[int]:
    match = _PIN_PATTERN.search(text or "")
    if not match:
        return None
    value = int(match.group(0))
    return value if value > 0 else None


def build_threads(raw_groups: Sequence[Mapping[str, Any]]) -> List[ThreadDescriptor]:
    """Turn the scraped group dicts into ThreadDescriptors, in sidebar order.

    Unnamed groups become ``Thread N``. Groups sharing a name are merged into
    the first one. Comments without an id fall back to ``<thread>-<n>``.
    """
    by_name: Dict[str, List[PinComment]] = {}
    order: List[str] = []
    for position, group in enumerate(raw_groups):
        name = fallback_thread_name(str(group.get("name") or ""), position)
        if name not in by_name:
            by_name[name] = []
            order.append(name)
        comments = by_name[name]
        raw_comments = list(group.get("comments") or [])
        for raw in raw_comments:
            text = str(raw.get("text") or "").strip()
            author = str(raw.get("author") or "").strip()
            comment_id = str(raw.get("id") or "").strip()
            if not (comment_id or text or author):
                continue
            sequence = len(comments) + 1
            pin = parse_pin_number(str(raw.get("pin") or "")) or sequence
            comments.append(PinComment(
                id=comment_id or f"{name}-{sequence}",
                index=pin,
                pin_number=pin,
                author=author,
                text=text,
                attachments=tuple(str(url) for url in raw.get("attachments") or () if url),
            ))
        expected = int(group.get("expected") or 0)
        if expected and expected != len(raw_comments):
            logger.warning(
                "Comment count mismatch for %r: expected %d, found %d", name, expected, len(raw_comments)
            )
    return [ThreadDescriptor(name=name, pin_comments=tuple(by_name[name])) for name in order]


def merge_attachments(threads: List[ThreadDescriptor], found: Mapping[Tuple[str, int], Sequence[str]]) -> int:
    """Add attachment URLs keyed by ``(thread name, pin number)``; returns comments updated."""
    updated = 0
    for thread in threads:
        comments = []
        for comment in thread.pin_comments:
            extra = [url for url in found.get((thread.name, comment.pin_number), ()) if url not in comment.attachments]
            if extra:
                comment = PinComment(
                    id=comment.id,
                    index=comment.index,
                    pin_number=comment.pin_number,
                    author=comment.author,
                    text=comment.text,
                    attachments=comment.attachments + tuple(extra),
                )
                updated += 1
            comments.append(comment)
        thread.pin_comments = tuple(comments)
    return updated


# Public API
class SidebarExtractor:
    """Reads project name and threads from the review page sidebar."""

    def __init__(self, driver, settings: Optional[ExtractionSettings] = None):
        self.driver = driver
        self.settings = settings or ExtractionSettings()

    def project_name(self) -> str:
        try:
            name = self.driver.execute_script(_PROJECT_NAME_JS)
        except WebDriverException as exc:
            if is_session_lost(exc):
                raise
            logger.warning("Project name lookup failed: %s", exc)
            name = None
        return (name or "").strip() or DEFAULT_PROJECT_NAME

    def expand_groups(self) -> int:
        expanded = int(self.driver.execute_script(_EXPAND_JS) or 0)
        if expanded and self.settings.expand_delay > 0:
            time.sleep(self.settings.expand_delay)
        logger.info("Expanded %d thread list controls", expanded)
        return expanded

    def extract(self) -> Tuple[str, List[ThreadDescriptor]]:
        try:
            wait_for(self.driver, THREAD_LIST_SELECTOR, self.settings.thread_list_timeout)
        except TimeoutException as exc:
            raise ExtractionError(f"thread list {THREAD_LIST_SELECTOR!r} did not load") from exc

        project = self.project_name()
        self.expand_groups()
        raw_groups = self.driver.execute_script(_THREADS_JS)
        if raw_groups is None:
            raise ExtractionError("thread list disappeared during extraction")

        threads = build_threads(raw_groups)
        if self.settings.collect_attachments:
            merge_attachments(threads, self.collect_attachments())

        total = sum(len(t.pin_comments) for t in threads)
        logger.info("Extracted %d threads with %d comments from %r", len(threads), total, project)
        for thread in threads:
            logger.debug(
                "Thread %r: %d comments, first: %s",
                thread.name,
                len(thread.pin_comments),
                preview_text(thread.pin_comments[0].text) if thread.pin_comments else "-",
            )
        return project, threads

    def collect_attachments(self) -> Dict[Tuple[str, int], List[str]]:
        """Open each comment's attachment preview and read the thumbnail URLs."""
        found: Dict[Tuple[str, int], List[str]] = {}
        groups = self.driver.find_elements(By.CSS_SELECTOR, f"{THREAD_LIST_SELECTOR} div.thread-list-group")
        for position, group in enumerate(groups):
            labels = group.find_elements(By.CSS_SELECTOR, "span.thread-list-item-group-header-label")
            thread_name = fallback_thread_name(labels[0].text if labels else "", position)
            for message in group.find_elements(By.CSS_SELECTOR, "div[data-thread-id]"):
                indicators = message.find_elements(By.CSS_SELECTOR, ATTACHMENT_INDICATOR_SELECTOR)
                if not indicators:
                    continue
                pins = message.find_elements(By.CSS_SELECTOR, ".thread-label")
                pin = parse_pin_number(pins[0].text if pins else "")
                if pin is None:
                    continue
                try:
                    click_element(self.driver, indicators[0])
                    if self.settings.attachment_delay > 0:
                        time.sleep(self.settings.attachment_delay)
                    urls = [
                        img.get_attribute("src")
                        for img in self.driver.find_elements(By.CSS_SELECTOR, ATTACHMENT_THUMBNAIL_SELECTOR)
                        if img.get_attribute("src")
                    ]
                    self.driver.find_element(By.TAG_NAME, "body").send_keys(Keys.ESCAPE)
                except WebDriverException as exc:
                    if is_session_lost(exc):
                        raise
                    logger.warning("Attachments for %r pin %d could not be read: %s", thread_name, pin, exc)
                    continue
                if urls:
                    found[(thread_name, pin)] = urls
        logger.info("Collected attachments for %d comments", len(found))
        return found
