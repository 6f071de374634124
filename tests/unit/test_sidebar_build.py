import pytest

from fakes import FakeElement, FakeReviewDriver, extraction_settings, group
from review_extractor.core.errors import ExtractionError
from review_extractor.core.models import PinComment, ThreadDescriptor
from review_extractor.markup_selenium.sidebar import (
    ATTACHMENT_INDICATOR_SELECTOR,
    ATTACHMENT_THUMBNAIL_SELECTOR,
    DEFAULT_PROJECT_NAME,
    SidebarExtractor,
    build_threads,
    fallback_thread_name,
    merge_attachments,
    parse_pin_number,
)


def test_parse_pin_number():
    assert parse_pin_number("#12") == 12
    assert parse_pin_number("Pin 3") == 3
    assert parse_pin_number("0") is None
    assert parse_pin_number("") is None


def test_build_threads_keeps_sidebar_order():
    threads = build_threads([group("Header Issue", "Logo is blurry"), group("Footer Bug", "Wrong year", "Links")])

    assert [t.name for t in threads] == ["Header Issue", "Footer Bug"]
    assert [c.pin_number for c in threads[1].pin_comments] == [1, 2]
    assert threads[1].pin_comments[0].text == "Wrong year"


def test_unnamed_group_gets_positional_name():
    threads = build_threads([group("Header", "a"), group("", "b")])

    assert threads[1].name == "Thread 2"


def test_groups_with_same_name_are_merged():
    threads = build_threads([group("Header", "a"), group("Header", "b")])

    assert len(threads) == 1
    assert [c.text for c in threads[0].pin_comments] == ["a", "b"]


def test_comment_id_and_pin_fallbacks():
    raw = [{"name": "Nav", "comments": [
        {"id": "", "pin": "", "text": "first"},
        {"text": "", "author": "", "id": ""},
        {"id": "", "pin": "x", "text": "second"},
    ]}]

    comments = build_threads(raw)[0].pin_comments

    assert [c.id for c in comments] == ["Nav-1", "Nav-2"]
    assert [c.pin_number for c in comments] == [1, 2]


def test_merge_attachments_adds_new_urls_only():
    comment = PinComment(id="c1", index=1, pin_number=1, attachments=("https://x/a.png",))
    threads = [ThreadDescriptor(name="Header", pin_comments=(comment,))]

    updated = merge_attachments(threads, {("Header", 1): ["https://x/a.png", "https://x/b.png"]})

    assert updated == 1
    assert threads[0].pin_comments[0].attachments == ("https://x/a.png", "https://x/b.png")
    assert threads[0].has_attachments


def test_extract_reads_project_and_threads():
    driver = FakeReviewDriver(groups=[group("Header Issue", "Logo"), group("Footer Bug", "Year")])

    project, threads = SidebarExtractor(driver, extraction_settings()).extract()

    assert project == "Landing Page Review"
    assert [t.name for t in threads] == ["Header Issue", "Footer Bug"]


def test_missing_project_name_uses_default():
    driver = FakeReviewDriver(groups=[group("A", "x")], project_name=None)

    assert SidebarExtractor(driver, extraction_settings()).project_name() == DEFAULT_PROJECT_NAME


def test_missing_thread_list_raises():
    driver = FakeReviewDriver(has_thread_list=False)

    with pytest.raises(ExtractionError):
        SidebarExtractor(driver, extraction_settings()).extract()


def test_thread_to_dict_shape():
    thread = build_threads([group("Header", "Logo")])[0]
    thread.image_index = 0
    thread.image_filename = "01_header.png"

    payload = thread.to_dict()

    assert payload["threadName"] == "Header"
    assert payload["imageIndex"] == 0
    assert payload["imageFilename"] == "01_header.png"
    assert payload["imagePath"] == ""
    assert payload["comments"][0]["attachments"] == []


def test_attachments_of_unnamed_group_reach_their_thread():
    thumbnails = [FakeElement(attributes={"src": "https://cdn.example.com/att/1.png"})]

    class AttachmentDriver(FakeReviewDriver):
        def find_elements(self, by, selector):
            if selector == ATTACHMENT_THUMBNAIL_SELECTOR:
                return thumbnails
            if selector.endswith("div.thread-list-group"):
                return group_elements
            return super().find_elements(by, selector)

    message = FakeElement(children={
        ATTACHMENT_INDICATOR_SELECTOR: [FakeElement(text="1")],
        ".thread-label": [FakeElement(text="1")],
    })
    group_elements = [
        FakeElement(children={"span.thread-list-item-group-header-label": [FakeElement(text="Header")]}),
        FakeElement(children={"div[data-thread-id]": [message]}),
    ]
    driver = AttachmentDriver(groups=[group("Header", "a"), group("", "b")])

    project, threads = SidebarExtractor(driver, extraction_settings(collect_attachments=True)).extract()

    assert [t.name for t in threads] == ["Header", "Thread 2"]
    assert threads[1].pin_comments[0].attachments == ("https://cdn.example.com/att/1.png",)
    assert not threads[0].has_attachments


def test_fallback_thread_name():
    assert fallback_thread_name("  Nav  ", 0) == "Nav"
    assert fallback_thread_name("", 4) == "Thread 5"
