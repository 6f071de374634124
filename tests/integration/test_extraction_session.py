import json
from unittest import mock

import pytest

from fakes import FakeReviewDriver, extraction_settings, group, viewer_settings
from review_extractor.cli import main
from review_extractor.core.config import ConfigManager
from review_extractor.core.config_models import MatcherSettings, SeleniumSettings, StorageSettings
from review_extractor.core.models import OP_INCOMPLETE_MATCH, OP_NAVIGATION_ERROR
from review_extractor.core.storage.payload_store import load_payload
from review_extractor.markup_selenium.extraction import ExtractionSession
from review_extractor.markup_selenium.viewer import SeleniumViewerDriver

URL = "https://review.example.com/projects/landing-page"


@pytest.fixture
def config(tmp_path):
    manager = ConfigManager(tmp_path / "config")
    manager.viewer_settings = viewer_settings()
    manager.extraction_settings = extraction_settings()
    manager.matcher_settings = MatcherSettings(safety_multiplier=3)
    manager.storage_settings = StorageSettings(
        output_dir=str(tmp_path / "screenshots"),
        payload_dir=str(tmp_path / "payloads"),
        error_log_path=str(tmp_path / "errors.jsonl"),
        session_summary_path=str(tmp_path / "sessions.csv"),
        run_log_dir=str(tmp_path / "runs"),
    )
    return manager


def run_session(config, driver):
    with ExtractionSession(URL, config_manager=config, driver_factory=lambda: driver) as session:
        result = session.run()
    return session, result


def test_dry_run_skips_browser(config):
    created = []
    session = ExtractionSession(URL, config_manager=config, dry_run=True, driver_factory=lambda: created.append(1))

    result = session.run()
    session.cleanup()

    assert result.success
    assert result.dry_run
    assert created == []
    assert session.driver is None


def test_full_extraction_matches_and_persists(config, tmp_path):
    driver = FakeReviewDriver(
        images=["header-issue.png", "irrelevant-1.png", "footer_bug.png"],
        groups=[group("Header Issue", "Logo is blurry"), group("Footer Bug", "Wrong year")],
    )

    session, result = run_session(config, driver)

    assert result.success
    assert not result.incomplete
    assert result.project_name == "Landing Page Review"
    header, footer = result.threads
    assert header.image_index == 0
    assert footer.image_index == 2
    assert header.image_filename == "01_header_issue.png"
    assert footer.image_filename == "03_footer_bug.png"
    assert (session.output_dir / "01_header_issue.png").exists()

    payload = load_payload(tmp_path / "payloads", URL)
    assert payload["projectName"] == "Landing Page Review"
    assert payload["totalThreads"] == 2
    assert payload["totalScreenshots"] == 2
    assert payload["match"]["status"] == "complete"
    assert payload["threads"][1]["imageIndex"] == 2

    assert session.error_log.load() == []
    assert (tmp_path / "sessions.csv").exists()
    assert driver.quit_called


def test_incomplete_extraction_logs_events(config):
    driver = FakeReviewDriver(
        images=["a.png", "b.png"],
        groups=[group("A", "x"), group("B", "y"), group("C", "z")],
    )

    session, result = run_session(config, driver)

    assert result.success
    assert result.incomplete
    assert result.match.unmatched_names == ["C"]
    assert result.threads[2].image_index is None
    operations = [r["error_details"]["operation"] for r in session.error_log.by_session(session.session_id)]
    assert operations == [OP_NAVIGATION_ERROR, OP_INCOMPLETE_MATCH]


def test_auth_redirect_fails_extraction(config):
    driver = FakeReviewDriver(groups=[group("A", "x")], redirect_to="https://review.example.com/login")

    session, result = run_session(config, driver)

    assert not result.success
    assert "authentication" in result.error
    records = session.error_log.load()
    assert len(records) == 1
    assert records[0]["error_details"]["error_type"] == "ExtractionError"


def test_empty_sidebar_fails_extraction(config):
    driver = FakeReviewDriver(images=["a.png"], groups=[])

    _, result = run_session(config, driver)

    assert not result.success
    assert "No threads" in result.error


def test_run_log_has_start_and_end(config, tmp_path):
    driver = FakeReviewDriver(images=["a.png"], groups=[group("A", "x")])

    session, _ = run_session(config, driver)

    lines = session.run_log_path.read_text(encoding="utf-8").splitlines()
    events = [json.loads(line)["event"] for line in lines]
    assert events == ["start", "end"]
    assert json.loads(lines[-1])["match"]["status"] == "complete"


def test_cli_dry_run(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)

    code = main(["--config-dir", str(tmp_path / "config"), "extract", URL, "--dry-run", "--safety-multiplier", "4"])

    assert code == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["matcher"]["safety_multiplier"] == 4


def test_debug_mode_saves_diagnostic_screenshots(config):
    config.extraction_settings = extraction_settings(debug_mode=True)
    driver = FakeReviewDriver(images=["a.png"], groups=[group("A", "x"), group("B", "y")])

    session, result = run_session(config, driver)

    assert result.incomplete
    assert (session.output_dir / "image_1_error.png").exists()


def test_debug_mode_saves_error_state_on_failure(config):
    config.extraction_settings = extraction_settings(debug_mode=True)
    driver = FakeReviewDriver(images=["a.png"], groups=[])

    session, result = run_session(config, driver)

    assert not result.success
    assert (session.output_dir / "error_state.png").exists()


def test_no_diagnostics_without_debug_mode(config):
    driver = FakeReviewDriver(images=["a.png"], groups=[group("A", "x"), group("B", "y")])

    session, _ = run_session(config, driver)

    assert not (session.output_dir / "image_1_error.png").exists()


def test_viewer_waits_with_configured_wait_time(config):
    config.selenium_settings = SeleniumSettings(wait_time=7)
    driver = FakeReviewDriver(images=["a.png"], groups=[group("A", "x")])

    with mock.patch.object(SeleniumViewerDriver, "open", return_value=True) as viewer_open:
        _, result = run_session(config, driver)

    assert result.success
    viewer_open.assert_called_once_with(container_timeout=7)
