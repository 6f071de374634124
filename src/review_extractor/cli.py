#!/usr/bin/env python3
"""
Unified CLI entrypoint with subcommands.
"""

import argparse
import json
import sys
from typing import List, Optional

from review_extractor.core.config import ConfigManager
from review_extractor.core.config_models import MatcherSettings, SeleniumSettings, StorageSettings
from review_extractor.markup_selenium.extraction import ExtractionSession


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="review-extractor", description="Design review thread extractor")
    parser.add_argument("--config-dir", help="Directory holding settings.json / credentials.env")
    sub = parser.add_subparsers(dest="command", required=True)

    extract = sub.add_parser("extract", help="Extract threads and match viewer screenshots")
    extract.add_argument("url")
    extract.add_argument("--output-dir", help="Where screenshots are written")
    extract.add_argument("--headed", action="store_true", help="Show the browser window")
    extract.add_argument("--safety-multiplier", type=int, help="Max images inspected per thread")
    extract.add_argument("--no-screenshots", action="store_true", help="Match without capturing images")
    extract.add_argument("--dry-run", action="store_true", help="Validate config without a browser")
    extract.add_argument("--strict", action="store_true", help="Exit 2 when some threads stay unmatched")

    threads = sub.add_parser("threads", help="Print sidebar threads as JSON")
    threads.add_argument("url")
    threads.add_argument("--headed", action="store_true", help="Show the browser window")
    return parser


def _apply_overrides(config: ConfigManager, args: argparse.Namespace) -> None:
    if getattr(args, "headed", False):
        config.selenium_settings = SeleniumSettings(
            **{**config.selenium_settings.model_dump(), "headless": False}
        )
    if getattr(args, "output_dir", None):
        config.storage_settings = StorageSettings(
            **{**config.storage_settings.model_dump(), "output_dir": args.output_dir}
        )
    matcher = config.matcher_settings.model_dump()
    if getattr(args, "safety_multiplier", None):
        matcher["safety_multiplier"] = args.safety_multiplier
    if getattr(args, "no_screenshots", False):
        matcher["capture_screenshots"] = False
    config.matcher_settings = MatcherSettings(**matcher)


def _run_extract(config: ConfigManager, args: argparse.Namespace) -> int:
    with ExtractionSession(args.url, config_manager=config, dry_run=args.dry_run) as session:
        result = session.run()

    if result.dry_run:
        print(json.dumps(config.summary(), indent=2, default=str))
        return 0
    if not result.success:
        print(f"FAILED: {result.error}", file=sys.stderr)
        return 1

    match = result.match
    print(f"Project: {result.project_name}")
    print(f"Threads: {len(result.threads)}  matched: {match.matched_count}  status: {match.status}")
    for thread in result.threads:
        image = thread.image_filename or "(no image)"
        print(f"  - {thread.name} ({len(thread.pin_comments)} comments) -> {image}")
    if match.unmatched_names:
        print(f"Unmatched: {', '.join(match.unmatched_names)}")
    print(f"Payload: {result.payload_path}")
    if args.strict and result.incomplete:
        return 2
    return 0


def _run_threads(config: ConfigManager, args: argparse.Namespace) -> int:
    try:
        with ExtractionSession(args.url, config_manager=config) as session:
            project_name, threads = session.extract_threads()
    except Exception as exc:
        print(f"FAILED: {type(exc).__name__}: {exc}", file=sys.stderr)
        return 1
    print(json.dumps(
        {"projectName": project_name, "threads": [t.to_dict() for t in threads]},
        indent=2,
    ))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    config = ConfigManager(args.config_dir).load_all()
    _apply_overrides(config, args)

    if args.command == "extract":
        return _run_extract(config, args)
    if args.command == "threads":
        return _run_threads(config, args)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
