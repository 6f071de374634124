"""
Purpose: Write and read extraction payloads as JSON files keyed by review URL.
Constraints: Storage only; no browser or matching logic.
"""

from __future__ import annotations

import json
from hashlib import sha256
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlparse


PAYLOAD_DEFAULT_DIR = "data/payloads"


def payload_key(url: str) -> str:
    """Stable file stem for a review URL (last path segment + short hash)."""
    trimmed = (url or "").strip()
    if not trimmed:
        return ""
    segment = urlparse(trimmed).path.rstrip("/").rsplit("/", 1)[-1] or "review"
    digest = sha256(trimmed.encode("utf-8")).hexdigest()[:10]
    return f"{segment}_{digest}"


def payload_path(directory: Path, url: str) -> Path:
    return Path(directory) / f"{payload_key(url)}.json"


def save_payload(directory: Path, payload: Dict[str, Any]) -> Path:
    """Write the payload for ``payload['url']``; a re-extraction replaces it."""
    url = str(payload.get("url") or "")
    if not url:
        raise ValueError("payload has no url")
    path = payload_path(directory, url)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".json.tmp")
    tmp.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
    tmp.replace(path)
    return path


def load_payload(directory: Path, url: str) -> Optional[Dict[str, Any]]:
    path = payload_path(directory, url)
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return None
    return data if isinstance(data, dict) else None
