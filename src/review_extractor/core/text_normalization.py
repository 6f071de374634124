"""
Purpose: Normalize thread and image names and score how well they match.
Constraints: Pure helpers only; no side effects.
"""

# Imports
import re
import unicodedata
from textwrap import shorten
from typing import Optional, Sequence, Tuple

# Constants
NO_MATCH = 0
PARTIAL_MATCH = 1
EXACT_MATCH = 2

IMAGE_EXTENSIONS = (
    "png", "jpg", "jpeg", "gif", "webp", "svg", "bmp", "tif", "tiff", "heic", "pdf",
)

_EXTENSION_PATTERN = re.compile(
    r"\.(?:%s)\s*$" % "|".join(IMAGE_EXTENSIONS), re.IGNORECASE
)
_TOKEN_PATTERN = re.compile(r"[^\W_]+")


# Helpers
def preview_text(text: str, width: int = 80) -> str:
    """Return a single-line preview of text, trimmed to width."""
    if not text:
        return "(no text)"
    sanitized = " ".join(text.split())
    return shorten(sanitized, width=width, placeholder="...")


def strip_image_extension(name: str) -> str:
    return _EXTENSION_PATTERN.sub("", name or "")


def normalize_name(name: Optional[str]) -> str:
    """Reduce a thread label or image filename to its matching key.

    ``"01. Header Issue"`` and ``"header-issue.png"`` both become
    ``"header issue"``. Leading numeric tokens are index prefixes and are
    dropped as long as another token remains. The transform is idempotent.
    """
    if not name:
        return ""
    text = unicodedata.normalize("NFKC", unicodedata.normalize("NFKC", name).casefold()).strip()
    text = strip_image_extension(text)
    tokens = _TOKEN_PATTERN.findall(text)
    while len(tokens) > 1 and tokens[0].isdigit():
        tokens.pop(0)
    return " ".join(tokens)


def _contains_phrase(haystack: str, needle: str) -> bool:
    return f" {needle} " in f" {haystack} "


def score_match(thread_key: str, image_key: str) -> int:
    """Compare two normalized keys.

    Returns EXACT_MATCH for equal keys, PARTIAL_MATCH when one contains the
    other on word boundaries, NO_MATCH otherwise (including empty keys).
    """
    if not thread_key or not image_key:
        return NO_MATCH
    if thread_key == image_key:
        return EXACT_MATCH
    if _contains_phrase(image_key, thread_key) or _contains_phrase(thread_key, image_key):
        return PARTIAL_MATCH
    return NO_MATCH


def best_candidate(image_key: str, candidates: Sequence[Tuple[str, str]]) -> Optional[Tuple[int, int]]:
    """Pick the candidate ``(name, key)`` that best matches ``image_key``.

    Exact matches win over partial ones; among partial matches the longest
    key wins; remaining ties keep the earliest candidate. Returns
    ``(position, score)`` or None.
    """
    best: Optional[Tuple[int, int]] = None
    best_rank: Tuple[int, int] = (NO_MATCH, 0)
    for position, (_, key) in enumerate(candidates):
        score = score_match(key, image_key)
        if score == NO_MATCH:
            continue
        rank = (score, len(key))
        if best is None or rank > best_rank:
            best = (position, score)
            best_rank = rank
    return best
