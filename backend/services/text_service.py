"""Human-readable text extraction and field-level comparison of board items."""

from __future__ import annotations

import json
import re
from typing import Any

# Text-bearing fields, in extraction priority order.
CANDIDATE_PATHS: tuple[str, ...] = (
    "plainText",
    "text",
    "title",
    "content",
    "data.plainText",
    "data.text",
    "data.title",
    "data.content",
)

_HTML_ENTITIES = {
    "&nbsp;": " ",
    "&lt;": "<",
    "&gt;": ">",
    "&quot;": '"',
    "&#39;": "'",
    "&amp;": "&",
}
_ENTITY_RE = re.compile("|".join(re.escape(entity) for entity in _HTML_ENTITIES))
_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")

_MISSING = object()


def _lookup(item: dict[str, Any] | None, path: str) -> Any:
    """Resolve a dotted path, returning ``_MISSING`` when any segment is absent."""
    current: Any = item
    for segment in path.split("."):
        if not isinstance(current, dict) or segment not in current:
            return _MISSING
        current = current[segment]
    return current


def decode_entities(value: str) -> str:
    """Decode the small set of HTML entities boards emit in rich text."""
    return _ENTITY_RE.sub(lambda m: _HTML_ENTITIES[m.group(0)], value)


def normalize_text(value: str) -> str:
    """Strip tags, then decode entities and collapse whitespace.

    Tags are removed before decoding so escaped markup stays literal text.
    """
    text = decode_entities(_TAG_RE.sub(" ", value))
    return _WHITESPACE_RE.sub(" ", text).strip()


def extract_text(item: dict[str, Any] | None) -> str | None:
    """Return the first non-empty normalized text among the candidate fields."""
    if not isinstance(item, dict):
        return None
    for path in CANDIDATE_PATHS:
        value = _lookup(item, path)
        if not isinstance(value, str):
            continue
        text = normalize_text(value)
        if text:
            return text
    return None


def _comparable(value: Any) -> str:
    if value is _MISSING or value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True, ensure_ascii=False)


def changed_paths(before: dict[str, Any] | None, after: dict[str, Any] | None) -> list[str]:
    """List candidate paths whose values differ between two item documents.

    Missing and null values compare equal to the empty string. Only the
    candidate fields are inspected, so the result is advisory: a change in
    any other field is detected by the fingerprint but not reported here.
    """
    return [
        path
        for path in CANDIDATE_PATHS
        if _comparable(_lookup(before, path)) != _comparable(_lookup(after, path))
    ]
