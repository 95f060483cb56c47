"""
Bulk JSON import/export.

Accepted payloads:
- a top-level array of entry-like objects
- an object whose first present key among items / entries / movements / data
  holds such an array

Anything else aborts the whole import before normalization or any write.
There is no partial import.
"""

import json
from typing import Any

from gastos_pareja.models.entry import Entry
from gastos_pareja.normalization.normalizer import EntryNormalizer


IMPORT_KEYS = ("items", "entries", "movements", "data")


class ImportPayloadError(ValueError):
    """Import payload is not valid JSON or has the wrong top-level shape."""
    pass


def parse_import_payload(text: str) -> Any:
    """Parse raw file contents, raising ImportPayloadError on invalid JSON."""
    try:
        return json.loads(text)
    except (TypeError, ValueError) as e:
        raise ImportPayloadError(f"Invalid JSON: {e}") from e


def resolve_import_items(parsed: Any) -> list:
    """Locate the array of entry-like items inside a parsed payload."""
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict):
        for key in IMPORT_KEYS:
            if parsed.get(key) is None:
                continue
            items = parsed[key]
            if not isinstance(items, list):
                raise ImportPayloadError(f"'{key}' must be an array of entries")
            return items
        raise ImportPayloadError(
            "JSON object must hold an array under one of: " + ", ".join(IMPORT_KEYS)
        )
    raise ImportPayloadError("JSON must be an array or { items: [...] }")


def load_import(text: str, normalizer: EntryNormalizer) -> list[Entry]:
    """Parse, resolve and normalize an import file in one step."""
    items = resolve_import_items(parse_import_payload(text))
    return normalizer.normalize_many(items)


def dump_entries(entries: list[Entry]) -> str:
    """Export entries as a JSON array that load_import accepts back."""
    return json.dumps([e.to_wire() for e in entries], ensure_ascii=False, indent=2)
