"""Entry normalization and bulk import package."""

from gastos_pareja.normalization.importer import (
    IMPORT_KEYS,
    ImportPayloadError,
    dump_entries,
    load_import,
    parse_import_payload,
    resolve_import_items,
)
from gastos_pareja.normalization.normalizer import EntryNormalizer, normalize_entry

__all__ = [
    "IMPORT_KEYS",
    "EntryNormalizer",
    "ImportPayloadError",
    "dump_entries",
    "load_import",
    "normalize_entry",
    "parse_import_payload",
    "resolve_import_items",
]
