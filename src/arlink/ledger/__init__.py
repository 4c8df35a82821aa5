"""Upload ledger: persistence, schema migration and reporting."""

from .ledger import Ledger, make_entry
from .report import export_csv, export_json, format_summary
from .schema import compute_aggregate, decode_entries, encode_record, is_legacy, needs_rewrite
from .storage import JsonFileStore, KeyValueStore, MemoryStore

__all__ = [
    "JsonFileStore",
    "KeyValueStore",
    "Ledger",
    "MemoryStore",
    "compute_aggregate",
    "decode_entries",
    "encode_record",
    "export_csv",
    "export_json",
    "format_summary",
    "is_legacy",
    "make_entry",
    "needs_rewrite",
]
