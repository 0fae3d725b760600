"""Record-store contract and its Supabase implementation."""
from typing import Optional

from .record_store import RecordStore
from .supabase_store import SupabaseRecordStore

_record_store: Optional[RecordStore] = None


def get_record_store() -> RecordStore:
    """Process-wide record store (Supabase unless overridden)."""
    global _record_store
    if _record_store is None:
        _record_store = SupabaseRecordStore()
    return _record_store


def set_record_store(store: Optional[RecordStore]) -> None:
    """Swap the process-wide store; None restores the Supabase default on next use."""
    global _record_store
    _record_store = store


__all__ = ["RecordStore", "SupabaseRecordStore", "get_record_store", "set_record_store"]
