from .record_store import RecordStore, SortSpec

__all__ = [
    "RecordStore",
    "SortSpec",
]
