from .records import (
    BulkItemErrorResponse,
    BulkRequest,
    BulkResponse,
    DeleteResponse,
    RecordResponse,
)
from .analytics import AggregationResponse, PerEntityStatResponse

__all__ = [
    "BulkItemErrorResponse",
    "BulkRequest",
    "BulkResponse",
    "DeleteResponse",
    "RecordResponse",
    "AggregationResponse",
    "PerEntityStatResponse",
]
