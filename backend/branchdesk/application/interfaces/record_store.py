"""Abstract repository interface (port) for the remote record store."""

from abc import ABC, abstractmethod
from typing import Any

from branchdesk.domain.entities import Record, TableName

# Ordered sort keys: [{"field": "created_at", "direction": "desc"}, ...]
SortSpec = list[dict[str, str]]


class RecordStore(ABC):
    """Port for the backing key-table store: implemented in the infrastructure layer.

    ``filter_formula`` is passed through opaquely in the store's own predicate
    language. Implementations raise BackendUnavailable / BackendRejected with
    the operation and table attached, never retry, and never cache.
    """

    @abstractmethod
    async def create(self, table: TableName, fields: dict[str, Any]) -> Record:
        """Create a record and return it with its store-assigned id."""
        ...

    @abstractmethod
    async def find(
        self,
        table: TableName,
        filter_formula: str | None = None,
        sort: SortSpec | None = None,
    ) -> list[Record]:
        """Return every record matching the formula, in the requested order."""
        ...

    @abstractmethod
    async def update(self, table: TableName, record_id: str, fields: dict[str, Any]) -> Record:
        """Partially update a record; keys not in ``fields`` keep their values."""
        ...

    @abstractmethod
    async def delete(self, table: TableName, record_id: str) -> dict[str, Any]:
        """Delete a record. Returns ``{"id": ..., "deleted": True}``."""
        ...

    @abstractmethod
    async def find_by_id(self, table: TableName, record_id: str) -> Record:
        """Fetch one record. Raises RecordNotFound when it does not exist."""
        ...
