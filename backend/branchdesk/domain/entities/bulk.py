"""Domain entities for bulk operations with per-item success accounting."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from branchdesk.domain.exceptions import ValidationFailed


class BulkOperation(str, Enum):
    """Operations a bulk request may apply to every item."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"

    @classmethod
    def parse(cls, value: str) -> "BulkOperation":
        try:
            return cls(value)
        except ValueError:
            raise ValidationFailed(
                f"Invalid bulk operation '{value}'; expected one of "
                f"{', '.join(op.value for op in cls)}",
                fields=["operation"],
            ) from None


@dataclass
class BulkItemError:
    """One failed item. ``id`` is set when the item named a record id."""

    index: int
    message: str
    id: str | None = None


@dataclass
class BulkResult:
    """Outcome of a bulk run.

    ``results`` is aligned with the input: position i holds the outcome of
    item i, or ``None`` when that item failed.
    """

    results: list[dict[str, Any] | None] = field(default_factory=list)
    errors: list[BulkItemError] = field(default_factory=list)

    @property
    def total_count(self) -> int:
        return len(self.results)

    @property
    def success_count(self) -> int:
        return self.total_count - len(self.errors)
