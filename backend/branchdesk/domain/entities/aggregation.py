"""Domain entities for request-time aggregation results. Never persisted."""

from dataclasses import dataclass, field
from typing import Any

from branchdesk.domain.entities.record import Record


@dataclass
class PerEntityStat:
    """Derived statistics for one base entity (a vehicle, a sale, a day)."""

    key: str
    stats: dict[str, float | int | None] = field(default_factory=dict)
    entity: Record | None = None
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass
class AggregationResult:
    base_entities: list[Record] = field(default_factory=list)
    related_entities: dict[str, list[Record]] = field(default_factory=dict)
    computed_stats: dict[str, float | int] = field(default_factory=dict)
    ranked_breakdown: list[PerEntityStat] = field(default_factory=list)
