"""Pydantic DTOs for aggregation results."""

from typing import Any

from pydantic import BaseModel

from branchdesk.application.schemas.records import RecordResponse


class PerEntityStatResponse(BaseModel):
    key: str
    stats: dict[str, int | float | None]
    attributes: dict[str, Any] = {}
    entity: RecordResponse | None = None

    model_config = {"from_attributes": True}


class AggregationResponse(BaseModel):
    """Derived, never-persisted statistics joined across several tables."""

    base_entities: list[RecordResponse]
    related_entities: dict[str, list[RecordResponse]]
    computed_stats: dict[str, int | float]
    ranked_breakdown: list[PerEntityStatResponse]

    model_config = {"from_attributes": True}
