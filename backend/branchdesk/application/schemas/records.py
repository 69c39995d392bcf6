"""Pydantic DTOs (Data Transfer Objects) for the generic record surface."""

from typing import Any

from pydantic import BaseModel, Field


class RecordResponse(BaseModel):
    """Schema returned to the client for any table's record."""

    id: str
    table: str
    fields: dict[str, Any]
    created_time: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    created_by: str | None = None
    updated_by: str | None = None

    model_config = {"from_attributes": True, "use_enum_values": True}


class DeleteResponse(BaseModel):
    id: str
    deleted: bool = True
    message: str = "Record deleted successfully"


class BulkRequest(BaseModel):
    """Body of ``POST /data/{table}/bulk``.

    ``records`` holds field maps for create, ``{"id", "data"}`` objects for
    update, and record ids for delete.
    """

    operation: str = Field(..., examples=["create"])
    records: list[Any] = Field(..., examples=[[{"product_name": "Cement 50kg"}]])
    preserve_audit: bool = Field(
        False,
        description="System-level import: keep supplied created_at / created_by",
    )


class BulkItemErrorResponse(BaseModel):
    index: int
    id: str | None = None
    message: str

    model_config = {"from_attributes": True}


class BulkResponse(BaseModel):
    """Per-item outcome of a bulk request. Partial failure is not an HTTP error."""

    results: list[dict[str, Any] | None]
    success_count: int
    total_count: int
    errors: list[BulkItemErrorResponse]

    model_config = {"from_attributes": True}
