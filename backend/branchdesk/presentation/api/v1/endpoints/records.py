"""Generic record CRUD and bulk endpoints for every allow-listed table."""

import json
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from branchdesk.application.interfaces import SortSpec
from branchdesk.application.schemas import (
    BulkRequest,
    BulkResponse,
    DeleteResponse,
    RecordResponse,
)
from branchdesk.application.services import BulkOperationExecutor, RecordService
from branchdesk.domain.entities import CallerIdentity, Role
from branchdesk.domain.exceptions import BranchDeskError, ValidationFailed
from branchdesk.infrastructure.dependencies import (
    get_bulk_executor,
    get_caller_identity,
    get_record_service,
    require_roles,
)
from branchdesk.presentation.api.errors import to_http_exception

router = APIRouter(prefix="/data", tags=["Records"])

DEFAULT_SORT: SortSpec = [{"field": "created_at", "direction": "desc"}]


def _parse_sort(raw: str | None) -> SortSpec:
    """Parse the ``sort`` query parameter: a JSON list of {field, direction}."""
    if not raw:
        return DEFAULT_SORT
    try:
        parsed = json.loads(raw)
    except ValueError:
        raise ValidationFailed("sort must be a JSON list", fields=["sort"]) from None

    if not isinstance(parsed, list):
        raise ValidationFailed("sort must be a JSON list", fields=["sort"])
    spec: SortSpec = []
    for item in parsed:
        if not isinstance(item, dict) or not isinstance(item.get("field"), str):
            raise ValidationFailed("each sort entry needs a 'field'", fields=["sort"])
        direction = str(item.get("direction", "asc")).lower()
        if direction not in ("asc", "desc"):
            raise ValidationFailed("sort direction must be 'asc' or 'desc'", fields=["sort"])
        spec.append({"field": item["field"], "direction": direction})
    return spec


@router.get("/{table}", response_model=list[RecordResponse])
async def list_records(
    table: str,
    filter: str | None = Query(None, description="Store filter formula"),
    sort: str | None = Query(None, description='JSON list, e.g. [{"field":"sale_date","direction":"desc"}]'),
    limit: int | None = Query(None, ge=1),
    identity: CallerIdentity = Depends(get_caller_identity),
    service: RecordService = Depends(get_record_service),
) -> list[RecordResponse]:
    """List records of a table, restricted to the caller's branch where it applies."""
    try:
        records = await service.list_records(
            identity,
            table,
            filter_formula=filter,
            sort=_parse_sort(sort),
            limit=limit,
        )
    except BranchDeskError as e:
        raise to_http_exception(e)
    return [RecordResponse.model_validate(r, from_attributes=True) for r in records]


@router.post("/{table}", response_model=RecordResponse, status_code=status.HTTP_201_CREATED)
async def create_record(
    table: str,
    data: dict[str, Any] = Body(...),
    identity: CallerIdentity = Depends(get_caller_identity),
    service: RecordService = Depends(get_record_service),
) -> RecordResponse:
    """Create a record; audit fields and branch are stamped server-side."""
    try:
        record = await service.create_record(identity, table, data)
    except BranchDeskError as e:
        raise to_http_exception(e)
    return RecordResponse.model_validate(record, from_attributes=True)


@router.post("/{table}/bulk", response_model=BulkResponse)
async def bulk_operation(
    table: str,
    request: BulkRequest,
    identity: CallerIdentity = Depends(require_roles(Role.BOSS.value, Role.ADMIN.value)),
    executor: BulkOperationExecutor = Depends(get_bulk_executor),
) -> BulkResponse:
    """Apply one operation to many records; inspect ``errors`` for partial failure."""
    try:
        result = await executor.run(
            identity,
            table,
            request.operation,
            request.records,
            preserve_audit=request.preserve_audit,
        )
    except BranchDeskError as e:
        raise to_http_exception(e)
    return BulkResponse.model_validate(result, from_attributes=True)


@router.get("/{table}/{record_id}", response_model=RecordResponse)
async def get_record(
    table: str,
    record_id: str,
    identity: CallerIdentity = Depends(get_caller_identity),
    service: RecordService = Depends(get_record_service),
) -> RecordResponse:
    """Retrieve a single record by ID."""
    try:
        record = await service.get_record(identity, table, record_id)
    except BranchDeskError as e:
        raise to_http_exception(e)
    return RecordResponse.model_validate(record, from_attributes=True)


@router.put("/{table}/{record_id}", response_model=RecordResponse)
async def update_record(
    table: str,
    record_id: str,
    data: dict[str, Any] = Body(...),
    identity: CallerIdentity = Depends(get_caller_identity),
    service: RecordService = Depends(get_record_service),
) -> RecordResponse:
    """Partially update a record."""
    try:
        record = await service.update_record(identity, table, record_id, data)
    except BranchDeskError as e:
        raise to_http_exception(e)
    return RecordResponse.model_validate(record, from_attributes=True)


@router.delete("/{table}/{record_id}", response_model=DeleteResponse)
async def delete_record(
    table: str,
    record_id: str,
    identity: CallerIdentity = Depends(get_caller_identity),
    service: RecordService = Depends(get_record_service),
) -> DeleteResponse:
    """Delete a record by ID."""
    try:
        confirmation = await service.delete_record(identity, table, record_id)
    except BranchDeskError as e:
        raise to_http_exception(e)
    if not confirmation.get("deleted", True):
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Store did not confirm deletion")
    return DeleteResponse(id=confirmation.get("id", record_id))
