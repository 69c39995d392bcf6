"""Analytics endpoints: request-time aggregation across related tables."""

from fastapi import APIRouter, Depends

from branchdesk.application.schemas import AggregationResponse
from branchdesk.application.services import AggregationEngine
from branchdesk.domain.entities import CallerIdentity, Role
from branchdesk.domain.exceptions import BranchDeskError
from branchdesk.infrastructure.dependencies import get_aggregation_engine, require_roles
from branchdesk.presentation.api.errors import to_http_exception

router = APIRouter(prefix="/analytics", tags=["Analytics"])

_management = require_roles(Role.BOSS.value, Role.MANAGER.value, Role.ADMIN.value)


@router.get("/fleet", response_model=AggregationResponse)
async def fleet_statistics(
    identity: CallerIdentity = Depends(_management),
    engine: AggregationEngine = Depends(get_aggregation_engine),
) -> AggregationResponse:
    """Fleet totals plus a per-vehicle breakdown ranked by profit."""
    try:
        result = await engine.fleet_statistics(identity)
    except BranchDeskError as e:
        raise to_http_exception(e)
    return AggregationResponse.model_validate(result, from_attributes=True)


@router.get("/sales", response_model=AggregationResponse)
async def sales_with_items(
    identity: CallerIdentity = Depends(_management),
    engine: AggregationEngine = Depends(get_aggregation_engine),
) -> AggregationResponse:
    """Visible sales joined with their line items."""
    try:
        result = await engine.sales_with_items(identity)
    except BranchDeskError as e:
        raise to_http_exception(e)
    return AggregationResponse.model_validate(result, from_attributes=True)


@router.get("/branches/{branch_id}/dashboard", response_model=AggregationResponse)
async def branch_dashboard(
    branch_id: str,
    identity: CallerIdentity = Depends(_management),
    engine: AggregationEngine = Depends(get_aggregation_engine),
) -> AggregationResponse:
    """Headcount, stock alerts, revenue and a seven-day sales trend for one branch."""
    try:
        result = await engine.branch_dashboard(identity, branch_id)
    except BranchDeskError as e:
        raise to_http_exception(e)
    return AggregationResponse.model_validate(result, from_attributes=True)
