"""FastAPI dependency injection: wires infrastructure to application layer."""

from collections.abc import AsyncGenerator, Callable

import httpx
from fastapi import Depends, Header, HTTPException, Request, status

from branchdesk.config import get_settings
from branchdesk.application.interfaces import RecordStore
from branchdesk.application.services import (
    AggregationEngine,
    AuditTrail,
    BulkOperationExecutor,
    RecordService,
)
from branchdesk.domain.entities import CallerIdentity
from branchdesk.infrastructure.airtable import AirtableRecordStore


def get_http_client(request: Request) -> httpx.AsyncClient | None:
    """The pooled client opened in the app lifespan, if the lifespan ran."""
    return getattr(request.app.state, "http_client", None)


async def get_record_store(
    http_client: httpx.AsyncClient | None = Depends(get_http_client),
) -> AsyncGenerator[RecordStore, None]:
    """Provides the Airtable-backed record store."""
    settings = get_settings()
    yield AirtableRecordStore(
        api_key=settings.airtable_api_key,
        base_id=settings.airtable_base_id,
        base_url=settings.airtable_base_url,
        timeout=settings.airtable_timeout_seconds,
        http_client=http_client,
    )


async def get_audit_trail(
    store: RecordStore = Depends(get_record_store),
) -> AsyncGenerator[AuditTrail, None]:
    settings = get_settings()
    yield AuditTrail(store, enabled=settings.audit_trail_enabled)


async def get_record_service(
    store: RecordStore = Depends(get_record_store),
    audit_trail: AuditTrail = Depends(get_audit_trail),
) -> AsyncGenerator[RecordService, None]:
    """Provides a RecordService with its store and audit trail wired up."""
    yield RecordService(store, audit_trail=audit_trail)


async def get_bulk_executor(
    store: RecordStore = Depends(get_record_store),
    audit_trail: AuditTrail = Depends(get_audit_trail),
) -> AsyncGenerator[BulkOperationExecutor, None]:
    settings = get_settings()
    yield BulkOperationExecutor(
        store,
        audit_trail=audit_trail,
        concurrency=settings.bulk_concurrency,
    )


async def get_aggregation_engine(
    store: RecordStore = Depends(get_record_store),
) -> AsyncGenerator[AggregationEngine, None]:
    yield AggregationEngine(store)


# ── Caller identity ──────────────────────────────────────────────────


async def get_caller_identity(
    x_user_id: str | None = Header(None),
    x_user_role: str | None = Header(None),
    x_branch_id: str | None = Header(None),
) -> CallerIdentity:
    """Identity forwarded by the upstream authentication layer, trusted as-is."""
    if not x_user_id or not x_user_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing caller identity",
        )
    return CallerIdentity(
        user_id=x_user_id,
        role=x_user_role.strip().lower(),
        branch_id=x_branch_id or None,
    )


def require_roles(*roles: str) -> Callable[..., CallerIdentity]:
    """Route-level role gate: only the listed roles get past it."""
    allowed = frozenset(roles)

    async def dependency(
        identity: CallerIdentity = Depends(get_caller_identity),
    ) -> CallerIdentity:
        if identity.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{identity.role}' is not permitted here",
            )
        return identity

    return dependency
