"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from branchdesk.config import get_settings
from branchdesk.application.services import AuditTrail
from branchdesk.infrastructure.airtable import AirtableRecordStore
from branchdesk.infrastructure.logging.log_config import setup_logging
from branchdesk.presentation.api.response_hooks import (
    ResponseHookRegistry,
    SecurityMonitor,
    install_response_hooks,
)
from branchdesk.presentation.api.router import router as api_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: configure logging and own the pooled HTTP client."""
    settings = get_settings()
    setup_logging()

    if not (settings.airtable_api_key.strip() and settings.airtable_base_id.strip()):
        logger.warning(
            "AIRTABLE_API_KEY / AIRTABLE_BASE_ID are not configured; record store calls will fail."
        )

    app.state.http_client = httpx.AsyncClient(timeout=settings.airtable_timeout_seconds)
    logger.info("BranchDesk %s started (%s)", settings.app_version, settings.app_env)

    yield

    # Shutdown
    await app.state.http_client.aclose()


def _audit_trail_for(request: Request) -> AuditTrail:
    """Build an AuditTrail bound to the app's pooled client."""
    settings = get_settings()
    store = AirtableRecordStore(
        api_key=settings.airtable_api_key,
        base_id=settings.airtable_base_id,
        base_url=settings.airtable_base_url,
        timeout=settings.airtable_timeout_seconds,
        http_client=getattr(request.app.state, "http_client", None),
    )
    return AuditTrail(store, enabled=settings.audit_trail_enabled)


def default_response_hooks() -> ResponseHookRegistry:
    registry = ResponseHookRegistry()
    registry.register(SecurityMonitor(_audit_trail_for))
    return registry


def create_app(response_hooks: ResponseHookRegistry | None = None) -> FastAPI:
    """Factory function that builds and configures the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_title,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    install_response_hooks(
        app, response_hooks if response_hooks is not None else default_response_hooks()
    )

    # Mount API routes
    app.include_router(api_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "branchdesk.main:app",
        host="0.0.0.0",
        port=8020,
        reload=True,
    )
