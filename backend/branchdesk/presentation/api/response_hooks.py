"""Post-response hooks: observers the request pipeline calls after every handler.

Hooks receive the request, the final status code and, for error responses,
the response body. They are invoked explicitly by one middleware; nothing
wraps or patches the response-sending primitives.
"""

import json
import logging
from collections.abc import Awaitable, Callable

from fastapi import FastAPI, Request
from starlette.responses import Response

from branchdesk.application.services import AuditTrail
from branchdesk.domain.entities import AuditEntry

logger = logging.getLogger(__name__)

ResponseHook = Callable[[Request, int, bytes | None], Awaitable[None]]


class ResponseHookRegistry:
    """Ordered set of post-response hooks."""

    def __init__(self) -> None:
        self._hooks: list[ResponseHook] = []

    def register(self, hook: ResponseHook) -> ResponseHook:
        self._hooks.append(hook)
        return hook

    def __len__(self) -> int:
        return len(self._hooks)

    async def dispatch(self, request: Request, status_code: int, body: bytes | None) -> None:
        for hook in self._hooks:
            try:
                await hook(request, status_code, body)
            except Exception:
                logger.exception("Response hook %r failed", hook)


def install_response_hooks(app: FastAPI, registry: ResponseHookRegistry) -> None:
    """Attach the middleware that feeds every response to ``registry``."""
    app.state.response_hooks = registry

    @app.middleware("http")
    async def run_response_hooks(request: Request, call_next):
        response = await call_next(request)
        if not len(registry):
            return response

        body: bytes | None = None
        if response.status_code >= 400:
            # Error bodies are small JSON documents; buffer and re-emit them
            body = b"".join([chunk async for chunk in response.body_iterator])
            response = Response(
                content=body,
                status_code=response.status_code,
                headers=dict(response.headers),
                media_type=response.media_type,
            )

        await registry.dispatch(request, response.status_code, body)
        return response


class SecurityMonitor:
    """Records rejected requests (401/403) as UNAUTHORIZED_ACCESS audit entries."""

    WATCHED_STATUSES = frozenset({401, 403})

    def __init__(self, trail_factory: Callable[[Request], AuditTrail]):
        self._trail_factory = trail_factory

    async def __call__(self, request: Request, status_code: int, body: bytes | None) -> None:
        if status_code not in self.WATCHED_STATUSES:
            return

        details: dict = {"status_code": status_code}
        if body:
            try:
                details["detail"] = json.loads(body).get("detail")
            except (ValueError, AttributeError):
                pass
        if request.client is not None:
            details["ip_address"] = request.client.host
        user_agent = request.headers.get("user-agent")
        if user_agent:
            details["user_agent"] = user_agent

        trail = self._trail_factory(request)
        await trail.record(
            AuditEntry(
                actor=request.headers.get("x-user-id") or "anonymous",
                action="UNAUTHORIZED_ACCESS",
                resource=request.url.path,
                method=request.method,
                details=details,
            )
        )
