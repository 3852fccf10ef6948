from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import cast

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from notify_backend.config import settings
from notify_backend.db import dispose_engine_cache
from notify_backend.error_handlers import register_error_handlers
from notify_backend.routers import messages, root
from notify_backend.schemas_common import HealthResponse


access_logger = logging.getLogger("notify_backend.access")

_REQUEST_ID_HEADER = b"x-request-id"


def _inbound_request_id(scope: Scope) -> str | None:
    headers = cast(list[tuple[bytes, bytes]], scope.get("headers") or [])
    for key, value in headers:
        if key.lower() == _REQUEST_ID_HEADER:
            # latin-1 maps bytes 1-1 onto str.
            return value.strip().decode("latin-1") or None
    return None


class RequestIdMiddleware:
    """Tags each HTTP request with an id and writes one access log line.

    The id comes from an inbound ``X-Request-Id`` or is generated; it is stored
    on ``request.state.request_id`` for error bodies and echoed on the response.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app: ASGIApp = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        request_id = _inbound_request_id(scope) or str(uuid.uuid4())
        scope.setdefault("state", {})["request_id"] = request_id
        started = time.perf_counter()
        status_code = 500

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message.get("type") == "http.response.start":
                status_code = int(message.get("status", 500))
                headers = cast(list[tuple[bytes, bytes]], message.get("headers", []))
                headers = [(k, v) for (k, v) in headers if k.lower() != _REQUEST_ID_HEADER]
                headers.append((_REQUEST_ID_HEADER, request_id.encode("latin-1")))
                message["headers"] = headers
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            access_logger.info(
                "%s %s status=%s duration_ms=%.1f request_id=%s",
                scope.get("method"),
                scope.get("path"),
                status_code,
                (time.perf_counter() - started) * 1000,
                request_id,
            )


@asynccontextmanager
async def _lifespan(_app: FastAPI):
    yield
    # Ensure aiosqlite worker threads don't keep the process alive.
    dispose_engine_cache()


logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))

logger = logging.getLogger(__name__)
for msg in settings.security_warnings():
    logger.warning("SECURITY WARNING: %s", msg)


app = FastAPI(title=settings.app_name, version=settings.service_version, lifespan=_lifespan)

app.add_middleware(RequestIdMiddleware)
register_error_handlers(app)

origins = settings.cors_origins_list()
if origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse()


app.include_router(root.router, prefix=settings.api_prefix)
app.include_router(messages.router, prefix=settings.api_prefix)


@app.api_route(
    f"{settings.api_prefix.rstrip('/')}/{{path:path}}",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
async def _api_fallback_not_found(path: str) -> None:  # noqa: ARG001
    raise HTTPException(status_code=404, detail="Not Found")
