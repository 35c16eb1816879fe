"""FastAPI application for the bate-papo chat service.

Endpoints:
- GET  /participants   list active participants
- POST /participants   join the room (body {name})
- GET  /messages       messages visible to the ``user`` header, ?limit=N
- POST /messages       post as the ``user`` header (body {to, text, type})
- POST /status         heartbeat for the ``user`` header
- GET  /health, GET /metrics

The store and the reaper are created in the lifespan hook and kept on
``app.state``; pass ``store`` to ``create_app`` to run against another
``ChatStore`` implementation.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from batepapo import __version__
from batepapo.config import settings
from batepapo.errors import ChatError
from batepapo.logging_utils import HealthCheckAccessFilter, configure_logging
from batepapo.messages import MessageService
from batepapo.metrics import http_request_duration, http_requests_total
from batepapo.models import MessageIn, Participant, ParticipantIn
from batepapo.presence import PresenceTracker
from batepapo.reaper import Reaper
from batepapo.store import ChatStore, MongoChatStore
from batepapo.visibility import VisibilityFilter

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


def create_app(store: ChatStore | None = None, start_reaper: bool | None = None) -> FastAPI:
    """Build the app. Without ``store`` a MongoChatStore is created from settings."""
    if start_reaper is None:
        start_reaper = settings.reaper_enabled

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.getLogger("uvicorn.access").addFilter(HealthCheckAccessFilter())
        chat_store = store or MongoChatStore(
            settings.mongodb_url,
            settings.mongodb_database,
            timeout_s=settings.store_timeout_s,
            server_selection_timeout_ms=settings.server_selection_timeout_ms,
        )
        await chat_store.init()

        presence = PresenceTracker(chat_store)
        reaper = Reaper(presence)
        app.state.store = chat_store
        app.state.presence = presence
        app.state.visibility = VisibilityFilter(chat_store)
        app.state.messages = MessageService(chat_store)
        app.state.reaper = reaper

        if start_reaper:
            await reaper.start()
        logger.info("Bate-papo ready on port %d", settings.port)
        yield
        await reaper.stop()
        await chat_store.close()
        logger.info("Bate-papo stopped")

    app = FastAPI(
        title="Bate-papo",
        description="Chat room backend with presence tracking and inactivity reaper",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ChatError)
    async def chat_error_handler(request: Request, exc: ChatError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        """Track HTTP request count and duration."""
        path = request.url.path
        if path in ("/health", "/metrics"):
            return await call_next(request)

        start = time.time()
        response = await call_next(request)
        duration = time.time() - start
        http_requests_total.labels(
            method=request.method, endpoint=path, status_code=str(response.status_code),
        ).inc()
        http_request_duration.labels(method=request.method, endpoint=path).observe(duration)
        return response

    # --- Participants ---

    @app.get("/participants", response_model=list[Participant])
    async def list_participants(request: Request):
        return await request.app.state.presence.list_participants()

    @app.post("/participants", status_code=201)
    async def register_participant(body: ParticipantIn, request: Request):
        await request.app.state.presence.register(body.name)
        return Response(status_code=201)

    # --- Messages ---

    @app.get("/messages")
    async def list_messages(
        request: Request,
        limit: str | None = None,
        user: str | None = Header(default=None),
    ):
        return await request.app.state.visibility.list_visible(user, limit)

    @app.post("/messages", status_code=201)
    async def post_message(
        body: MessageIn,
        request: Request,
        user: str | None = Header(default=None),
    ):
        await request.app.state.messages.submit(user, body.to, body.text, body.type)
        return Response(status_code=201)

    # --- Presence ---

    @app.post("/status")
    async def heartbeat(request: Request, user: str | None = Header(default=None)):
        await request.app.state.presence.heartbeat(user)
        return Response(status_code=200)

    # --- Ops ---

    @app.get("/health")
    async def health(request: Request):
        reaper = getattr(request.app.state, "reaper", None)
        return {"status": "ok", "reaper": bool(reaper and reaper.running)}

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint."""
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


app = create_app()


# --- Entry point ---

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "batepapo.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
    )
