"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.hs_chat.api.router import router as chat_router
from src.hs_chat.api.ws_router import router as ws_router
from src.hs_chat.infrastructure.profile_client import UserProfileClient
from src.hs_chat.realtime.hub import ConnectionHub
from src.hs_chat.realtime.presence import PresenceTracker
from src.hs_chat.realtime.protocol import ChatProtocol
from src.hs_common.database import engine
from src.hs_common.errors import AppError
from src.hs_common.redis_client import close_redis
from src.hs_common.response import error_response
from src.hs_gateway.middleware.request_log import RequestLogMiddleware
from src.hs_matching.application.worker import CandidateScanWorker
from src.hs_order.api.router import router as order_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB, build realtime components, start the scan worker.

    Shutdown: stop the worker, close sockets, cancel pending delivery
    updates, then release Redis and the DB pool.
    """
    # Startup
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))

    presence = PresenceTracker()
    hub = ConnectionHub(presence)
    presence.bind(hub.broadcast_all)
    worker = CandidateScanWorker()
    profiles = UserProfileClient()

    app.state.presence = presence
    app.state.hub = hub
    app.state.chat_protocol = ChatProtocol(hub, presence)
    app.state.candidate_worker = worker
    app.state.profiles = profiles

    await worker.start()
    yield
    # Shutdown
    await worker.stop()
    await hub.close_all()
    await app.state.chat_protocol.shutdown()
    await profiles.close()
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


_cors_origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins or ["*"],
    allow_credentials=bool(_cors_origins),
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(order_router, prefix="/api/v1")
app.include_router(chat_router, prefix="/api/v1")
app.include_router(ws_router)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
