"""FastAPI application factory.

create_app() returns a configured FastAPI instance. The event bus and the
realtime gateway are built here and parked on app.state, so routes and
the WebSocket endpoint share one of each per app. Lifespan only deals
with external resources (Redis, the database engine, open sockets).
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ticktee import __version__
from ticktee.api import api_router
from ticktee.config import settings
from ticktee.db.engine import async_session_factory
from ticktee.events.bus import EventBus
from ticktee.realtime.connections import ConnectionRegistry
from ticktee.realtime.gateway import Gateway

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    logger.info(
        "ticktee.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    from ticktee.cache import close_redis, init_redis
    try:
        await init_redis()
        logger.info("ticktee.redis_connected", url=settings.redis_url)
    except Exception as e:
        # Redis is optional: rate limiting is skipped without it
        logger.warning("ticktee.redis_unavailable", error=str(e))

    yield

    logger.info("ticktee.shutdown")

    await app.state.gateway.close_all()
    await close_redis()

    from ticktee.db.engine import engine
    await engine.dispose()


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies are plain client errors: 400, not FastAPI's 422."""
    return JSONResponse(
        status_code=400,
        content={"detail": jsonable_encoder(exc.errors())},
    )


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="Ticktee",
        description="Points-based merchandise and ticket store with live updates",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Realtime wiring ───────────────────────────────────────
    app.state.bus = EventBus()
    app.state.gateway = Gateway(ConnectionRegistry(), async_session_factory)
    app.state.bus.subscribe(app.state.gateway.publish)

    # ── Middleware stack ──────────────────────────────────────
    # Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → Security → RateLimit → CORS → handler

    from ticktee.middleware.rate_limit import RateLimitMiddleware
    from ticktee.middleware.request_id import RequestIdMiddleware
    from ticktee.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(api_router)

    from ticktee.realtime.websocket import router as ws_router
    app.include_router(ws_router)

    return app


# Default app instance (used by uvicorn: ticktee.main:app)
app = create_app()
