"""
FastAPI application factory.

Assembles the app, registers the session router and error handlers,
and wires up lifecycle events.  Database schema is managed by
Alembic — NOT create_all (except the opt-in SQLite dev shortcut).
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.controllers.session_controller import router as session_router
from app.core.config import settings
from app.core.database import engine
from app.core.exceptions import register_exception_handlers
from app.middleware.request_context import RequestContextMiddleware
from app.models import Base

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # ── Middleware & error mapping ───────────────────────────────────
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    # ── Register routers ─────────────────────────────────────────────
    app.include_router(session_router)

    # ── Startup / Shutdown ───────────────────────────────────────────
    @app.on_event("startup")
    async def on_startup() -> None:
        """Create tables on local SQLite runs when explicitly asked to.

        NOTE: Postgres schema is managed by Alembic migrations.
        Run `alembic upgrade head` before starting the app.
        """
        if settings.AUTO_CREATE_SCHEMA and engine.dialect.name == "sqlite":
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("SQLite schema created.")
        logger.info(
            "Seat policy: limit=%d ttl=%dd eviction=%s strict_eviction=%s",
            settings.SEAT_LIMIT,
            settings.SESSION_TTL_DAYS,
            settings.EVICTION_ENABLED,
            settings.STRICT_EVICTION,
        )

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await engine.dispose()
        logger.info("Database engine disposed.")

    # ── Health check ─────────────────────────────────────────────────
    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
