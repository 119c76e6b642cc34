"""FastAPI app factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import asdict

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..grid.errors import (
    CapacityError,
    ConflictError,
    GoalGridError,
    ImportFailedError,
    NotFoundError,
    StateError,
    TransientStoreError,
    ValidationError,
)
from .config import WebConfig

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[GoalGridError], int]] = [
    (ValidationError, 400),
    (NotFoundError, 404),
    (StateError, 409),
    (CapacityError, 409),
    (ConflictError, 409),
    (TransientStoreError, 503),
    (ImportFailedError, 500),
]


def status_for(exc: GoalGridError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    """App lifespan: open the card store, init auth."""
    config = WebConfig.load()

    from .db.database import close_db, init_db

    await init_db(config.db_path)

    from .auth.service import init_auth

    init_auth(config)

    yield

    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    config = WebConfig.load()

    app = FastAPI(
        title="GoalGrid",
        description="Yearly goal bingo cards",
        version="0.1.0",
        lifespan=lifespan,
        debug=config.debug,
    )

    # CORS
    origins = config.cors_origins or [
        "http://localhost",
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routers
    from .cards.router import router as cards_router

    app.include_router(cards_router)

    # Error handlers
    @app.exception_handler(GoalGridError)
    async def goalgrid_error_handler(request: Request, exc: GoalGridError):
        status = status_for(exc)
        content: dict = {"detail": exc.message, "code": exc.code}
        if isinstance(exc, ConflictError) and exc.existing is not None:
            content["existing_card"] = asdict(exc.existing)
        if isinstance(exc, ImportFailedError):
            content["rolled_back"] = exc.rolled_back
        if status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=status, content=content)

    @app.get("/api/health")
    async def health():
        return {"status": "ok"}

    return app
