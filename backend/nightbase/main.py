from __future__ import annotations

import logging
import sys

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .api import accrual_router, admin_router, engagements_router, sessions_router
from .core.config import settings
from .core.db import engine
from .core.migrations import get_current_revision, run_migrations
from .models.db import Base


def configure_logging() -> None:
    """Configure structured logging for the application."""
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Set specific log levels for third-party libraries
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)
configure_logging()


def create_app() -> FastAPI:
    app = FastAPI(title="Nightbase Floor", version="1.0.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log incoming requests."""
        logger.info(f"Request: {request.method} {request.url.path}")
        response = await call_next(request)
        logger.info(f"Response: {request.method} {request.url.path} - Status: {response.status_code}")
        return response

    app.include_router(admin_router)
    app.include_router(sessions_router)
    app.include_router(engagements_router)
    app.include_router(accrual_router)

    @app.get("/")
    def root():
        return {"ok": True, "service": "nightbase-floor", "docs": "/docs"}

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.on_event("startup")
    def startup():
        logger.info("Starting application...")
        if settings.AUTO_MIGRATE:
            run_migrations()
            logger.info(f"Database at revision {get_current_revision()}")
        else:
            Base.metadata.create_all(bind=engine)
            logger.info("Database tables created/verified")
        logger.info("Application startup complete")

    return app


app = create_app()
