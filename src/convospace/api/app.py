"""
ConvoSpace FastAPI Application.

Main API application: authentication, chat relay, code sessions, storage,
chat history and health endpoints.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from convospace.api.dependencies import get_session_store
from convospace.api.errors import register_exception_handlers
from convospace.api.routes import (
    auth,
    chat,
    code,
    health,
    history,
    providers,
    storage,
    suggest,
    user,
)
from convospace.code.sessions import SessionCollector
from convospace.config import settings
from convospace.logging_config import setup_logging
from convospace.startup import run_all_startup_checks

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Runs startup checks before the application starts serving requests and
    runs the code session sweeper while the app is up.
    """
    # Initialize logging first
    setup_logging(context="api")

    logger.info("Running startup checks...")
    run_all_startup_checks()
    logger.info("✓ Startup checks passed")

    collector = SessionCollector(
        get_session_store(),
        interval_seconds=settings.code_session_gc_interval_seconds,
    )
    collector.start()
    app.state.session_collector = collector

    logger.info("Application startup complete")

    yield

    logger.info("Application shutdown initiated...")
    collector.stop()
    logger.info("Application shutdown complete")


app = FastAPI(
    lifespan=lifespan,
    title="ConvoSpace API",
    description="Chat relay to LLM providers with accounts, storage and code sessions",
    version=settings.version,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint - API health check."""
    return {
        "status": "ok",
        "message": "ConvoSpace API is running",
        "version": settings.version,
    }


app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(user.router, prefix="/api/user", tags=["user"])
app.include_router(chat.router, prefix="/api/chat", tags=["chat"])
app.include_router(code.router, prefix="/api/code", tags=["code"])
app.include_router(providers.router, prefix="/api/providers", tags=["providers"])
app.include_router(health.router, prefix="/api", tags=["health"])
app.include_router(storage.router, prefix="/api/storage", tags=["storage"])
app.include_router(history.router, prefix="/api/history", tags=["history"])
app.include_router(suggest.router, prefix="/api/suggest", tags=["suggest"])
