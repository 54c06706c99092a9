"""FastAPI application entry point."""

import logging

from fastapi import FastAPI

from jrdev.api import health, webhook
from jrdev.core.config import settings
from jrdev.core.logging import setup_logging
from jrdev.database.mongo import close_clients
from jrdev.middleware.request_logging import RequestLoggingMiddleware

setup_logging(settings.LOG_LEVEL)

logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="GitHub App that turns labeled issues into AI-authored pull requests",
    version=settings.APP_VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(health.router, prefix="/api", tags=["Health"])
app.include_router(webhook.router, prefix="/api", tags=["Webhooks"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/api/docs",
    }


@app.on_event("shutdown")
async def shutdown_event():
    close_clients()
