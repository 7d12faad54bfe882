"""FastAPI application exposing the marketplace money and quota core."""
from __future__ import annotations

import logging
from typing import Optional

import psycopg2
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler

from . import app_context
from .app.errors import ErrorKind, MarketplaceError
from .app.routes.admin import router as admin_router
from .app.routes.escrow import router as escrow_router
from .app.routes.fees import router as fees_router
from .app.routes.subscriptions import router as subscriptions_router
from .app.routes.usage import router as usage_router
from .config import MarketplaceSettings, get_settings


logger = logging.getLogger("marketplace")


def configure_logging(settings: MarketplaceSettings) -> None:
    level = logging.getLevelName(settings.log_level)
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    if exc.kind == ErrorKind.INFRASTRUCTURE:
        logger.error("Request %s %s failed: %s", request.method, request.url.path, exc.message)
    return await http_exception_handler(request, exc.to_http_exception())


def create_app(settings: Optional[MarketplaceSettings] = None, *, connect: bool = True) -> FastAPI:
    """Build the application; ``connect=False`` skips registering the database."""

    settings = settings or get_settings()
    configure_logging(settings)

    if connect:
        connect_kwargs = settings.database.as_connect_kwargs()
        app_context.configure(get_conn=lambda: psycopg2.connect(**connect_kwargs))

    application = FastAPI(title="Marketplace Payments API")
    application.add_exception_handler(MarketplaceError, marketplace_error_handler)
    application.include_router(fees_router)
    application.include_router(escrow_router)
    application.include_router(subscriptions_router)
    application.include_router(usage_router)
    application.include_router(admin_router)
    return application


load_dotenv()

app = create_app()
