"""
FastAPI application entry point for the storefront service.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shared.types import DEFAULT_CATEGORIES
from storefront.config import get_settings
from storefront.db import seed_categories
from storefront.dependencies import get_db_client
from storefront.errors import StorefrontError
from storefront.routes import router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    created = seed_categories(get_db_client(), DEFAULT_CATEGORIES)
    if created:
        logger.info("Seeded %d default categories", len(created))
    yield


async def storefront_error_handler(request: Request, exc: StorefrontError):
    logger.info(
        "%s %s -> %d: %s",
        request.method,
        request.url.path,
        exc.status_code,
        exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.as_dict())


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Storefront API", version="0.1.0", lifespan=lifespan)
    app.add_exception_handler(StorefrontError, storefront_error_handler)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
