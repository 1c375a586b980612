"""
FastAPI application entry point.

Run with: uvicorn vorniq.main:build_app --factory
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vorniq import __version__
from vorniq.config import Settings, configure_logging, get_settings
from vorniq.database.session import build_engine, build_session_factory, create_tables
from vorniq.entitlements.cache import SubscriptionStatusCache
from vorniq.platform.errors import CorrelationIdMiddleware, register_error_handlers
from vorniq.services.subscription_store import SqlSubscriptionStore
from vorniq.api.routes import health, services, subscription

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = build_engine(settings.database_url)
        create_tables(engine)
        app.state.engine = engine
        app.state.subscription_store = SqlSubscriptionStore(build_session_factory(engine))
        app.state.status_cache = SubscriptionStatusCache(
            settings.redis_url, ttl_seconds=settings.status_cache_ttl_seconds
        )
        logger.info(
            "VorniQ API started",
            extra={
                "dialect": engine.dialect.name,
                "status_cache": "redis" if app.state.status_cache.uses_redis else "memory",
            },
        )
        try:
            yield
        finally:
            engine.dispose()

    app = FastAPI(title="VorniQ API", version=__version__, lifespan=lifespan)
    app.state.settings = settings

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    app.add_middleware(CorrelationIdMiddleware)
    register_error_handlers(app)

    app.include_router(health.router)
    app.include_router(services.router)
    app.include_router(subscription.router)
    return app


def build_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)
    return create_app(settings)
