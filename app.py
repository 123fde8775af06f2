"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from errors import register_error_handlers
from infrastructure.cache.memory_cache import MemoryTTLCache
from infrastructure.cache.protocol import TTLCache
from infrastructure.cache.redis_cache import RedisTTLCache
from infrastructure.cache.redis_client import create_redis_client
from infrastructure.store.mongo import MongoDocumentStore
from infrastructure.store.protocol import DocumentStore
from routes.event_routes import router as event_router
from routes.health_routes import router as health_router
from routes.stats_routes import router as stats_router
from routes.tag_routes import router as tag_router
from services.event_service import EventService
from services.stats_service import StatsService
from services.tag_service import TagService
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


def init_services(
    app: FastAPI, settings: AppSettings, store: DocumentStore, cache: TTLCache
) -> None:
    """Attach settings, cache and services to app.state for dependencies.py."""
    db, ttl = settings.db, settings.cache
    app.state.settings = settings
    app.state.store = store
    app.state.cache = cache
    app.state.tag_service = TagService(
        store,
        db.tags_collection,
        tag_ttl_seconds=ttl.tag_ttl_seconds,
        list_ttl_seconds=ttl.list_ttl_seconds,
    )
    app.state.event_service = EventService(
        store, db.events_collection, db.stats_collection
    )
    app.state.stats_service = StatsService(
        store,
        db.stats_collection,
        stats_ttl_seconds=ttl.stats_ttl_seconds,
        list_ttl_seconds=ttl.list_ttl_seconds,
    )


def register_routes(app: FastAPI, api_prefix: str) -> None:
    app.include_router(health_router)
    app.include_router(tag_router, prefix=api_prefix)
    app.include_router(event_router, prefix=api_prefix)
    app.include_router(stats_router, prefix=api_prefix)


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    setup_logging(settings.logging)

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
            profiles_sample_rate=settings.sentry.sentry_profile_sample_rate,
            environment=settings.env,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        mongo_client: AsyncMongoClient = AsyncMongoClient(
            settings.db.mongodb_uri, tz_aware=True
        )
        app.state.mongo_client = mongo_client
        app.state.db = mongo_client[settings.db.db_name]
        store = MongoDocumentStore(app.state.db)

        # Redis is optional; fall back to the in-process cache
        redis_client = None
        if settings.redis.redis_uri:
            redis_client = await create_redis_client(settings.redis.redis_uri)
        app.state.redis = redis_client
        if redis_client is not None:
            cache: TTLCache = RedisTTLCache(redis_client)
        else:
            cache = MemoryTTLCache(max_entries=settings.cache.memory_cache_max_entries)

        init_services(app, settings, store, cache)
        await store.ensure_indexes(
            [settings.db.tags_collection, settings.db.stats_collection]
        )
        log.info(
            "app_started",
            db=settings.db.db_name,
            cache="redis" if redis_client is not None else "memory",
        )

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await mongo_client.close()
        if redis_client is not None:
            await redis_client.aclose()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    register_routes(app, settings.api_prefix)

    return app
