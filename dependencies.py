"""
FastAPI dependency providers.

All injectable dependencies are defined here as plain functions used with
FastAPI's Depends() system. Services and the cache are built once in the
app lifespan (see app.init_services) and read back from app.state.
"""

from __future__ import annotations

from fastapi import Request

from config import AppSettings
from infrastructure.cache.protocol import TTLCache
from services.event_service import EventService
from services.stats_service import StatsService
from services.tag_service import TagService


def get_settings(request: Request) -> AppSettings:
    """Return the AppSettings instance stored on app.state."""
    return request.app.state.settings


def get_cache(request: Request) -> TTLCache:
    """Return the shared TTL cache (Redis-backed or in-process)."""
    return request.app.state.cache


def get_tag_service(request: Request) -> TagService:
    return request.app.state.tag_service


def get_event_service(request: Request) -> EventService:
    return request.app.state.event_service


def get_stats_service(request: Request) -> StatsService:
    return request.app.state.stats_service
