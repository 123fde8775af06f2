"""Shared fixtures: in-memory store, fake clocks, memory cache."""

import os

import pytest

from fakes import FakeClock, InMemoryStore, TickingClock
from infrastructure.cache.memory_cache import MemoryTTLCache

# Ensure a MONGODB_URI is present so AppSettings can be instantiated
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017/")


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ticking_clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def cache(clock) -> MemoryTTLCache:
    return MemoryTTLCache(default_ttl_seconds=60, clock=clock)
