from __future__ import annotations

import pytest

from sysmetrics.catalog import register_catalog
from sysmetrics.config import Settings
from sysmetrics.obs.registry import MetricRegistry


@pytest.fixture
def registry() -> MetricRegistry:
    return MetricRegistry(lock_timeout=1.0)


@pytest.fixture
def handles(registry):
    return register_catalog(registry)


@pytest.fixture
def cfg() -> Settings:
    return Settings(
        host="127.0.0.1",
        port=0,
        sample_interval_sec=0.01,
        lock_timeout_sec=0.5,
        alloc_ops=200,
        alloc_arena_bytes=8192,
    )
