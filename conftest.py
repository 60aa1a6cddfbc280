"""
Pytest Configuration & Fixtures

Scans are recorded inline and the cache (rate limit counters) starts
empty for every test.
"""
import pytest


@pytest.fixture(autouse=True)
def eager_celery():
    """Run Celery tasks synchronously."""
    from qrredirect.celery import app

    app.conf.task_always_eager = True
    yield


@pytest.fixture(autouse=True)
def clear_cache():
    """Reset rate limit counters between tests."""
    from django.core.cache import cache

    cache.clear()
    yield
    cache.clear()
