"""Pytest configuration for argocache-forge."""
import os

import pytest


def pytest_configure():
    # Keep the progress indicator out of test output unless a test asks for it.
    os.environ.setdefault("ARGOFORGE_SPINNER", "false")


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeRedis:
    """Dict-backed stand-in for redis.asyncio.Redis (GET/SET/aclose only)."""

    def __init__(self, data=None, error=None):
        self.data = dict(data or {})
        self.error = error
        self.get_calls = []
        self.set_calls = []
        self.closed = False

    async def get(self, name):
        self.get_calls.append(name)
        if self.error is not None:
            raise self.error
        return self.data.get(name)

    async def set(self, name, value, px=None):
        self.set_calls.append((name, value, px))
        if self.error is not None:
            raise self.error
        self.data[name] = value
        return True

    async def aclose(self):
        self.closed = True


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def fake_redis_factory():
    return FakeRedis


@pytest.fixture(autouse=True)
def _reset_global_config(monkeypatch):
    monkeypatch.setattr("forgecore.base.config._config", None)
