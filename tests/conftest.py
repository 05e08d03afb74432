"""
Shared fixtures.

Settings are read from the environment at import time, so the required
values are set before any ``src`` module is imported.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-0123456789abcdef0123456789")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("AUTH_VERIFY_ACCOUNT", "false")
os.environ.setdefault("ERROR_LOG_PERSISTENCE_ENABLED", "false")

from datetime import datetime, timedelta, timezone

import pytest

from src.core.config import Config


TEST_SECRET_KEY = "test-secret-key-0123456789abcdef0123456789"


class FakeClock:
    """Controllable UTC clock for the rate-limit stores."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def dev_config():
    """Development configuration: internal messages and details are exposed."""
    return Config(SECRET_KEY=TEST_SECRET_KEY, ENVIRONMENT="development")


@pytest.fixture
def prod_config():
    """Production configuration: only safe messages, secure cookies, HSTS."""
    return Config(SECRET_KEY=TEST_SECRET_KEY, ENVIRONMENT="production")
