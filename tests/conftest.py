"""
Pytest configuration and fixtures
"""
import time

import pytest
from fastapi.testclient import TestClient

from sms_dev.core.config import Settings
from sms_dev.main import create_app


def make_settings(**overrides) -> Settings:
    """Settings isolated from the environment, with fast lifecycle timers."""
    values = {
        "webhook_url": None,
        "sent_delay_ms": 20,
        "delivered_delay_ms": 20,
        "log_level": "WARNING",
        "log_format": "text",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def client(settings):
    """Test client with the lifespan running, so background tasks progress."""
    with TestClient(create_app(settings)) as client:
        yield client


@pytest.fixture
def frozen_client():
    """Client whose messages stay queued for the duration of a test."""
    settings = make_settings(sent_delay_ms=600_000, delivered_delay_ms=600_000)
    with TestClient(create_app(settings)) as client:
        yield client


@pytest.fixture
def eventually():
    """Poll `predicate` until it returns a truthy value or the timeout expires."""
    def wait(predicate, timeout: float = 3.0, interval: float = 0.02):
        deadline = time.monotonic() + timeout
        while True:
            result = predicate()
            if result:
                return result
            if time.monotonic() > deadline:
                raise AssertionError("condition not met before timeout")
            time.sleep(interval)
    return wait
