"""Pytest bootstrap configuration.

Ensure mandatory environment variables are set before test collection
and module imports that depend on application settings.
"""
import os

# Mandatory secret key for settings validation
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")

# Gateway credentials used by signature tests and the Razorpay adapter
os.environ.setdefault("PAYMENT__RAZORPAY__KEY_ID", "rzp_test_key")
os.environ.setdefault("PAYMENT__RAZORPAY__KEY_SECRET", "test-key-secret")
os.environ.setdefault("PAYMENT__RAZORPAY__WEBHOOK_SECRET", "test-webhook-secret")

import pytest  # noqa: E402

from tests.fakes import InMemoryStore, StubGateway, FakeCache  # noqa: E402


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore.with_catalog()


@pytest.fixture
def gateway() -> StubGateway:
    return StubGateway()


@pytest.fixture
def cache() -> FakeCache:
    return FakeCache()
