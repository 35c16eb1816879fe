"""Pytest configuration for bate-papo tests.

Runs the core and the HTTP layer against the in-memory store from
tests/fakes.py, so no MongoDB is required.
"""

import os
import sys

import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Set minimal environment variables for Settings before the app is imported
os.environ.setdefault("BATEPAPO_MONGODB_URL", "mongodb://localhost:27017")
os.environ.setdefault("BATEPAPO_MONGODB_DATABASE", "bate-papo-test")
os.environ.setdefault("BATEPAPO_REAPER_ENABLED", "false")

from tests.fakes import FakeClock, InMemoryChatStore  # noqa: E402


@pytest.fixture()
def store():
    return InMemoryChatStore()


@pytest.fixture()
def clock():
    return FakeClock(1_700_000_000_000)


@pytest.fixture()
def client(store):
    """A test client for the FastAPI app, lifespan included, reaper off."""
    from fastapi.testclient import TestClient

    from batepapo.main import create_app

    with TestClient(create_app(store=store, start_reaper=False)) as test_client:
        yield test_client
