"""Pytest bootstrap for backend test runs.

Settings are read from the environment at import time and PORT,
INTERNAL_SECRET and AUTH_API_URL are mandatory, so they are provided here
before anything imports the relay package.
"""
import os

import pytest

os.environ.setdefault("PORT", "3001")
os.environ.setdefault("INTERNAL_SECRET", "test-secret")
os.environ.setdefault("AUTH_API_URL", "http://identity.test")
os.environ.setdefault("APP_ENV", "test")


@pytest.fixture(scope="session")
def anyio_backend():
    # Socket.IO and httpx both run on asyncio in production
    return "asyncio"
