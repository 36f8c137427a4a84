"""Fixtures for exercising the HTTP application of site A."""

import httpx
import pytest

from site_friends.api import create_app


@pytest.fixture
def app(services):
    return create_app(services=services)


@pytest.fixture
async def client(app):
    """Client calling the application in-process, on the test's event loop."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="https://a.example") as client:
        yield client
