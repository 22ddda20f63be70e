"""Fixtures for API tests."""

import pytest
from fastapi.testclient import TestClient

from engagement_hub.web.api import create_app


@pytest.fixture
def client(db):
    """Test client bound to the per-test database."""
    return TestClient(create_app())
