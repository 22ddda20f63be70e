"""Tests for the health endpoint."""

from engagement_hub import __version__


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == __version__
    assert data["timestamp"]
