from __future__ import annotations

from fastapi.testclient import TestClient

from illustration_versions.main import app

client = TestClient(app)


def test_health():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_version():
    """The version is read from the installed package metadata."""
    response = client.get("/version")
    assert response.status_code == 200
    assert isinstance(response.json()["version"], str)
