"""Test health check endpoint."""

from fastapi.testclient import TestClient

from brandrag.main import app

client = TestClient(app)


def test_health_check():
    """Test that /health returns 200 with status ok."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "brandrag", "version": "0.1.0"}


def test_unknown_route_is_404():
    assert client.get("/v1/does-not-exist").status_code == 404
