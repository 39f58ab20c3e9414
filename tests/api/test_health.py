"""
Tests for the health check endpoint.
"""


def test_health_check_returns_200(client):
    response = client.get("/health")
    assert response.status_code == 200


def test_health_check_reports_service_and_database(client):
    """
    Monitoring parses these fields, so their names and the
    healthy values must not drift.
    """
    data = client.get("/health").json()
    assert data["service"] == "marketplace-ledger"
    assert data["database"] == "healthy"
    assert data["status"] == "healthy"
