# backend/tests/routes/test_health_routes.py


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "drivebook-api"


def test_metrics_after_traffic(client):
    client.get("/api/v1/calendar-settings")

    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "drivebook_service_operations_total" in response.text
    assert 'operation="get_settings"' in response.text
