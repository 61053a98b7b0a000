# tests/test_health.py


def test_health_reports_database_and_gateway(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "operational"
    assert body["database"]["status"] == "operational"
    assert body["ai_gateway"] == {"configured": True}


def test_root(client):
    assert client.get("/").json()["message"] == "School Portal API"
