"""
Tests for the health check endpoint.
"""

from chat.providers import get_chat_services


def test_health_check_connected(client, db):
    response = client.get("/health/")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"] == "connected"
    assert body["notifications"]["state"] == "DB_CONNECTED"


def test_health_check_degraded_still_200(client, mocker, db):
    mocker.patch("core.views.database_probe", return_value=False)

    response = client.get("/health/")

    assert response.status_code == 200
    assert response.json()["status"] == "degraded"


def test_health_reports_dispatcher_circuit(client, db):
    circuit = get_chat_services().notifications.circuit
    circuit.record_failure()
    try:
        response = client.get("/health/")
    finally:
        circuit.reset()

    assert response.json()["notifications"]["state"] == "DB_DEGRADED"
