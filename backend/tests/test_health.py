def test_health_endpoints(client):
    assert client.get("/api/health").json() == {"status": "ok"}

    live = client.get("/api/health/live")
    assert live.status_code == 200
    assert live.json()["status"] == "ok"

    ready = client.get("/api/health/ready")
    assert ready.status_code == 200
    payload = ready.json()
    assert payload["status"] == "ok"
    assert payload["database"]["ok"] is True
    assert payload["database"]["schema_ok"] is True
    assert payload["database"]["missing_tables"] == []
    assert set(payload["ai"]) == {"enabled", "configured", "model"}


def test_ready_reports_missing_tables(client, engine):
    with engine.begin() as connection:
        connection.exec_driver_sql("DROP TABLE conflicts")

    ready = client.get("/api/health/ready")

    assert ready.status_code == 503
    assert ready.json()["status"] == "degraded"
    assert ready.json()["database"]["missing_tables"] == ["conflicts"]
