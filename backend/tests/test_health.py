def test_health_ok(client):
    r = client.get("/health")

    assert r.status_code == 200
    assert r.headers.get("content-type", "").startswith("application/json")

    data = r.json()
    assert data.get("ok") is True
    assert data["data"]["service"] == "workshop"


def test_db_ping(client):
    r = client.get("/db-ping")
    assert r.status_code == 200
    assert r.json()["data"]["select1"] == 1
