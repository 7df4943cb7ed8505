"""
Health and version endpoint tests.
"""


def test_health(client, db_session, customer, make_quotation):
    make_quotation(customer)
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json["status"] == "healthy"
    assert resp.json["checks"]["database"]["details"]["pending_quotations"] == 1
    assert resp.json["checks"]["media_store"]["details"]["writable"] is True
    assert resp.json["timestamp"].endswith("Z")


def test_version(client):
    resp = client.get("/version")

    assert resp.status_code == 200
    assert resp.json["api_version"] == "1.0.0"
