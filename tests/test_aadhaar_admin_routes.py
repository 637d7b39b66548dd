def test_add_record(client, registry):
    resp = client.post("/api/aadhaar-admin/add", json={"aadhaarNumber": "345678901234", "email": "Carol@example.com"})
    assert resp.status_code == 201
    assert resp.get_json()["total"] == 3
    assert registry.is_valid_pair("345678901234", "carol@example.com")


def test_duplicate_and_invalid(client):
    resp = client.post("/api/aadhaar-admin/add", json={"aadhaarNumber": "123456789012", "email": "x@example.com"})
    assert resp.status_code == 409
    resp = client.post("/api/aadhaar-admin/add", json={"aadhaarNumber": "1234", "email": "x@example.com"})
    assert resp.status_code == 400


def test_disabled_by_default(app, client):
    app.config["AADHAAR_DEMO_ADMIN_ENABLED"] = False
    resp = client.post("/api/aadhaar-admin/add", json={"aadhaarNumber": "345678901234", "email": "c@example.com"})
    assert resp.status_code == 404
