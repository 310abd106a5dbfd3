import logging

PHONE = "+255712345678"


def test_send_and_verify_over_http(client):
    response = client.post("/api/v1/otp/send", json={"phoneNumber": PHONE})
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["provider"] == "tigo"
    assert data["message"] == "OTP sent successfully via tigo"
    assert data["timestamp"]
    assert response.headers["x-request-id"]

    code = client.service.store.get(PHONE).code
    verify = client.post("/api/v1/otp/verify", json={"phoneNumber": PHONE, "otp": code})
    assert verify.status_code == 200
    assert verify.json()["success"] is True
    assert verify.json()["message"] == "OTP verified successfully"

    again = client.post("/api/v1/otp/verify", json={"phoneNumber": PHONE, "otp": code})
    assert again.status_code == 409
    assert again.json() == {"success": False, "code": "already-exists", "message": "OTP has already been used."}


def test_send_rejects_bad_phone(client):
    response = client.post("/api/v1/otp/send", json={"phoneNumber": "0712345678"})
    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "invalid-argument"
    assert body["success"] is False


def test_send_requires_phone(client):
    response = client.post("/api/v1/otp/send", json={})
    assert response.status_code == 400
    assert response.json()["message"] == "Phone number is required"


def test_malformed_body_is_invalid_argument(client):
    response = client.post("/api/v1/otp/send", json={"phoneNumber": "+255" + "7" * 40})
    assert response.status_code == 400
    assert response.json()["code"] == "invalid-argument"


def test_wrong_codes_over_http(client):
    client.post("/api/v1/otp/send", json={"phoneNumber": PHONE})
    code = client.service.store.get(PHONE).code
    wrong = "000000" if code != "000000" else "111111"

    statuses = [
        client.post("/api/v1/otp/verify", json={"phoneNumber": PHONE, "otp": wrong}).status_code for _ in range(4)
    ]
    assert statuses == [400, 400, 400, 429]

    missing = client.post("/api/v1/otp/verify", json={"phoneNumber": PHONE, "otp": wrong})
    assert missing.status_code == 404
    assert missing.json()["code"] == "not-found"


def test_expired_code_over_http(client):
    client.post("/api/v1/otp/send", json={"phoneNumber": PHONE})
    code = client.service.store.get(PHONE).code
    client.service.store.clock.advance(minutes=11)

    response = client.post("/api/v1/otp/verify", json={"phoneNumber": PHONE, "otp": code})
    assert response.status_code == 410
    assert response.json()["code"] == "deadline-exceeded"


def test_all_providers_failing_over_http(client):
    for provider in client.providers:
        provider.delivered = False

    response = client.post("/api/v1/otp/send", json={"phoneNumber": PHONE})
    assert response.status_code == 502
    assert response.json()["code"] == "internal"
    assert client.service.store.get(PHONE) is None


def test_health_reports_configured_providers(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["providersConfigured"] == ["log"]
    assert data["version"]
    assert data["timestamp"]


def test_provider_status(client):
    response = client.get("/api/v1/otp/providers")
    assert response.status_code == 200
    data = response.json()
    assert data["dryRun"] is True
    assert set(data["providers"]) == {"beem", "tigo", "twilio"}
    assert all(entry["status"] == "unknown" for entry in data["providers"].values())


def test_request_line_logs_client_and_echoes_request_id(client, caplog):
    caplog.set_level(logging.INFO, logger="app.requests")
    response = client.get(
        "/api/v1/health",
        headers={"x-request-id": "req-42", "x-forwarded-for": "41.59.0.10", "user-agent": "mtaa-android/2.1"},
    )

    assert response.headers["x-request-id"] == "req-42"
    lines = [record.getMessage() for record in caplog.records if record.name == "app.requests"]
    assert any(
        "GET /api/v1/health -> 200" in line and "ip=41.59.0.10" in line and "user_agent=mtaa-android/2.1" in line
        for line in lines
    )
