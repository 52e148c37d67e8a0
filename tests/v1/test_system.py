from wallet_sso.db.errors import AcquireTimeoutError


def _login(client, wallet) -> dict:
    challenge = client.post(
        "/api/v1/auth/challenge",
        json={"client_id": "demo-client", "address": wallet.address},
    ).json()
    code = client.post(
        "/api/v1/auth/verify",
        json={
            "signature": wallet.sign(challenge["message"]),
            "challenge_id": challenge["challenge_id"],
            "address": wallet.address,
            "code_verifier": challenge["code_verifier"],
            "state": challenge["state"],
        },
    ).json()["code"]
    return client.post("/api/v1/auth/token", json={"code": code, "client_id": "demo-client"}).json()


def test_stats_report_counts(client, wallet):
    _login(client, wallet)
    body = client.get("/api/v1/system/stats").json()

    assert body["sessions"] == {"active": 1, "total": 1}
    assert body["challenges"]["used"] == 1
    assert body["pool"]["in_use"] == 0
    assert body["pool"]["max"] == 5
    assert body["cache"]["enabled"] is False
    assert body["audit"]["by_action"]["token_issued"] == 1


def test_audit_is_scoped_to_caller(client, wallet, other_wallet):
    tokens = _login(client, wallet)
    _login(client, other_wallet)

    response = client.get(
        "/api/v1/system/audit",
        headers={"Authorization": f"Bearer {tokens['access_token']}"},
    )
    assert response.status_code == 200
    entries = response.json()
    assert {entry["user_address"] for entry in entries} == {wallet.address}
    assert [entry["action"] for entry in entries] == ["token_issued", "signature_verified", "challenge_generated"]
    assert entries[0]["user_agent"] == "testclient"


def test_audit_requires_authentication(client):
    assert client.get("/api/v1/system/audit").status_code == 401


def test_pool_exhaustion_maps_to_service_unavailable(client, mocker):
    container = client.app.state.container
    mocker.patch.object(
        container.challenges,
        "generate_challenge",
        side_effect=AcquireTimeoutError("Database connection timeout"),
    )
    response = client.post("/api/v1/auth/challenge", json={"client_id": "demo-client"})
    assert response.status_code == 503
    assert response.json()["error"] == "pool_acquire_timeout"
