"""Bearer-token middleware and structured error bodies."""
from unittest.mock import patch


def test_open_paths_without_token(client):
    with patch("backend.main.API_TOKEN", "secret"):
        assert client.get("/health").json() == {"status": "healthy"}
        assert client.get("/").json()["message"] == "Campaign Ally Prep API"


def test_missing_token_401(client):
    with patch("backend.main.API_TOKEN", "secret"):
        resp = client.get("/v2/campaigns/anything")
    assert resp.status_code == 401
    body = resp.json()
    assert body["error_code"] == "AUTH_HTTP_401"
    assert body["details"]["path"] == "/v2/campaigns/anything"


def test_bearer_and_api_key_accepted(client):
    with patch("backend.main.API_TOKEN", "secret"):
        camp = client.post("/v2/campaigns", json={"name": "Varn"}, headers={"Authorization": "Bearer secret"})
        assert camp.status_code == 200
        resp = client.get(f"/v2/campaigns/{camp.json()['id']}", headers={"X-API-Key": "secret"})
        assert resp.status_code == 200
        assert client.get("/v2/campaigns/x", headers={"Authorization": "Bearer wrong"}).status_code == 401


def test_auth_disabled_without_token(client):
    with patch("backend.main.API_TOKEN", ""):
        assert client.post("/v2/campaigns", json={"name": "Varn"}).status_code == 200
