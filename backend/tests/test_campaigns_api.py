"""Campaign API: campaigns, codex, memory entries."""


def _campaign(client) -> str:
    return client.post("/v2/campaigns", json={"name": "Ashes of Varn"}).json()["id"]


def test_create_and_get_campaign(client):
    resp = client.post("/v2/campaigns", json={"name": "  Ashes of Varn  "})
    assert resp.status_code == 200
    camp = resp.json()
    assert camp["name"] == "Ashes of Varn"
    assert client.get(f"/v2/campaigns/{camp['id']}").json()["id"] == camp["id"]


def test_blank_campaign_name_rejected(client):
    resp = client.post("/v2/campaigns", json={"name": " "})
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "CAMPAIGNS_HTTP_400"


def test_get_missing_campaign_404(client):
    assert client.get("/v2/campaigns/missing").status_code == 404


def test_codex_replace_wholesale(client):
    camp = _campaign(client)
    assert client.get(f"/v2/campaigns/{camp}/codex").json()["codex"] == {}

    client.put(
        f"/v2/campaigns/{camp}/codex",
        json={"premise": "A dying empire", "themes": ["loss"], "major_arcs": [{"title": "The Heir"}]},
    )
    client.put(f"/v2/campaigns/{camp}/codex", json={"pitch": "Heist fantasy"})

    codex = client.get(f"/v2/campaigns/{camp}/codex").json()["codex"]
    assert codex["pitch"] == "Heist fantasy"
    assert codex["premise"] is None
    assert codex["themes"] == []


def test_codex_bad_flair_level(client):
    camp = _campaign(client)
    resp = client.put(f"/v2/campaigns/{camp}/codex", json={"flair_level": "purple"})
    assert resp.status_code == 400


def test_memories_newest_first_and_filtered(client):
    camp = _campaign(client)
    for title, mtype in (("Mira", "npc"), ("Old Mill", "location"), ("Vow", "lore")):
        assert client.post(f"/v2/campaigns/{camp}/memories", json={"title": title, "type": mtype}).status_code == 200

    all_memories = client.get(f"/v2/campaigns/{camp}/memories").json()["memories"]
    assert [m["title"] for m in all_memories] == ["Vow", "Old Mill", "Mira"]

    npcs = client.get(f"/v2/campaigns/{camp}/memories", params={"type": "npc,location"}).json()["memories"]
    assert {m["title"] for m in npcs} == {"Mira", "Old Mill"}

    limited = client.get(f"/v2/campaigns/{camp}/memories", params={"limit": 1}).json()["memories"]
    assert len(limited) == 1


def test_memory_limit_bounds(client):
    camp = _campaign(client)
    assert client.get(f"/v2/campaigns/{camp}/memories", params={"limit": 0}).status_code == 422
    assert client.get(f"/v2/campaigns/{camp}/memories", params={"limit": 201}).status_code == 422


def test_delete_missing_memory_404(client):
    assert client.delete("/v2/memories/missing").status_code == 404


def test_delete_campaign_cascades(client):
    camp = client.post("/v2/campaigns", json={"name": "Varn"}).json()
    session = client.post("/v2/prep/sessions", json={"campaignId": camp["id"], "title": "Night One"}).json()
    client.post(f"/v2/campaigns/{camp['id']}/memories", json={"title": "Vex", "content": "Smuggler", "type": "npc"})

    resp = client.delete(f"/v2/campaigns/{camp['id']}")
    assert resp.status_code == 200
    assert client.get(f"/v2/campaigns/{camp['id']}").status_code == 404
    assert client.get(f"/v2/prep/sessions/{session['id']}").status_code == 404
    assert client.delete(f"/v2/campaigns/{camp['id']}").status_code == 404
