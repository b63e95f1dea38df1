"""AI prep API with generators stubbed: outline, expand, canon check/fixes, beat forge, summary."""
from __future__ import annotations

import json
from unittest.mock import patch

from backend.app.core.errors import GenerationError
from shared.schemas import Beat, CanonCheckResult, CanonConflict, Outline, SceneDetailOutput, SessionSummaryOutput


class FakeLLM:
    """Returns queued responses in order; records prompts."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def complete(self, system_prompt, user_prompt, json_mode=False):
        self.calls.append((system_prompt, user_prompt))
        return self.responses.pop(0)


def _setup(client, convert: bool = False):
    camp = client.post("/v2/campaigns", json={"name": "Varn"}).json()["id"]
    session = client.post("/v2/prep/sessions", json={"campaignId": camp, "title": "Night Market"}).json()
    beats = [{"id": "b1", "title": "Arrival"}, {"id": "b2", "title": "The Theft"}, {"id": "b3", "title": "Chase"}]
    client.put(f"/v2/prep/sessions/{session['id']}/beats", json={"beats": beats})
    scenes = []
    if convert:
        scenes = client.post("/v2/prep/convert-to-scenes", json={"sessionId": session["id"]}).json()["scenes"]
    return camp, session["id"], scenes


# ---------------------------------------------------------------------------
# Outline
# ---------------------------------------------------------------------------


def test_outline_replaces_stored_outline(client):
    camp, sid, _ = _setup(client)
    generated = Outline(title="Smoke and Mirrors", goals=["Find the thief"], beats=[Beat(title="Alley"), Beat(title="Roof")])
    with patch("backend.app.api.ai_prep.OutlineGenerator") as gen:
        gen.return_value.generate.return_value = generated
        resp = client.post(
            "/v2/ai/prep/outline",
            json={"campaignId": camp, "sessionId": sid, "premise": "A masked thief", "partyInfo": {"level": 5, "size": 3}},
        )
    assert resp.status_code == 200, resp.text
    outline = resp.json()["outline"]
    assert [b["title"] for b in outline["beats"]] == ["Alley", "Roof"]

    session = client.get(f"/v2/prep/sessions/{sid}").json()
    assert session["premise"] == "A masked thief"
    assert session["party_info"] == {"level": 5, "size": 3}
    assert session["outline"]["title"] == "Smoke and Mirrors"


def test_outline_session_in_other_campaign_404(client):
    _, sid, _ = _setup(client)
    other = client.post("/v2/campaigns", json={"name": "Other"}).json()["id"]
    with patch("backend.app.api.ai_prep.OutlineGenerator") as gen:
        resp = client.post("/v2/ai/prep/outline", json={"campaignId": other, "sessionId": sid, "premise": "x"})
        gen.return_value.generate.assert_not_called()
    assert resp.status_code == 404


def test_outline_generation_failure_keeps_old_outline(client):
    camp, sid, _ = _setup(client)
    with patch("backend.app.api.ai_prep.OutlineGenerator") as gen:
        gen.return_value.generate.side_effect = GenerationError("Failed to generate outline")
        resp = client.post("/v2/ai/prep/outline", json={"campaignId": camp, "sessionId": sid, "premise": "x"})
    assert resp.status_code == 502
    assert resp.json()["error_code"] == "AI_HTTP_502"
    beats = client.get(f"/v2/prep/sessions/{sid}").json()["outline"]["beats"]
    assert [b["id"] for b in beats] == ["b1", "b2", "b3"]


def test_outline_blank_premise_400(client):
    camp, sid, _ = _setup(client)
    resp = client.post("/v2/ai/prep/outline", json={"campaignId": camp, "sessionId": sid, "premise": "  "})
    assert resp.status_code == 400


def test_outline_through_generator_with_fake_llm(client):
    camp, sid, _ = _setup(client)
    payload = {"title": "T", "goals": [], "beats": [{"title": "One", "duration": "20 min"}, {"title": "Two"}]}
    llm = FakeLLM("not json", json.dumps(payload))
    with patch("backend.app.api.ai_prep.AgentLLM", return_value=llm):
        resp = client.post("/v2/ai/prep/outline", json={"campaignId": camp, "sessionId": sid, "premise": "Heist"})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert [b["duration"] for b in body["outline"]["beats"]] == [20, None]
    assert len(llm.calls) == 2
    assert body["warnings"] == ["Outline JSON parse failed: repaired output used."]


def test_premise_to_reordered_scenes(client):
    camp = client.post("/v2/campaigns", json={"name": "Varn"}).json()["id"]
    sid = client.post("/v2/prep/sessions", json={"campaignId": camp, "title": "Dragon's Lair"}).json()["id"]
    generated = Outline(
        title="The Dragon's Lair",
        beats=[Beat(title="Tavern rumor"), Beat(title="Forest ambush"), Beat(title="The lair")],
    )
    with patch("backend.app.api.ai_prep.OutlineGenerator") as gen:
        gen.return_value.generate.return_value = generated
        resp = client.post(
            "/v2/ai/prep/outline",
            json={"campaignId": camp, "sessionId": sid, "premise": "Heroes track a dragon to its lair"},
        )
    assert resp.status_code == 200, resp.text
    beats = resp.json()["outline"]["beats"]

    converted = client.post("/v2/prep/convert-to-scenes", json={"sessionId": sid}).json()
    assert converted["scenesCreated"] == len(beats) == 3
    ids = [s["id"] for s in converted["scenes"]]

    swapped = [ids[2], ids[1], ids[0]]
    resp = client.post("/v2/prep/scenes/reorder", json={"sessionId": sid, "sceneIds": swapped})
    assert resp.status_code == 200, resp.text
    scenes = client.get("/v2/prep/scenes", params={"sessionId": sid}).json()["scenes"]
    assert [s["id"] for s in scenes] == swapped
    assert [s["title"] for s in scenes] == ["The lair", "Forest ambush", "Tavern rumor"]
    assert [s["index_order"] for s in scenes] == [0, 1, 2]


# ---------------------------------------------------------------------------
# Expand scene
# ---------------------------------------------------------------------------


def test_expand_scene_merges_into_scene(client):
    camp, sid, scenes = _setup(client, convert=True)
    scene_id = scenes[1]["id"]
    client.patch(f"/v2/prep/scenes/{scene_id}", json={"data": {"notes": "keep me", "relatedMemories": ["m1"]}})
    generated = SceneDetailOutput(boxed_text="Lanterns sway.", npcs=["Vex"], notes="", related_memories=["m2", "m1"])
    with patch("backend.app.api.ai_prep.SceneExpander") as exp:
        exp.return_value.expand.return_value = generated
        resp = client.post(
            "/v2/ai/prep/expand-scene",
            json={"campaignId": camp, "sessionId": sid, "sceneId": scene_id, "useCanon": False},
        )
        beat_arg = exp.return_value.expand.call_args.args[0]
    assert resp.status_code == 200, resp.text
    data = resp.json()["scene"]["data"]
    assert data["boxedText"] == "Lanterns sway."
    assert data["npcs"] == ["Vex"]
    assert data["notes"] == "keep me"
    assert data["relatedMemories"] == ["m1", "m2"]
    assert beat_arg["id"] == "b2"


def test_expand_scene_from_other_session_404(client):
    camp, sid, scenes = _setup(client, convert=True)
    other = client.post("/v2/prep/sessions", json={"campaignId": camp, "title": "Other"}).json()["id"]
    with patch("backend.app.api.ai_prep.SceneExpander"):
        resp = client.post(
            "/v2/ai/prep/expand-scene",
            json={"campaignId": camp, "sessionId": other, "sceneId": scenes[0]["id"]},
        )
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Canon check and fixes
# ---------------------------------------------------------------------------


def _report(score: float) -> CanonCheckResult:
    return CanonCheckResult(
        conflicts=[CanonConflict(severity="high", canon="Mira is dead", draft="Mira greets you", suggested_fix="Use her sister", auto_fixable=True)],
        overall_score=score,
    )


def test_canon_check_records_passing_score(client):
    camp, _, scenes = _setup(client, convert=True)
    scene_id = scenes[0]["id"]
    with patch("backend.app.api.ai_prep.CanonChecker") as checker:
        checker.return_value.check.return_value = _report(0.9)
        resp = client.post("/v2/ai/prep/canon-check", json={"campaignId": camp, "content": "Mira greets you", "sceneId": scene_id})
    assert resp.status_code == 200
    body = resp.json()
    assert body["overallScore"] == 0.9
    assert body["conflicts"][0]["suggestedFix"] == "Use her sister"
    assert body["conflicts"][0]["autoFixable"] is True
    scene = client.get(f"/v2/prep/scenes/{scene_id}").json()
    assert scene["canon_checked"] is True
    assert scene["last_canon_score"] == 0.9
    assert scene["last_canon_checked_at"]


def test_canon_check_low_score_not_checked(client):
    camp, _, scenes = _setup(client, convert=True)
    scene_id = scenes[0]["id"]
    with patch("backend.app.api.ai_prep.CanonChecker") as checker:
        checker.return_value.check.return_value = _report(0.4)
        client.post("/v2/ai/prep/canon-check", json={"campaignId": camp, "content": "x", "sceneId": scene_id})
    scene = client.get(f"/v2/prep/scenes/{scene_id}").json()
    assert scene["canon_checked"] is False
    assert scene["last_canon_score"] == 0.4


def test_canon_check_unknown_scene_still_returns_report(client):
    camp, _, _ = _setup(client)
    with patch("backend.app.api.ai_prep.CanonChecker") as checker:
        checker.return_value.check.return_value = _report(0.8)
        resp = client.post("/v2/ai/prep/canon-check", json={"campaignId": camp, "content": "x", "sceneId": "gone"})
    assert resp.status_code == 200
    assert resp.json()["overallScore"] == 0.8


def test_canon_check_blank_content_never_calls_checker(client):
    camp, _, _ = _setup(client)
    with patch("backend.app.api.ai_prep.CanonChecker") as checker:
        resp = client.post("/v2/ai/prep/canon-check", json={"campaignId": camp, "content": "  "})
        checker.assert_not_called()
    assert resp.status_code == 400


def test_apply_canon_fixes_returns_text_only(client):
    camp, _, scenes = _setup(client, convert=True)
    with patch("backend.app.api.ai_prep.CanonFixer") as fixer:
        fixer.return_value.apply.return_value = "Mira's sister greets you"
        resp = client.post("/v2/ai/prep/apply-canon-fixes", json={"content": "Mira greets you", "fixes": ["Use her sister"]})
    assert resp.status_code == 200
    assert resp.json() == {"corrected": "Mira's sister greets you"}
    assert client.get(f"/v2/prep/scenes/{scenes[0]['id']}").json()["data"]["boxedText"] == ""


def test_apply_canon_fixes_requires_fixes(client):
    resp = client.post("/v2/ai/prep/apply-canon-fixes", json={"content": "text", "fixes": []})
    assert resp.status_code == 400


# ---------------------------------------------------------------------------
# Beat forge
# ---------------------------------------------------------------------------


def test_edit_beat_remove_is_not_persisted(client):
    _, sid, _ = _setup(client)
    resp = client.post("/v2/ai/prep/edit-beat", json={"sessionId": sid, "action": "remove", "beatId": "b2"})
    assert resp.status_code == 200
    assert [b["id"] for b in resp.json()["beats"]] == ["b1", "b3"]
    stored = client.get(f"/v2/prep/sessions/{sid}").json()["outline"]["beats"]
    assert [b["id"] for b in stored] == ["b1", "b2", "b3"]


def test_edit_beat_keeps_target_id(client):
    _, sid, _ = _setup(client)
    forged = {"session_title": "Night Market", "updated_beats": [{"index": 2, "title": "The Heist", "description": "Quick hands."}], "ai_commentary": "Tighter."}
    llm = FakeLLM(json.dumps(forged))
    with patch("backend.app.api.ai_prep.AgentLLM", return_value=llm):
        resp = client.post(
            "/v2/ai/prep/edit-beat",
            json={"sessionId": sid, "action": "edit", "beatId": "b2", "userEditText": "Make it a heist"},
        )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert [b["id"] for b in body["beats"]] == ["b1", "b2", "b3"]
    assert body["beats"][1]["title"] == "The Heist"
    assert body["changed_beat_ids"] == ["b2"]
    assert body["ai_commentary"] == "Tighter."


def test_edit_beat_validation(client):
    _, sid, _ = _setup(client)
    bad = [
        {"sessionId": sid, "action": "explode"},
        {"sessionId": sid, "action": "edit", "beatId": "b1"},
        {"sessionId": sid, "action": "regenerate", "beatId": "nope"},
        {"sessionId": sid, "action": "add", "tone": "grimdark"},
    ]
    for body in bad:
        assert client.post("/v2/ai/prep/edit-beat", json=body).status_code == 400, body


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------


def test_summary_stored_on_session(client):
    _, sid, _ = _setup(client)
    with patch("backend.app.api.prep.SessionSummarizer") as summ:
        summ.return_value.summarize.return_value = SessionSummaryOutput(key_events=["The thief escaped"], npcs=["Vex"])
        resp = client.post(f"/v2/prep/sessions/{sid}/summary", json={"rawNotes": "Vex got away over the roofs", "tone": "dramatic"})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["summary"]["key_events"] == ["The thief escaped"]
    assert body["summary"]["raw_notes"] == "Vex got away over the roofs"
    assert body["summary_generated_at"]
    assert client.get(f"/v2/prep/sessions/{sid}").json()["summary"]["npcs"] == ["Vex"]


def test_summary_blank_notes_400(client):
    _, sid, _ = _setup(client)
    with patch("backend.app.api.prep.SessionSummarizer") as summ:
        resp = client.post(f"/v2/prep/sessions/{sid}/summary", json={"rawNotes": "   "})
        summ.assert_not_called()
    assert resp.status_code == 400
