"""Store-level tests: sessions, scene merge/reorder, outline conversion, canon context."""
from __future__ import annotations

import pytest

from backend.app.core import campaign_store, scene_store, session_store
from backend.app.core.canon_context import build_prep_context
from backend.app.core.errors import NotFoundError, PipelineStateError, PrepValidationError
from backend.app.core.scene_converter import convert_outline_to_scenes


@pytest.fixture
def session(conn):
    camp = campaign_store.create_campaign(conn, "Varn")
    s = session_store.create_session(conn, camp["id"], "Night Market")
    conn.commit()
    return s


def _with_beats(conn, session, beats):
    return session_store.save_beats(conn, session["id"], beats)


def test_party_info_bounds(conn, session):
    with pytest.raises(PrepValidationError):
        session_store.update_session(conn, session["id"], {"party_info": {"level": 21, "size": 4}})
    with pytest.raises(PrepValidationError):
        session_store.update_session(conn, session["id"], {"party_info": {"level": 3, "size": 0}})
    updated = session_store.update_session(conn, session["id"], {"party_info": {"level": 20, "size": 10}})
    assert updated["party_info"] == {"level": 20, "size": 10}


def test_non_updatable_fields_rejected(conn, session):
    with pytest.raises(PrepValidationError):
        session_store.update_session(conn, session["id"], {"campaign_id": "other"})


def test_save_beats_keeps_outline_title(conn, session):
    session_store.save_outline(conn, session["id"], {"title": "Masks", "goals": ["Catch Vex"], "beats": []})
    updated = _with_beats(conn, session, [{"title": "A"}])
    assert updated["outline"]["title"] == "Masks"
    assert updated["outline"]["goals"] == ["Catch Vex"]
    assert [b["title"] for b in updated["outline"]["beats"]] == ["A"]


def test_convert_title_fallback(conn, session):
    s = _with_beats(conn, session, [{"id": "b1", "title": "  "}, {"id": "b2", "title": "Chase", "duration": 45}])
    result = convert_outline_to_scenes(conn, s)
    assert result.scenes_created == 2
    assert [sc["title"] for sc in result.scenes] == ["Scene 1", "Chase"]
    assert result.scenes[1]["data"]["estimatedDuration"] == "45 min"


def test_convert_requires_beats(conn, session):
    with pytest.raises(PipelineStateError):
        convert_outline_to_scenes(conn, session)


def test_convert_follows_beat_reorder(conn, session):
    s = _with_beats(conn, session, [{"id": "b1", "title": "A"}, {"id": "b2", "title": "B"}])
    first = convert_outline_to_scenes(conn, s)
    s = _with_beats(conn, s, [{"id": "b2", "title": "B"}, {"id": "b1", "title": "A"}])
    second = convert_outline_to_scenes(conn, s)
    assert second.scenes_created == 0
    assert [sc["id"] for sc in second.scenes] == [first.scenes[1]["id"], first.scenes[0]["id"]]
    assert [sc["index_order"] for sc in second.scenes] == [0, 1]


def test_reorder_and_rejection(conn, session):
    s = _with_beats(conn, session, [{"title": t} for t in ("A", "B", "C", "D")])
    ids = [sc["id"] for sc in convert_outline_to_scenes(conn, s).scenes]
    reordered = scene_store.reorder_scenes(conn, session["id"], list(reversed(ids)))
    assert [sc["title"] for sc in reordered] == ["D", "C", "B", "A"]
    with pytest.raises(PrepValidationError) as ctx:
        scene_store.reorder_scenes(conn, session["id"], ids[:3])
    assert ctx.value.details["problems"] == [f"missing ids: {ids[3]}"]


def test_patch_scene_ignores_none_fields(conn, session):
    s = _with_beats(conn, session, [{"title": "A"}])
    scene = convert_outline_to_scenes(conn, s).scenes[0]
    scene_store.patch_scene(conn, scene["id"], data={"npcs": ["Vex"], "mood": "tense"})
    patched = scene_store.patch_scene(conn, scene["id"], data={"npcs": None, "notes": "n"})
    assert patched["data"]["npcs"] == ["Vex"]
    assert patched["data"]["mood"] == "tense"
    assert patched["data"]["notes"] == "n"


def test_record_canon_check_unknown_scene(conn):
    with pytest.raises(NotFoundError):
        scene_store.record_canon_check(conn, "missing", 0.5)


def test_canon_context_codex_and_recent_memories(conn, session):
    camp_id = session["campaign_id"]
    assert build_prep_context(conn, camp_id) == ""
    campaign_store.upsert_codex(
        conn,
        camp_id,
        {"premise": "Dying empire", "flair_level": "rich", "major_arcs": [{"title": "The Heir", "status": "active"}]},
    )
    for i in range(3):
        campaign_store.create_memory(conn, camp_id, f"Memory {i}", content="x" * 1000, type="lore", tags=["t"])
    ctx = build_prep_context(conn, camp_id, memory_limit=2)
    assert ctx.startswith("# CAMPAIGN CODEX")
    assert "Premise: Dying empire" in ctx
    assert "Active Arcs: The Heir" in ctx
    assert "vivid descriptions" in ctx
    assert "## Memory 2 [lore]" in ctx
    assert "## Memory 1 [lore]" in ctx
    assert "Memory 0" not in ctx
    assert "x" * 401 not in ctx
