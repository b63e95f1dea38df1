"""Markdown export rendering (DM vs player)."""
from datetime import datetime, timezone

import pytest

from backend.app.core.export import export_filename, format_long_date, format_timestamp, render_session_markdown

SESSION = {
    "id": "s1",
    "title": "The Sunken Temple",
    "session_date": "2025-03-05",
    "party_info": {"level": 4, "size": 5},
    "premise": "The tide reveals a drowned shrine.",
    "outline": {
        "title": "The Sunken Temple",
        "goals": ["Reach the inner sanctum"],
        "beats": [{"id": "b1", "title": "Low tide", "duration": 30, "description": "The causeway opens."}],
    },
}

SCENES = [
    {
        "id": "sc1",
        "title": "Low tide",
        "index_order": 0,
        "data": {
            "boxedText": "Salt wind.\nGulls cry.",
            "npcs": ["Old Brannoc"],
            "skillChecks": ["DC 12 Athletics"],
            "contingencies": ["If they wait, the tide returns"],
            "rewards": {"gold": 25, "items": ["coral key", "pearl"]},
            "notes": "Brannoc lies about the tide tables.",
            "estimatedDuration": "20-30 min",
            "mood": "mysterious",
            "mapRequired": True,
        },
    },
    {"id": "sc2", "title": None, "index_order": 1, "data": {}},
]

EXPORTED_AT = datetime(2025, 3, 6, 19, 4, tzinfo=timezone.utc)


def test_dm_export_sections():
    md = render_session_markdown(SESSION, SCENES, "dm", exported_at=EXPORTED_AT)
    assert md.startswith("# The Sunken Temple\n\n")
    assert "**Date:** March 5, 2025" in md
    assert "**Party:** Level 4 | 5 players" in md
    assert "## Session Premise\n\nThe tide reveals a drowned shrine." in md
    assert "## Session Goals\n\n- Reach the inner sanctum" in md
    assert "### 1. Low tide (30 min)" in md
    assert "## Scenes (2)" in md
    assert "> Salt wind.\n> Gulls cry." in md
    assert "**Map Required:** Yes" in md
    assert "- DC 12 Athletics" in md
    assert "**Contingencies:**" in md
    assert "- **items:** coral key, pearl" in md
    assert "**DM Notes:**" in md
    assert "### 2. Scene 2" in md
    assert md.endswith("_Exported on March 6, 2025 7:04 PM_\n_Mode: Dungeon Master_\n")


def test_player_export_hides_dm_only_content():
    md = render_session_markdown(SESSION, SCENES, "player", exported_at=EXPORTED_AT)
    assert "DC 12 Athletics" not in md
    assert "**Skill Checks:** Various checks may be required" in md
    assert "Contingencies" not in md
    assert "coral key" not in md
    assert "- Treasure and rewards may be found here" in md
    assert "Brannoc lies" not in md
    assert "Old Brannoc" in md
    assert md.endswith("_Mode: Player_\n")


def test_scene_numbering_follows_given_order():
    reversed_scenes = [SCENES[1], SCENES[0]]
    md = render_session_markdown(SESSION, reversed_scenes, "dm", exported_at=EXPORTED_AT)
    assert md.index("### 1. Scene 1") < md.index("### 2. Low tide")


def test_bad_mode():
    with pytest.raises(ValueError):
        render_session_markdown(SESSION, SCENES, "gm")


def test_helpers():
    assert format_long_date("2025-12-01") == "December 1, 2025"
    assert format_long_date(None) is None
    assert format_long_date("someday") == "someday"
    assert format_timestamp(datetime(2025, 1, 2, 0, 15)) == "January 2, 2025 12:15 AM"
    assert export_filename({"title": "  "}, "player") == "session-player.md"
    assert export_filename({"title": "Fire & Ice!"}, "dm") == "fire-ice-dm.md"
