"""Markdown export of a session and its scenes (DM or player variant). Pure rendering."""
from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Any, Iterable

from shared.schemas import Outline, SceneData

MODE_LABELS: dict[str, str] = {"dm": "Dungeon Master", "player": "Player"}
EXPORT_MODES: tuple[str, ...] = tuple(MODE_LABELS)


def format_long_date(value: str | date | None) -> str | None:
    """``2025-03-05`` -> ``March 5, 2025``; unparseable strings are returned as-is."""
    if not value:
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    return f"{value:%B} {value.day}, {value.year}"


def format_timestamp(value: datetime) -> str:
    """``March 5, 2025 7:04 PM``."""
    hour = value.hour % 12 or 12
    return f"{format_long_date(value)} {hour}:{value:%M} {value:%p}"


def _bullets(items: Iterable[Any]) -> str:
    return "".join(f"- {item}\n" for item in items)


def _reward_value(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    return str(value)


def render_scene(position: int, scene: dict[str, Any], mode: str) -> str:
    data = SceneData.model_validate(scene.get("data") or {})
    title = scene.get("title") or f"Scene {position}"
    out = f"### {position}. {title}\n\n"

    if data.estimated_duration:
        out += f"**Duration:** {data.estimated_duration}\n"
    if data.mood:
        out += f"**Mood:** {data.mood}\n"
    if data.map_required:
        out += "**Map Required:** Yes\n"
    out += "\n"

    if data.boxed_text:
        out += "> " + "\n> ".join(data.boxed_text.split("\n")) + "\n\n"

    if data.npcs:
        out += "**NPCs:**\n" + _bullets(data.npcs) + "\n"

    if data.skill_checks:
        if mode == "dm":
            out += "**Skill Checks:**\n" + _bullets(data.skill_checks) + "\n"
        else:
            out += "**Skill Checks:** Various checks may be required\n\n"

    if mode == "dm" and data.contingencies:
        out += "**Contingencies:**\n" + _bullets(data.contingencies) + "\n"

    if data.rewards:
        out += "**Rewards:**\n"
        if mode == "dm":
            for key, value in data.rewards.items():
                out += f"- **{key}:** {_reward_value(value)}\n"
        else:
            out += "- Treasure and rewards may be found here\n"
        out += "\n"

    if mode == "dm" and data.notes:
        out += f"**DM Notes:**\n\n{data.notes}\n\n"

    out += "---\n\n"
    return out


def render_session_markdown(
    session: dict[str, Any],
    scenes: list[dict[str, Any]],
    mode: str = "dm",
    exported_at: datetime | None = None,
) -> str:
    """Render the whole session in one pass. ``scenes`` must already be in index order."""
    if mode not in MODE_LABELS:
        raise ValueError(f'Mode must be "dm" or "player", got {mode!r}')
    exported_at = exported_at or datetime.now(timezone.utc)
    out = f"# {session.get('title', '')}\n\n"

    long_date = format_long_date(session.get("session_date"))
    if long_date:
        out += f"**Date:** {long_date}\n\n"

    party = session.get("party_info")
    if party:
        out += f"**Party:** Level {party.get('level')} | {party.get('size')} players\n\n"

    out += "---\n\n"

    if session.get("premise"):
        out += f"## Session Premise\n\n{session['premise']}\n\n"

    outline = Outline.model_validate(session.get("outline") or {})
    if outline.goals:
        out += "## Session Goals\n\n" + _bullets(outline.goals) + "\n"

    if outline.beats:
        out += "## Outline Beats\n\n"
        for idx, beat in enumerate(outline.beats, start=1):
            out += f"### {idx}. {beat.title}"
            if beat.duration:
                out += f" ({beat.duration} min)"
            out += "\n\n"
            if beat.description:
                out += f"{beat.description}\n\n"

    out += "---\n\n"
    out += f"## Scenes ({len(scenes)})\n\n"
    for position, scene in enumerate(scenes, start=1):
        out += render_scene(position, scene, mode)

    out += f"\n_Exported on {format_timestamp(exported_at)}_\n"
    out += f"_Mode: {MODE_LABELS[mode]}_\n"
    return out


def export_filename(session: dict[str, Any], mode: str) -> str:
    """Filesystem-safe download name, e.g. ``the-dragon-s-lair-dm.md``."""
    slug = re.sub(r"[^a-z0-9]+", "-", (session.get("title") or "session").lower()).strip("-") or "session"
    return f"{slug}-{mode}.md"
