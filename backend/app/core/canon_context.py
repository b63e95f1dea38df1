"""Canon context for prompts: campaign codex summary plus recent memory entries."""
from __future__ import annotations

import json
import sqlite3
from typing import Any

from backend.app.constants import MEMORY_CONTENT_PREVIEW_CHARS
from backend.app.core.campaign_store import list_memories, load_codex

FLAIR_INSTRUCTIONS: dict[str, str] = {
    "minimal": "Be concise and direct. Focus on essential facts and mechanics. Avoid flowery language.",
    "balanced": "Use moderate detail with some descriptive elements. Balance practicality with atmosphere.",
    "rich": "Include vivid descriptions and atmospheric details. Make the content immersive and evocative.",
    "verbose": (
        "Provide highly detailed, elaborate descriptions with rich sensory details and deep lore. "
        "Create a fully immersive experience."
    ),
}


def flair_instructions(level: str | None) -> str:
    return FLAIR_INSTRUCTIONS.get(level or "balanced", FLAIR_INSTRUCTIONS["balanced"])


def _join(values: Any, sep: str = ", ") -> str:
    if not isinstance(values, list):
        return ""
    return sep.join(str(v) for v in values if v)


def render_codex(codex: dict[str, Any] | None) -> str:
    """Compact codex block; empty string when the campaign has no codex."""
    if not codex:
        return ""
    arcs = codex.get("major_arcs") or []
    active_arcs = ", ".join(
        a.get("title", "") for a in arcs if isinstance(a, dict) and a.get("status") == "active"
    )
    lines = [
        "# CAMPAIGN CODEX",
        f"Elevator Pitch: {codex.get('pitch') or ''}",
        f"Premise: {codex.get('premise') or ''}",
        f"Themes: {_join(codex.get('themes'))}",
        f"Tone: {json.dumps(codex.get('tone') or {})}",
        f"Pillars: {_join(codex.get('pillars'), ' | ')}",
        f"Style: {codex.get('narrative_voice') or 'cinematic'}, {codex.get('pacing_preference') or 'balanced'}",
        f"Descriptive Detail: {flair_instructions(codex.get('flair_level'))}",
        f"House Rules: {codex.get('house_rules') or ''}",
        f"Banned: {_join(codex.get('banned_content'))}",
        f"Active Arcs: {active_arcs}",
    ]
    return "\n".join(lines)


def render_memories(memories: list[dict[str, Any]]) -> str:
    blocks = []
    for memory in memories:
        parts = [f"## {memory.get('title', '')} [{memory.get('type', '')}]"]
        tags = _join(memory.get("tags"))
        if tags:
            parts.append(f"Tags: {tags}")
        content = (memory.get("content") or "")[:MEMORY_CONTENT_PREVIEW_CHARS]
        if content:
            parts.append(content)
        blocks.append("\n".join(parts))
    return "\n\n".join(blocks)


def build_ai_context(conn: sqlite3.Connection, campaign_id: str) -> str:
    return render_codex(load_codex(conn, campaign_id))


def build_prep_context(
    conn: sqlite3.Connection,
    campaign_id: str,
    include_memories: bool = True,
    memory_limit: int = 10,
    memory_types: list[str] | None = None,
) -> str:
    """Codex block followed by the most recent memories (newest first)."""
    codex_context = build_ai_context(conn, campaign_id)
    if not include_memories:
        return codex_context
    memories = list_memories(conn, campaign_id, limit=memory_limit, memory_types=memory_types)
    if not memories:
        return codex_context
    memory_section = render_memories(memories)
    return f"{codex_context}\n\n# RELEVANT MEMORIES\n{memory_section}".strip()
