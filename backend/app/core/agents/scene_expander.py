"""Scene expander: beat -> read-aloud text, NPCs, checks, rewards, mood, merged into scene data."""
from __future__ import annotations

import json
import logging
from typing import Any

from backend.app.core.agents.base import AgentLLM
from backend.app.core.errors import GenerationError
from backend.app.core.json_reliability import JSONReliabilityError, call_with_json_reliability
from shared.schemas import SceneData, SceneDetailOutput

logger = logging.getLogger(__name__)


def _system_prompt(canon_context: str) -> str:
    context = f"# CAMPAIGN CONTEXT\n{canon_context}\n\n" if canon_context else ""
    return (
        "You are an expert D&D Dungeon Master assistant. Expand a session beat into a detailed scene "
        "for the DM to run.\n\n"
        f"{context}"
        "Create a detailed scene with:\n"
        "- boxedText: read-aloud text (2-4 evocative sentences)\n"
        "- npcs: names of NPCs in the scene\n"
        '- skillChecks: check descriptions (e.g. "DC 15 Perception to notice the hidden passage")\n'
        "- contingencies: backup plans if players go off-script\n"
        "- rewards: object with keys like gold, items, xp, information\n"
        "- notes: DM tips, lore, reminders\n"
        '- estimatedDuration: e.g. "20-30 min"\n'
        "- mood: one of tense, mysterious, lighthearted, dramatic, balanced\n"
        "- mapRequired: whether a battle map is needed\n"
        "- relatedMemories: leave empty; the DM links memories manually\n\n"
        "Return ONLY valid JSON:\n"
        '{"boxedText": "", "npcs": [], "skillChecks": [], "contingencies": [], '
        '"rewards": {"gold": 0, "items": [], "xp": 0}, "notes": "", "estimatedDuration": "", '
        '"mood": "balanced", "mapRequired": false, "relatedMemories": []}'
    )


def _is_filled(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, dict)):
        return bool(value)
    return True


def merge_generated_detail(existing: SceneData, generated: SceneDetailOutput) -> SceneData:
    """Merge generator output into existing scene data.

    Present, non-empty generated fields overwrite; absent or empty ones leave the stored value;
    related memories are the order-preserving union of stored and generated ids.
    """
    updates: dict[str, Any] = {}
    for name, value in generated.model_dump(exclude={"related_memories"}).items():
        if _is_filled(value):
            updates[name] = value
    memories = list(dict.fromkeys([*existing.related_memories, *(generated.related_memories or [])]))
    updates["related_memories"] = memories
    return existing.model_copy(update=updates)


class SceneExpander:
    """Expands one scene from its originating beat. Not idempotent: each call yields fresh flavor."""

    def __init__(self, llm: AgentLLM | None = None) -> None:
        self._llm = llm

    def expand(
        self,
        beat: dict[str, Any],
        canon_context: str = "",
        campaign_id: str | None = None,
        warnings: list[str] | None = None,
    ) -> SceneDetailOutput:
        user = f"Expand this beat into a detailed scene:\n\n{json.dumps(beat, indent=2)}"
        try:
            return call_with_json_reliability(
                llm=self._llm,
                role="scene_expander",
                agent_name="SceneExpander.expand",
                campaign_id=campaign_id,
                system_prompt=_system_prompt(canon_context),
                user_prompt=user,
                schema_class=SceneDetailOutput,
                warnings=warnings,
            )
        except JSONReliabilityError as e:
            raise GenerationError("Failed to generate scene details", {"reason": e.reason}) from e
