"""Outline generator: premise + party -> session outline (title, goals, 3-6 beats)."""
from __future__ import annotations

import logging

from backend.app.constants import OUTLINE_MAX_BEATS, OUTLINE_MIN_BEATS
from backend.app.core.agents.base import AgentLLM
from backend.app.core.errors import GenerationError, PrepValidationError
from backend.app.core.json_reliability import JSONReliabilityError, call_with_json_reliability
from shared.schemas import Outline, PartyInfo, new_beat_id

logger = logging.getLogger(__name__)


def _system_prompt(party: PartyInfo, canon_context: str) -> str:
    context = f"# CAMPAIGN CONTEXT\n{canon_context}\n\n" if canon_context else ""
    return (
        "You are an expert D&D Dungeon Master assistant. Generate a structured session outline "
        "for a 2-3 hour tabletop session.\n\n"
        f"{context}"
        "Create an outline with:\n"
        "- A compelling title\n"
        f"- {OUTLINE_MIN_BEATS}-{OUTLINE_MAX_BEATS} story beats that flow naturally\n"
        "- Each beat: title, description, estimated duration (minutes), key objectives, potential challenges\n\n"
        "The outline should:\n"
        "- Honor the campaign's tone, themes, and established canon\n"
        f"- Suit a party of {party.size} level {party.level} characters\n"
        "- Build tension and mix roleplay, combat, and exploration\n"
        "- Total 120-180 minutes\n\n"
        "Return ONLY valid JSON matching this structure:\n"
        '{"title": "Session title", "goals": ["primary goal", "secondary goal"], '
        '"beats": [{"title": "Beat title", "description": "What happens", "duration": 30, '
        '"objectives": ["objective"], "challenges": ["challenge"]}]}'
    )


def _has_beats(outline: Outline) -> tuple[bool, str]:
    if not outline.beats:
        return False, "outline has no beats"
    if any(not (b.title or "").strip() for b in outline.beats):
        return False, "every beat needs a title"
    return True, ""


class OutlineGenerator:
    """Produces a new outline that replaces any prior outline wholesale."""

    def __init__(self, llm: AgentLLM | None = None) -> None:
        self._llm = llm

    def generate(
        self,
        premise: str,
        party_info: PartyInfo,
        canon_context: str = "",
        campaign_id: str | None = None,
        warnings: list[str] | None = None,
    ) -> Outline:
        premise = (premise or "").strip()
        if not premise:
            raise PrepValidationError("Premise is required to generate an outline")
        try:
            outline = call_with_json_reliability(
                llm=self._llm,
                role="outline",
                agent_name="OutlineGenerator.generate",
                campaign_id=campaign_id,
                system_prompt=_system_prompt(party_info, canon_context),
                user_prompt=f"Create a session outline for the following premise:\n\n{premise}",
                schema_class=Outline,
                validator_fn=_has_beats,
                warnings=warnings,
            )
        except JSONReliabilityError as e:
            raise GenerationError("Failed to generate outline", {"reason": e.reason}) from e
        # Generated beats always get fresh ids.
        beats = [b.model_copy(update={"id": new_beat_id()}) for b in outline.beats]
        logger.info("OutlineGenerator: %d beats for campaign %s", len(beats), campaign_id)
        return outline.model_copy(update={"beats": beats})
