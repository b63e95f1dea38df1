"""Canon checker: draft scene/outline text vs. campaign canon -> conflicts, warnings, suggestions, score."""
from __future__ import annotations

import logging

from backend.app.constants import CANON_CONTENT_MAX_CHARS
from backend.app.core.agents.base import AgentLLM
from backend.app.core.errors import GenerationError, PrepValidationError
from backend.app.core.json_reliability import JSONReliabilityError, call_with_json_reliability
from shared.schemas import CanonCheckResult

logger = logging.getLogger(__name__)

CONFLICT_TYPES: tuple[str, ...] = (
    "character_inconsistency",
    "location_error",
    "timeline_conflict",
    "lore_contradiction",
    "faction_error",
)
CONTENT_TYPES: tuple[str, ...] = ("scene", "outline")


def _system_prompt(content_type: str, canon_context: str) -> str:
    return (
        f"You are a D&D campaign continuity checker. Analyze the provided {content_type} content "
        "against the campaign's established canon (codex + memories).\n\n"
        f"# CAMPAIGN CANON\n{canon_context or 'No canon recorded yet.'}\n\n"
        "Your task:\n"
        "1. Identify conflicts with established canon (names, locations, faction alignments, timeline, lore)\n"
        "2. Flag warnings (unclear references, missing context)\n"
        "3. Suggest improvements for consistency and immersion\n"
        "4. Give an overall consistency score from 0 to 1 (1 = perfect alignment)\n\n"
        "Return ONLY valid JSON:\n"
        '{"conflicts": [{"type": "' + "|".join(CONFLICT_TYPES) + '", "severity": "high|medium|low", '
        '"canon": "What the canon says", "draft": "What the draft says", "suggestedFix": "How to fix it", '
        '"autoFixable": true}], "warnings": [], "suggestions": [], "overallScore": 0.85}\n\n'
        "High severity: major contradictions (wrong character alive/dead, impossible timeline).\n"
        "Medium severity: minor inconsistencies (personality shift, location details).\n"
        "Low severity: style mismatches or unclear references.\n"
        "autoFixable is true only for simple find-and-replace fixes."
    )


class CanonChecker:
    """Runs one consistency check. The result is ephemeral; callers persist only the score."""

    def __init__(self, llm: AgentLLM | None = None) -> None:
        self._llm = llm

    def check(
        self,
        content: str,
        content_type: str,
        canon_context: str = "",
        campaign_id: str | None = None,
        scene_id: str | None = None,
        warnings: list[str] | None = None,
    ) -> CanonCheckResult:
        if not (content or "").strip():
            raise PrepValidationError("Content is required for a canon check")
        if content_type not in CONTENT_TYPES:
            raise PrepValidationError(f"type must be one of {', '.join(CONTENT_TYPES)}")
        try:
            result = call_with_json_reliability(
                llm=self._llm,
                role="canon_checker",
                agent_name="CanonChecker.check",
                campaign_id=campaign_id,
                system_prompt=_system_prompt(content_type, canon_context),
                user_prompt=f"Check this {content_type} for canon consistency:\n\n{content[:CANON_CONTENT_MAX_CHARS]}",
                schema_class=CanonCheckResult,
                warnings=warnings,
            )
        except JSONReliabilityError as e:
            raise GenerationError("Failed to check canon consistency", {"reason": e.reason}) from e
        if scene_id:
            conflicts = [
                c if c.affected_scene_ids else c.model_copy(update={"affected_scene_ids": [scene_id]})
                for c in result.conflicts
            ]
            result = result.model_copy(update={"conflicts": conflicts})
        logger.info(
            "CanonChecker: %d conflicts, score=%.2f (campaign_id=%s)",
            len(result.conflicts), result.overall_score, campaign_id,
        )
        return result
