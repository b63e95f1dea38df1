"""Session summarizer: DM's raw table notes -> structured recap with player and DM views."""
from __future__ import annotations

import logging
from typing import Any

from backend.app.constants import SUMMARY_NOTES_MAX_CHARS
from backend.app.core.agents.base import AgentLLM
from backend.app.core.errors import GenerationError, PrepValidationError
from backend.app.core.json_reliability import JSONReliabilityError, call_with_json_reliability
from shared.schemas import SessionSummaryOutput

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You summarize tabletop RPG sessions from the DM's raw notes. Return ONLY valid JSON with keys: "
    "key_events (list), npcs (list of names), items (list), locations (list), consequences (list), "
    "memorable_moments (list), session_themes (list), player_view (recap safe to share with players, "
    "no secrets), dm_view (recap including hidden motives and plot threads), memory_tags (short tags "
    "for the campaign memory)."
)


class SessionSummarizer:
    def __init__(self, llm: AgentLLM | None = None) -> None:
        self._llm = llm

    def summarize(
        self,
        session: dict[str, Any],
        raw_notes: str,
        tone: str | None = None,
        include_player_view: bool = True,
        include_dm_view: bool = True,
        canon_context: str = "",
        warnings: list[str] | None = None,
    ) -> SessionSummaryOutput:
        if not (raw_notes or "").strip():
            raise PrepValidationError("Session notes are required to generate a summary")
        party = session.get("party_info") or {}
        lines = [
            "Generate a comprehensive session summary for a tabletop RPG campaign.",
            "",
            f"Campaign Context: {canon_context or 'No specific campaign context available'}",
            f"Session Title: {session.get('title', '')}",
            f"Session Date: {session.get('session_date') or 'Not specified'}",
        ]
        if party.get("level"):
            lines.append(f"Party Level: {party['level']}")
        if party.get("size"):
            lines.append(f"Party Size: {party['size']}")
        lines += [
            f"Requested Tone: {tone or 'Neutral'}",
            "",
            "Session Notes from DM:",
            raw_notes[:SUMMARY_NOTES_MAX_CHARS],
            "",
            "Generate the structured summary with all fields.",
        ]
        if not include_player_view:
            lines.append("Keep player_view brief since it was not requested.")
        if not include_dm_view:
            lines.append("Keep dm_view brief since it was not requested.")
        try:
            return call_with_json_reliability(
                llm=self._llm,
                role="summarizer",
                agent_name="SessionSummarizer.summarize",
                campaign_id=session.get("campaign_id"),
                system_prompt=SYSTEM_PROMPT,
                user_prompt="\n".join(lines),
                schema_class=SessionSummaryOutput,
                warnings=warnings,
            )
        except JSONReliabilityError as e:
            raise GenerationError("Failed to generate session summary", {"reason": e.reason}) from e
