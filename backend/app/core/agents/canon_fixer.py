"""Canon fixer: apply accepted auto-fixes to draft text, returning the corrected text."""
from __future__ import annotations

import logging

from backend.app.core.agents.base import AgentLLM
from backend.app.core.errors import GenerationError, PrepValidationError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a D&D content editor. Apply the requested fixes to the content while preserving:\n"
    "- The overall narrative flow and structure\n"
    "- The DM's writing style and voice\n"
    "- Any unaffected sections (leave them exactly as-is)\n\n"
    "Only change what's necessary to implement the fixes. Return the corrected content as plain text, "
    "maintaining all formatting."
)


def _strip_fences(text: str) -> str:
    t = text.strip()
    if t.startswith("```"):
        t = t.split("\n", 1)[1] if "\n" in t else ""
        if t.rstrip().endswith("```"):
            t = t.rstrip()[:-3]
    return t.strip()


class CanonFixer:
    def __init__(self, llm: AgentLLM | None = None) -> None:
        self._llm = llm

    def apply(self, content: str, fixes: list[str]) -> str:
        if not (content or "").strip():
            raise PrepValidationError("Content is required")
        fixes = [f.strip() for f in fixes or [] if f and f.strip()]
        if not fixes:
            raise PrepValidationError("At least one fix is required")
        if self._llm is None:
            raise GenerationError("No LLM configured for canon fixes")
        fixes_list = "\n".join(f"{i}. {fix}" for i, fix in enumerate(fixes, start=1))
        user = (
            f"Original content:\n{content}\n\n"
            f"Apply these fixes:\n{fixes_list}\n\n"
            "Return the corrected version of the content."
        )
        try:
            corrected = self._llm.complete(SYSTEM_PROMPT, user)
        except Exception as e:
            logger.warning("CanonFixer: LLM call failed: %s", e)
            raise GenerationError("Failed to apply canon fixes", {"reason": str(e)}) from e
        corrected = _strip_fences(str(corrected))
        if not corrected:
            raise GenerationError("Canon fixer returned empty content")
        return corrected
