"""Beat forge: edit, add, remove, regenerate or surprise-insert outline beats.

Returns a proposed beat list; nothing is persisted here. Beats that survive keep their ids
so the caller can save the list through the normal beat editor.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from backend.app.core.agents.base import AgentLLM
from backend.app.core.errors import GenerationError, PrepValidationError
from backend.app.core.json_reliability import JSONReliabilityError, call_with_json_reliability
from shared.beats import delete_beat, index_of
from shared.schemas import Beat, BeatForgeOutput, ForgedBeat

logger = logging.getLogger(__name__)

FORGE_ACTIONS: tuple[str, ...] = ("edit", "add", "remove", "regenerate", "surprise")
FORGE_TONES: tuple[str, ...] = ("neutral", "dark", "heroic", "tragic", "whimsical", "cinematic")

SYSTEM_PROMPT = (
    "You are a Session Beat Forge, a narrative editor that refines or expands the key moments "
    '("beats") of a tabletop RPG session.\n\n'
    "When editing or adding beats:\n"
    "- Keep pacing and flow consistent between beats\n"
    "- Keep beats concise but cinematic (2-4 sentences each)\n"
    "- Respect the campaign's tone and existing narrative\n\n"
    'For "surprise": inject an unexpected but narratively plausible element without breaking story logic.\n\n'
    "Return ONLY valid JSON:\n"
    '{"session_title": "string", "updated_beats": [{"index": 1, "title": "Short title", '
    '"description": "Expanded paragraph", "tone": "tone"}], "ai_commentary": "How the change affects pacing"}\n'
    "updated_beats must list EVERY beat of the session in order, including unchanged ones."
)


@dataclass
class ForgeResult:
    session_title: str
    beats: list[Beat]
    ai_commentary: str
    changed_beat_ids: list[str] = field(default_factory=list)

    def to_wire(self) -> dict[str, Any]:
        return {
            "session_title": self.session_title,
            "beats": [b.model_dump() for b in self.beats],
            "changed_beat_ids": self.changed_beat_ids,
            "ai_commentary": self.ai_commentary,
        }


def _beats_text(beats: list[Beat]) -> str:
    return "\n".join(f"{i}. {b.title}: {b.description or ''}" for i, b in enumerate(beats, start=1))


def _apply_forged(beats: list[Beat], forged: list[ForgedBeat], action: str, target: int | None) -> tuple[list[Beat], list[str]]:
    """Map generator output back onto the beat list, preserving ids where positions line up."""

    def updated(beat: Beat, fb: ForgedBeat) -> Beat:
        return beat.model_copy(update={"title": fb.title, "description": fb.description or beat.description})

    def fresh(fb: ForgedBeat) -> Beat:
        return Beat(title=fb.title, description=fb.description or None)

    ordered = sorted(forged, key=lambda fb: fb.index)
    changed: list[str] = []

    if action in ("edit", "regenerate") and target is not None:
        if len(ordered) == 1:
            fb = ordered[0]
        elif len(ordered) == len(beats):
            fb = ordered[target]
        else:
            raise GenerationError("Beat forge returned an unexpected number of beats")
        out = list(beats)
        out[target] = updated(beats[target], fb)
        return out, [out[target].id]

    # add / surprise
    if len(ordered) == 1:
        new = fresh(ordered[0])
        return [*beats, new], [new.id]
    if len(ordered) == len(beats) + 1:
        out = [updated(b, fb) for b, fb in zip(beats, ordered)]
        changed = [b.id for b, nb in zip(beats, out) if b != nb]
        new = fresh(ordered[-1])
        return [*out, new], [*changed, new.id]
    raise GenerationError("Beat forge returned an unexpected number of beats")


class BeatForge:
    def __init__(self, llm: AgentLLM | None = None) -> None:
        self._llm = llm

    def forge(
        self,
        session_title: str,
        beats: list[Beat],
        action: str,
        beat_id: str | None = None,
        user_edit_text: str | None = None,
        tone: str = "neutral",
        session_goal: str | None = None,
        canon_context: str = "",
        campaign_id: str | None = None,
        warnings: list[str] | None = None,
    ) -> ForgeResult:
        if action not in FORGE_ACTIONS:
            raise PrepValidationError(f"action must be one of {', '.join(FORGE_ACTIONS)}")
        if tone not in FORGE_TONES:
            raise PrepValidationError(f"tone must be one of {', '.join(FORGE_TONES)}")

        target: int | None = None
        if action in ("edit", "regenerate", "remove"):
            if not beat_id:
                raise PrepValidationError(f"beatId is required for '{action}'")
            try:
                target = index_of(beats, beat_id)
            except KeyError as e:
                raise PrepValidationError("Beat not found in outline", {"beat_id": beat_id}) from e
        if action == "edit" and not (user_edit_text or "").strip():
            raise PrepValidationError("userEditText is required for 'edit'")

        if action == "remove":
            remaining = delete_beat(beats, beat_id)
            return ForgeResult(
                session_title=session_title,
                beats=remaining,
                ai_commentary=f"Removed beat {target + 1}. Remaining beats keep their order.",
            )

        prefix = f"{canon_context}\n\n" if canon_context else ""
        head = f"{prefix}Session: {session_title}\nCurrent beats:\n{_beats_text(beats)}\n\n"
        if action == "edit":
            ask = (
                f"Action: Edit beat {target + 1}\nNew text: {user_edit_text}\n\n"
                "Refine this beat while maintaining tone and story flow."
            )
        elif action == "regenerate":
            ask = (
                f"Action: Regenerate beat {target + 1} ({beats[target].title})\n"
                "Rebuild this beat with improved tension, pacing, or emotional impact."
            )
        elif action == "add":
            goal = f"Session goal: {session_goal}\n" if session_goal else ""
            ask = f"{goal}Action: Add a new beat after the last one that fits naturally."
        else:
            ask = "Action: Add a surprising new beat. Unexpected but narratively plausible."
        user = f"{head}{ask} Tone: {tone}"

        try:
            output = call_with_json_reliability(
                llm=self._llm,
                role="beat_forge",
                agent_name=f"BeatForge.{action}",
                campaign_id=campaign_id,
                system_prompt=SYSTEM_PROMPT,
                user_prompt=user,
                schema_class=BeatForgeOutput,
                validator_fn=lambda o: (bool(o.updated_beats), "no beats returned"),
                warnings=warnings,
            )
        except JSONReliabilityError as e:
            raise GenerationError("Failed to forge beats", {"reason": e.reason}) from e

        proposed, changed = _apply_forged(beats, output.updated_beats, action, target)
        logger.info("BeatForge %s: %d beats proposed (%d changed)", action, len(proposed), len(changed))
        return ForgeResult(
            session_title=output.session_title or session_title,
            beats=proposed,
            ai_commentary=output.ai_commentary,
            changed_beat_ids=changed,
        )
