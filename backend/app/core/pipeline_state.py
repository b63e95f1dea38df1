"""Prep pipeline state: derived stage (empty/outlined/converted) and guarded status transitions."""
from __future__ import annotations

from enum import Enum
from typing import Any

from backend.app.core.errors import PipelineStateError, PrepValidationError


class PrepStage(str, Enum):
    EMPTY = "empty"
    OUTLINED = "outlined"
    CONVERTED = "converted"


SESSION_STATUSES: tuple[str, ...] = ("draft", "ready", "completed")

# Allowed status moves; same-status updates are no-ops and always allowed.
STATUS_TRANSITIONS: dict[str, frozenset[str]] = {
    "draft": frozenset({"ready"}),
    "ready": frozenset({"draft", "completed"}),
    "completed": frozenset({"ready"}),
}


def outline_beat_count(session: dict[str, Any]) -> int:
    outline = session.get("outline") or {}
    return len(outline.get("beats") or [])


def derive_stage(beat_count: int, scene_count: int) -> PrepStage:
    if scene_count > 0:
        return PrepStage.CONVERTED
    if beat_count > 0:
        return PrepStage.OUTLINED
    return PrepStage.EMPTY


def session_stage(session: dict[str, Any], scene_count: int) -> PrepStage:
    return derive_stage(outline_beat_count(session), scene_count)


def require_convertible(session: dict[str, Any]) -> None:
    """Conversion needs an outline with at least one beat."""
    if outline_beat_count(session) == 0:
        raise PipelineStateError(
            "Session outline has no beats to convert",
            {"session_id": session.get("id"), "stage": session_stage(session, 0).value},
        )


def require_exportable(session: dict[str, Any], scene_count: int) -> None:
    """Export needs at least one scene; an empty scenes section is never produced."""
    if scene_count == 0:
        raise PipelineStateError(
            "Session has no scenes to export; convert the outline first",
            {"session_id": session.get("id"), "stage": session_stage(session, 0).value},
        )


def check_status_transition(current: str, target: str, scene_count: int) -> None:
    """Raise unless ``current -> target`` is allowed. ``ready`` requires at least one scene."""
    if target not in SESSION_STATUSES:
        raise PrepValidationError(
            f"status must be one of {', '.join(SESSION_STATUSES)}",
            {"status": target},
        )
    if target == current:
        return
    allowed = STATUS_TRANSITIONS.get(current, frozenset())
    if target not in allowed:
        raise PipelineStateError(
            f"Cannot move session from '{current}' to '{target}'",
            {"from": current, "to": target, "allowed": sorted(allowed)},
        )
    if target == "ready" and scene_count == 0:
        raise PipelineStateError(
            "Session needs at least one scene before it is ready",
            {"from": current, "to": target},
        )
