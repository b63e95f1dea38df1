"""Beat list operations keyed by stable beat id.

All functions are pure: they return a new list and never mutate their input.
"""
from __future__ import annotations

from typing import Any, Iterable

from shared.ordering import move_item
from shared.schemas import Beat, new_beat_id


class BeatNotFoundError(KeyError):
    """Raised when a beat id is not present in the list."""

    def __init__(self, beat_id: str) -> None:
        self.beat_id = beat_id
        super().__init__(f"Beat not found: {beat_id}")


def coerce_beats(raw: Iterable[Any] | None) -> list[Beat]:
    """Validate a raw beat list (dicts or Beat), assigning ids to beats that lack one.

    Duplicate ids are reassigned so the list stays keyable.
    """
    out: list[Beat] = []
    seen: set[str] = set()
    for item in raw or []:
        if isinstance(item, Beat):
            beat = item.model_copy()
        else:
            data = dict(item or {})
            if not data.get("id"):
                data.pop("id", None)
            beat = Beat.model_validate(data)
        if beat.id in seen:
            beat = beat.model_copy(update={"id": new_beat_id()})
        seen.add(beat.id)
        out.append(beat)
    return out


def ensure_beat_ids(beats: Iterable[Any] | None) -> list[Beat]:
    return coerce_beats(beats)


def index_of(beats: list[Beat], beat_id: str) -> int:
    for i, beat in enumerate(beats):
        if beat.id == beat_id:
            return i
    raise BeatNotFoundError(beat_id)


def add_beat(beats: list[Beat], new_beat: Beat | dict[str, Any], position: int | None = None) -> list[Beat]:
    """Append (or insert at ``position``) one beat."""
    beat = coerce_beats([new_beat])[0]
    if any(b.id == beat.id for b in beats):
        beat = beat.model_copy(update={"id": new_beat_id()})
    out = list(beats)
    if position is None or position >= len(out):
        out.append(beat)
    else:
        out.insert(max(0, position), beat)
    return out


def replace_beat(beats: list[Beat], beat_id: str, updated: Beat | dict[str, Any]) -> list[Beat]:
    """Replace the beat with ``beat_id``; the id is preserved."""
    idx = index_of(beats, beat_id)
    payload = updated.model_dump() if isinstance(updated, Beat) else dict(updated)
    payload["id"] = beat_id
    out = list(beats)
    out[idx] = Beat.model_validate(payload)
    return out


def delete_beat(beats: list[Beat], beat_id: str) -> list[Beat]:
    idx = index_of(beats, beat_id)
    return delete_beat_at(beats, idx)


def delete_beat_at(beats: list[Beat], index: int) -> list[Beat]:
    """Remove the beat at ``index``; all others keep their relative order."""
    if index < 0 or index >= len(beats):
        raise IndexError(f"Beat index {index} out of range for {len(beats)} beats")
    return [b for i, b in enumerate(beats) if i != index]


def move_beat(beats: list[Beat], beat_id: str, to_index: int) -> list[Beat]:
    return move_item(beats, index_of(beats, beat_id), to_index)


def beats_to_wire(beats: Iterable[Beat]) -> list[dict[str, Any]]:
    return [b.model_dump() for b in beats]
