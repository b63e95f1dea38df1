"""Session duration progress: parse scene duration strings and band the total against the target."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

DEFAULT_SCENE_MINUTES = 15.0
DEFAULT_TARGET_MINUTES = 180

_DURATION_RE = re.compile(r"(\d+)(?:\s*-\s*(\d+))?\s*(?:min|m)?", re.IGNORECASE)


def parse_duration(text: str | None) -> float:
    """``"20-30 min"`` -> 25.0, ``"45 min"`` -> 45.0, unparseable -> 15.0."""
    if not text:
        return DEFAULT_SCENE_MINUTES
    m = _DURATION_RE.search(str(text))
    if not m:
        return DEFAULT_SCENE_MINUTES
    low = int(m.group(1))
    high = int(m.group(2)) if m.group(2) else low
    return (low + high) / 2


@dataclass(frozen=True)
class SessionProgress:
    total_minutes: float
    target_minutes: int
    percentage: float
    status: str
    label: str

    def to_dict(self) -> dict:
        return {
            "total_minutes": self.total_minutes,
            "target_minutes": self.target_minutes,
            "percentage": self.percentage,
            "status": self.status,
            "label": self.label,
        }


def progress_status(percentage: float) -> tuple[str, str]:
    """Return (status, label) for a percentage of target duration."""
    if percentage < 50:
        return "short", "Short session"
    if 85 <= percentage <= 115:
        return "on_target", "Perfect timing"
    if percentage > 115:
        return "long", "May run long"
    return "building", "Getting there"


def compute_progress(durations: Iterable[str | None], target_minutes: int | None = None) -> SessionProgress:
    target = target_minutes or DEFAULT_TARGET_MINUTES
    total = sum(parse_duration(d) for d in durations)
    percentage = round(total / target * 100, 1) if target > 0 else 0.0
    status, label = progress_status(percentage)
    return SessionProgress(
        total_minutes=total,
        target_minutes=target,
        percentage=percentage,
        status=status,
        label=label,
    )
