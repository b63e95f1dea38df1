"""Canon check presentation helpers shared by the API and the client."""
from __future__ import annotations

from shared.schemas import SEVERITY_ORDER, CanonConflict

# Display threshold; a lower score never blocks anything.
CANON_PASS_THRESHOLD = 0.7


def passes(score: float) -> bool:
    return score > CANON_PASS_THRESHOLD


def group_by_severity(conflicts: list[CanonConflict]) -> dict[str, list[CanonConflict]]:
    """Conflicts grouped high > medium > low (every key present)."""
    grouped: dict[str, list[CanonConflict]] = {s: [] for s in SEVERITY_ORDER}
    for c in conflicts:
        grouped[c.severity].append(c)
    return grouped
