from __future__ import annotations

import pytest

from shared.canon import group_by_severity, passes
from shared.progress import compute_progress, parse_duration
from shared.schemas import CanonCheckResult, CanonConflict, SceneData


@pytest.mark.parametrize(
    "text,minutes",
    [("20-30 min", 25.0), ("45 min", 45.0), ("10m", 10.0), ("a while", 15.0), (None, 15.0), ("", 15.0)],
)
def test_parse_duration(text, minutes) -> None:
    assert parse_duration(text) == minutes


@pytest.mark.parametrize(
    "durations,status",
    [
        (["30 min"], "short"),
        (["60 min", "60 min"], "building"),
        (["90 min", "90 min"], "on_target"),
        (["120 min", "120 min"], "long"),
    ],
)
def test_progress_bands(durations, status) -> None:
    assert compute_progress(durations, 180).status == status


def test_progress_default_target() -> None:
    p = compute_progress([], None)
    assert p.target_minutes == 180
    assert p.total_minutes == 0
    assert p.label == "Short session"


def test_pass_threshold_is_strict() -> None:
    assert passes(0.71)
    assert not passes(0.7)


def test_group_by_severity_has_every_key() -> None:
    grouped = group_by_severity([CanonConflict(severity="low")])
    assert list(grouped) == ["high", "medium", "low"]
    assert len(grouped["low"]) == 1


def test_unknown_severity_defaults_to_medium() -> None:
    assert CanonConflict.model_validate({"severity": "catastrophic"}).severity == "medium"


def test_score_clamped_and_tolerant() -> None:
    assert CanonCheckResult.model_validate({"overallScore": -2}).overall_score == 0.0
    assert CanonCheckResult.model_validate({"overallScore": "n/a"}).overall_score == 0.0


def test_scene_data_defaults_and_wire_keys() -> None:
    data = SceneData.model_validate({"skill_checks": ["DC 10"], "npcs": [{"name": "Vex"}, None]})
    wire = data.to_wire()
    assert wire["skillChecks"] == ["DC 10"]
    assert wire["npcs"] == ["Vex"]
    assert wire["estimatedDuration"] == "15-30 min"
    assert wire["mood"] == "balanced"
    assert wire["mapRequired"] is False
    assert wire["relatedMemories"] == []
