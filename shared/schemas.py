"""Shared Pydantic schemas for session prep: outline, beats, scene data, canon reports, LLM outputs."""

from __future__ import annotations

import uuid
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

SessionStatus = Literal["draft", "ready", "completed"]
ExportMode = Literal["dm", "player"]
Severity = Literal["high", "medium", "low"]
SceneMood = Literal["tense", "mysterious", "lighthearted", "dramatic", "balanced"]
ForgeTone = Literal["neutral", "dark", "heroic", "tragic", "whimsical", "cinematic"]

SEVERITY_ORDER: tuple[str, ...] = ("high", "medium", "low")


def new_beat_id() -> str:
    return f"beat-{uuid.uuid4().hex[:12]}"


def _flatten_named_items(v: Any) -> Any:
    """Accept [{"name": ...}] / [{"description": ...}] lists from generators as plain strings."""
    if not isinstance(v, list):
        return v
    out: list[str] = []
    for item in v:
        if isinstance(item, dict):
            text = item.get("name") or item.get("description") or item.get("text") or ""
            if text:
                out.append(str(text))
        elif item is not None:
            out.append(str(item))
    return out


class PartyInfo(BaseModel):
    """Party parameters: average level and number of players."""

    level: int = Field(default=1, ge=1, le=20)
    size: int = Field(default=4, ge=1, le=10)


class Beat(BaseModel):
    """One narrative unit of an outline. ``id`` is stable across edits; list order is the rendered order."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=new_beat_id)
    title: str = ""
    description: Optional[str] = None
    duration: Optional[int] = Field(default=None, ge=0, description="Estimated minutes")
    objectives: List[str] = Field(default_factory=list)
    challenges: List[str] = Field(default_factory=list)

    @field_validator("duration", mode="before")
    @classmethod
    def _coerce_duration(cls, v: Any) -> Any:
        # Generators sometimes answer "20 min" or "15-20".
        if isinstance(v, str):
            digits = "".join(ch if ch.isdigit() else " " for ch in v).split()
            return int(digits[0]) if digits else None
        return v


class Outline(BaseModel):
    """Session skeleton: optional title, goals, ordered beats."""

    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    goals: List[str] = Field(default_factory=list)
    beats: List[Beat] = Field(default_factory=list)


class SceneData(BaseModel):
    """Typed scene body. Every field is optional with a defined default.

    Wire keys are camelCase (``boxedText``); snake_case is accepted on input.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    boxed_text: str = Field(default="", alias="boxedText")
    npcs: List[str] = Field(default_factory=list)
    skill_checks: List[str] = Field(default_factory=list, alias="skillChecks")
    contingencies: List[str] = Field(default_factory=list)
    rewards: Dict[str, Any] = Field(default_factory=dict)
    notes: str = ""
    estimated_duration: str = Field(default="15-30 min", alias="estimatedDuration")
    mood: str = "balanced"
    map_required: bool = Field(default=False, alias="mapRequired")
    related_memories: List[str] = Field(default_factory=list, alias="relatedMemories")

    @field_validator("npcs", "skill_checks", "contingencies", mode="before")
    @classmethod
    def _flatten(cls, v: Any) -> Any:
        return _flatten_named_items(v)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class ScenePatchData(BaseModel):
    """Partial scene body for merge-style updates. Only set fields are applied."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    boxed_text: Optional[str] = Field(default=None, alias="boxedText")
    npcs: Optional[List[str]] = None
    skill_checks: Optional[List[str]] = Field(default=None, alias="skillChecks")
    contingencies: Optional[List[str]] = None
    rewards: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    estimated_duration: Optional[str] = Field(default=None, alias="estimatedDuration")
    mood: Optional[str] = None
    map_required: Optional[bool] = Field(default=None, alias="mapRequired")
    related_memories: Optional[List[str]] = Field(default=None, alias="relatedMemories")

    @field_validator("npcs", "skill_checks", "contingencies", mode="before")
    @classmethod
    def _flatten(cls, v: Any) -> Any:
        return _flatten_named_items(v)


class CanonConflict(BaseModel):
    """One inconsistency between draft content and established canon."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str = "lore_contradiction"
    severity: Severity = "medium"
    canon: str = ""
    draft: str = ""
    suggested_fix: str = Field(default="", alias="suggestedFix")
    auto_fixable: bool = Field(default=False, alias="autoFixable")
    affected_scene_ids: Optional[List[str]] = Field(default=None, alias="affectedSceneIds")

    @field_validator("severity", mode="before")
    @classmethod
    def _normalize_severity(cls, v: Any) -> Any:
        if isinstance(v, str) and v.strip().lower() in SEVERITY_ORDER:
            return v.strip().lower()
        return "medium"


class CanonCheckResult(BaseModel):
    """Canon checker report. Ephemeral: only score/timestamp land on the scene."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    conflicts: List[CanonConflict] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    overall_score: float = Field(default=1.0, alias="overallScore")

    @field_validator("overall_score", mode="before")
    @classmethod
    def _clamp_score(cls, v: Any) -> float:
        try:
            score = float(v)
        except (TypeError, ValueError):
            return 0.0
        return max(0.0, min(1.0, score))


class SceneDetailOutput(BaseModel):
    """Scene expander output. All fields optional; absent fields leave the scene untouched."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    boxed_text: Optional[str] = Field(default=None, alias="boxedText")
    npcs: Optional[List[str]] = None
    skill_checks: Optional[List[str]] = Field(default=None, alias="skillChecks")
    contingencies: Optional[List[str]] = None
    rewards: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    estimated_duration: Optional[str] = Field(default=None, alias="estimatedDuration")
    mood: Optional[str] = None
    map_required: Optional[bool] = Field(default=None, alias="mapRequired")
    related_memories: Optional[List[str]] = Field(default=None, alias="relatedMemories")

    @field_validator("npcs", "skill_checks", "contingencies", mode="before")
    @classmethod
    def _flatten(cls, v: Any) -> Any:
        return _flatten_named_items(v)


class ForgedBeat(BaseModel):
    """Beat forge output entry; ``index`` is the position in the proposed list."""

    model_config = ConfigDict(extra="ignore")

    index: int = 0
    title: str
    description: str = ""
    tone: Optional[str] = None


class BeatForgeOutput(BaseModel):
    """Beat forge output: proposed beat list plus commentary."""

    model_config = ConfigDict(extra="ignore")

    session_title: Optional[str] = None
    updated_beats: List[ForgedBeat] = Field(default_factory=list)
    ai_commentary: str = ""


class SessionSummaryOutput(BaseModel):
    """Session summarizer output: structured recap of what happened at the table."""

    model_config = ConfigDict(extra="ignore")

    key_events: List[str] = Field(default_factory=list)
    npcs: List[str] = Field(default_factory=list)
    items: List[str] = Field(default_factory=list)
    locations: List[str] = Field(default_factory=list)
    consequences: List[str] = Field(default_factory=list)
    memorable_moments: List[str] = Field(default_factory=list)
    session_themes: List[str] = Field(default_factory=list)
    player_view: Optional[str] = None
    dm_view: Optional[str] = None
    memory_tags: List[str] = Field(default_factory=list)

    @field_validator(
        "key_events", "npcs", "items", "locations", "consequences",
        "memorable_moments", "session_themes", "memory_tags",
        mode="before",
    )
    @classmethod
    def _listify(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return _flatten_named_items(v)
