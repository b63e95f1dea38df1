"""Centralized tuning constants shared across the app."""
from __future__ import annotations

from shared.canon import CANON_PASS_THRESHOLD  # noqa: F401

# Session field bounds
PARTY_LEVEL_MIN = 1
PARTY_LEVEL_MAX = 20
PARTY_SIZE_MIN = 1
PARTY_SIZE_MAX = 10
TARGET_DURATION_MIN = 30
TARGET_DURATION_MAX = 600
TARGET_DURATION_DEFAULT = 180

# Scene defaults for converted beats
SCENE_DEFAULT_DURATION = "15-30 min"
SCENE_DEFAULT_MOOD = "balanced"
SCENE_TITLE_FALLBACK = "Scene {n}"

# Outline generator asks for this many beats
OUTLINE_MIN_BEATS = 3
OUTLINE_MAX_BEATS = 6

# Retry counts
JSON_RELIABILITY_MAX_RETRIES = 3

# Prompt truncation
CANON_CONTENT_MAX_CHARS = 12000
SUMMARY_NOTES_MAX_CHARS = 16000
MEMORY_CONTENT_PREVIEW_CHARS = 400

# Memory listing
MEMORY_LIST_DEFAULT_LIMIT = 50
MEMORY_LIST_MAX_LIMIT = 200
