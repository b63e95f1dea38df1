"""Domain errors for the prep pipeline, mapped to HTTP statuses by the API layer."""
from __future__ import annotations

from typing import Any


class PrepError(Exception):
    """Base class for prep pipeline errors."""

    status_code = 400
    error_code = "PREP_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class PrepValidationError(PrepError):
    """Request failed validation (blank premise, bad ranges, non-permutation reorder)."""

    status_code = 400
    error_code = "PREP_VALIDATION"


class NotFoundError(PrepError):
    status_code = 404
    error_code = "PREP_NOT_FOUND"


class PipelineStateError(PrepError):
    """Operation called out of order (convert with no beats, export with no scenes, bad status move)."""

    status_code = 409
    error_code = "PREP_STATE"


class GenerationError(PrepError):
    """An LLM-backed generator failed or returned unusable output."""

    status_code = 502
    error_code = "PREP_GENERATION_FAILED"
