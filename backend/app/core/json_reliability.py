"""Structured-output calls for the prep agents.

Every agent that needs JSON (outline, scene detail, canon result, beat forge, summary) goes
through :func:`call_with_json_reliability`: up to ``JSON_RELIABILITY_MAX_RETRIES`` attempts,
each parsed, schema-checked and optionally vetted by a validator. Later attempts carry a
correction note. A success after a failed attempt adds a user-facing warning.
"""
from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Callable, TypeVar

from pydantic import BaseModel, ValidationError

from backend.app.constants import JSON_RELIABILITY_MAX_RETRIES
from backend.app.core.json_repair import ensure_json

if TYPE_CHECKING:
    from backend.app.core.agents.base import AgentLLM

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RETRY_NOTE = (
    "Your previous response was not valid JSON or did not match the required schema. "
    "Output ONLY valid JSON that matches this schema. No extra text, no markdown, no explanations."
)


class JSONReliabilityError(Exception):
    """Every attempt failed and there was no fallback."""

    def __init__(self, role: str, agent_name: str, campaign_id: str | None, reason: str):
        self.role = role
        self.agent_name = agent_name
        self.campaign_id = campaign_id
        self.reason = reason
        super().__init__(f"[{role}:{agent_name}] JSON validation failed: {reason}")


class _RejectedAttempt(Exception):
    pass


def add_warning(warnings: list[str] | None, message: str) -> None:
    """Append ``message`` once; no-op when the caller is not collecting warnings."""
    if warnings is not None and message and message not in warnings:
        warnings.append(message)


def _role_label(role: str) -> str:
    return role.replace("_", " ").capitalize()


def _prompt_for_attempt(user_prompt: str, attempt: int, last_raw: str | None) -> str:
    if attempt == 1:
        return user_prompt
    if attempt == 2:
        return f"{user_prompt}\n\n{_RETRY_NOTE}"
    preview = (last_raw or "")[:500] or "No response received"
    return (
        f"{user_prompt}\n\nYour previous response was invalid:\n{preview}\n\n"
        "Please correct it. Output ONLY valid JSON that matches the required schema. No extra text."
    )


def _accept(
    raw: str,
    schema_class: type[BaseModel] | None,
    validator_fn: Callable[[Any], tuple[bool, str]] | None,
) -> Any:
    """Parse one raw completion; raise _RejectedAttempt with the reason when it does not qualify."""
    js = ensure_json(raw)
    if not js:
        raise _RejectedAttempt("No valid JSON found in response")
    try:
        value: Any = json.loads(js)
    except json.JSONDecodeError as e:
        raise _RejectedAttempt(f"JSON parse error: {e}") from e
    if schema_class is not None:
        try:
            value = schema_class.model_validate(value)
        except ValidationError as e:
            raise _RejectedAttempt(f"Schema validation failed: {e}") from e
    if validator_fn is not None:
        ok, reason = validator_fn(value)
        if not ok:
            raise _RejectedAttempt(f"Validator rejected output: {reason}")
    return value


def call_with_json_reliability(
    llm: AgentLLM | None,
    role: str,
    agent_name: str,
    campaign_id: str | None,
    system_prompt: str,
    user_prompt: str,
    schema_class: type[BaseModel] | None = None,
    validator_fn: Callable[[Any], tuple[bool, str]] | None = None,
    fallback_fn: Callable[[], T] | None = None,
    max_retries: int = JSON_RELIABILITY_MAX_RETRIES,
    warnings: list[str] | None = None,
) -> T:
    """Return the first attempt that parses and validates.

    Returns a ``schema_class`` instance when one is given, otherwise the decoded JSON.
    Without an LLM, or once every attempt has failed, ``fallback_fn()`` is returned when
    provided; otherwise :class:`JSONReliabilityError` is raised.
    """
    tag = f"[{role}:{agent_name}]"
    ctx = f" (campaign_id={campaign_id})" if campaign_id else ""

    if llm is None:
        if fallback_fn is None:
            raise JSONReliabilityError(role, agent_name, campaign_id, "No LLM available and no fallback provided")
        logger.info("%s No LLM available, using fallback", tag)
        add_warning(warnings, f"LLM unavailable: {_role_label(role)} used fallback output.")
        return fallback_fn()

    last_error = ""
    last_raw: str | None = None
    for attempt in range(1, max_retries + 1):
        try:
            raw = llm.complete(system_prompt, _prompt_for_attempt(user_prompt, attempt, last_raw), json_mode=True)
        except Exception as e:
            last_error = f"LLM call exception: {e}"
            logger.warning("%s Attempt %d failed: %s%s", tag, attempt, last_error, ctx)
            continue
        last_raw = raw
        try:
            value = _accept(raw, schema_class, validator_fn)
        except _RejectedAttempt as e:
            last_error = str(e)
            logger.warning("%s Attempt %d failed: %s%s", tag, attempt, last_error, ctx)
            continue
        if attempt > 1:
            add_warning(warnings, f"{_role_label(role)} JSON parse failed: repaired output used.")
        logger.info("%s JSON validated on attempt %d%s", tag, attempt, ctx)
        return value

    reason = f"All {max_retries} attempts failed. Last error: {last_error}"
    logger.error("%s %s%s", tag, reason, ctx)
    if fallback_fn is None:
        raise JSONReliabilityError(role, agent_name, campaign_id, reason)
    add_warning(warnings, f"LLM error: {_role_label(role)} used fallback output.")
    return fallback_fn()
