"""HTTP client for the Campaign Ally prep API (campaigns, sessions, beats, scenes, canon, export).

Validation gates run before any request is built: a blank premise, blank canon-check
content or an empty fix list raise ValidationGateError without touching the network.
"""
from __future__ import annotations

import logging
import os
from typing import Any, Callable

import httpx

from shared.config import DEFAULT_API_URL

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = DEFAULT_API_URL
DEFAULT_TIMEOUT = 60.0
GENERATION_TIMEOUT = 180.0

_UNSET: Any = object()


class PrepClientError(Exception):
    """Base class for client-side prep errors; ``message`` is safe to show to the user."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ValidationGateError(PrepClientError):
    """Refused locally; no request was sent."""


class NotAuthenticatedError(PrepClientError):
    pass


class RemoteServiceError(PrepClientError):
    pass


def _env_token() -> str | None:
    return os.environ.get("CAMPAIGN_ALLY_API_TOKEN", "").strip() or None


def error_message(response: httpx.Response, default: str) -> str:
    """Human-readable message from an error body, or ``default`` when it has none."""
    try:
        body = response.json()
    except ValueError:
        return default
    if isinstance(body, dict):
        for key in ("message", "detail", "error"):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value
    return default


class PrepApiClient:
    """Synchronous client. Token retrieval is delegated to ``token_provider``."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token_provider: Callable[[], str | None] = _env_token,
        timeout: float = DEFAULT_TIMEOUT,
        require_token: bool = True,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") or DEFAULT_BASE_URL
        self.token_provider = token_provider
        self.timeout = timeout
        self.require_token = require_token
        self._transport = transport

    def _client(self, timeout: float | None = None) -> httpx.Client:
        token = self.token_provider()
        if not token and self.require_token:
            raise NotAuthenticatedError("Not authenticated")
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        return httpx.Client(
            base_url=self.base_url,
            timeout=timeout or self.timeout,
            headers=headers,
            transport=self._transport,
        )

    def _request(
        self,
        method: str,
        path: str,
        default_error: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        with self._client(timeout) as c:
            try:
                r = c.request(method, path, json=json, params=params)
            except httpx.HTTPError as e:
                logger.warning("%s %s failed: %s", method, path, e)
                raise RemoteServiceError(default_error) from e
        if r.status_code == 401:
            raise NotAuthenticatedError(error_message(r, "Not authenticated"), status_code=401)
        if r.is_error:
            raise RemoteServiceError(error_message(r, default_error), status_code=r.status_code)
        try:
            return r.json()
        except ValueError as e:
            logger.warning("%s %s returned a non-JSON body", method, path)
            raise RemoteServiceError(default_error, status_code=r.status_code) from e

    # ------------------------------------------------------------------
    # Campaigns and canon sources
    # ------------------------------------------------------------------

    def create_campaign(self, name: str) -> dict[str, Any]:
        """POST /v2/campaigns."""
        return self._request("POST", "/v2/campaigns", "Failed to create campaign", json={"name": name})

    def get_campaign(self, campaign_id: str) -> dict[str, Any]:
        return self._request("GET", f"/v2/campaigns/{campaign_id}", "Failed to load campaign")

    def put_codex(self, campaign_id: str, codex: dict[str, Any]) -> dict[str, Any]:
        return self._request("PUT", f"/v2/campaigns/{campaign_id}/codex", "Failed to save codex", json=codex)

    def get_codex(self, campaign_id: str) -> dict[str, Any]:
        return self._request("GET", f"/v2/campaigns/{campaign_id}/codex", "Failed to load codex")["codex"]

    def create_memory(
        self,
        campaign_id: str,
        title: str,
        content: str = "",
        memory_type: str = "lore",
        tags: list[str] | None = None,
    ) -> dict[str, Any]:
        return self._request(
            "POST",
            f"/v2/campaigns/{campaign_id}/memories",
            "Failed to save memory",
            json={"title": title, "content": content, "type": memory_type, "tags": tags or []},
        )

    def list_memories(self, campaign_id: str, memory_type: str | None = None, limit: int = 50) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"limit": limit}
        if memory_type:
            params["type"] = memory_type
        return self._request(
            "GET", f"/v2/campaigns/{campaign_id}/memories", "Failed to load memories", params=params
        )["memories"]

    def delete_memory(self, memory_id: str) -> dict[str, Any]:
        return self._request("DELETE", f"/v2/memories/{memory_id}", "Failed to delete memory")

    # ------------------------------------------------------------------
    # Sessions and beats
    # ------------------------------------------------------------------

    def create_session(
        self,
        campaign_id: str,
        title: str,
        premise: str | None = None,
        session_date: str | None = None,
        party_info: dict[str, int] | None = None,
        target_duration: int = 180,
    ) -> dict[str, Any]:
        if not (title or "").strip():
            raise ValidationGateError("Session title is required")
        payload: dict[str, Any] = {
            "campaignId": campaign_id,
            "title": title,
            "premise": premise,
            "sessionDate": session_date,
            "targetDuration": target_duration,
        }
        if party_info:
            payload["partyInfo"] = party_info
        return self._request("POST", "/v2/prep/sessions", "Failed to create session", json=payload)

    def list_sessions(self, campaign_id: str) -> list[dict[str, Any]]:
        return self._request(
            "GET", "/v2/prep/sessions", "Failed to load sessions", params={"campaignId": campaign_id}
        )["sessions"]

    def get_session(self, session_id: str) -> dict[str, Any]:
        return self._request("GET", f"/v2/prep/sessions/{session_id}", "Failed to load session")

    def update_session(self, session_id: str, **fields: Any) -> dict[str, Any]:
        """PATCH with only the given snake_case fields."""
        return self._request("PATCH", f"/v2/prep/sessions/{session_id}", "Failed to update session", json=fields)

    def delete_session(self, session_id: str) -> dict[str, Any]:
        return self._request("DELETE", f"/v2/prep/sessions/{session_id}", "Failed to delete session")

    def save_beats(self, session_id: str, beats: list[dict[str, Any]]) -> dict[str, Any]:
        """PUT the full beat array."""
        return self._request(
            "PUT", f"/v2/prep/sessions/{session_id}/beats", "Failed to save beats", json={"beats": beats}
        )

    def append_beat(self, session_id: str, beat: dict[str, Any], position: int | None = None) -> dict[str, Any]:
        return self._request(
            "POST",
            f"/v2/prep/sessions/{session_id}/beats",
            "Failed to add beat",
            json={"beat": beat, "position": position},
        )

    def delete_beat(self, session_id: str, beat_id: str) -> dict[str, Any]:
        return self._request("DELETE", f"/v2/prep/sessions/{session_id}/beats/{beat_id}", "Failed to delete beat")

    # ------------------------------------------------------------------
    # Scenes
    # ------------------------------------------------------------------

    def convert_to_scenes(self, session_id: str) -> dict[str, Any]:
        return self._request(
            "POST", "/v2/prep/convert-to-scenes", "Failed to convert outline", json={"sessionId": session_id}
        )

    def list_scenes(self, session_id: str) -> list[dict[str, Any]]:
        return self._request(
            "GET", "/v2/prep/scenes", "Failed to load scenes", params={"sessionId": session_id}
        )["scenes"]

    def get_scene(self, scene_id: str) -> dict[str, Any]:
        return self._request("GET", f"/v2/prep/scenes/{scene_id}", "Failed to load scene")

    def patch_scene(
        self,
        scene_id: str,
        title: Any = _UNSET,
        data: dict[str, Any] | None = None,
        canon_checked: bool | None = None,
    ) -> dict[str, Any]:
        """Merge-style patch; only the supplied keys are sent."""
        payload: dict[str, Any] = {}
        if title is not _UNSET:
            payload["title"] = title
        if data:
            payload["data"] = data
        if canon_checked is not None:
            payload["canonChecked"] = canon_checked
        if not payload:
            raise ValidationGateError("Nothing to update")
        return self._request("PATCH", f"/v2/prep/scenes/{scene_id}", "Failed to update scene", json=payload)

    def delete_scene(self, scene_id: str) -> dict[str, Any]:
        return self._request("DELETE", f"/v2/prep/scenes/{scene_id}", "Failed to delete scene")

    def reorder_scenes(self, session_id: str, scene_ids: list[str]) -> list[dict[str, Any]]:
        """Submit the complete ordered id list."""
        return self._request(
            "POST",
            "/v2/prep/scenes/reorder",
            "Failed to reorder scenes",
            json={"sessionId": session_id, "sceneIds": list(scene_ids)},
        )["scenes"]

    def scene_memories(self, scene_id: str) -> list[dict[str, Any]]:
        return self._request("GET", f"/v2/prep/scenes/{scene_id}/memories", "Failed to load memories")["memories"]

    # ------------------------------------------------------------------
    # Export, progress, summary
    # ------------------------------------------------------------------

    def export_markdown(self, session_id: str, mode: str = "dm") -> dict[str, Any]:
        """GET /v2/prep/export/markdown. Returns {markdown, filename}."""
        if mode not in ("dm", "player"):
            raise ValidationGateError('Mode must be "dm" or "player"')
        return self._request(
            "GET",
            "/v2/prep/export/markdown",
            "Failed to export session",
            params={"sessionId": session_id, "mode": mode},
        )

    def session_progress(self, session_id: str) -> dict[str, Any]:
        return self._request("GET", f"/v2/prep/sessions/{session_id}/progress", "Failed to load progress")

    def generate_summary(
        self,
        session_id: str,
        raw_notes: str,
        tone: str | None = None,
        include_player_view: bool = True,
        include_dm_view: bool = True,
    ) -> dict[str, Any]:
        if not (raw_notes or "").strip():
            raise ValidationGateError("Session notes are required to generate a summary")
        return self._request(
            "POST",
            f"/v2/prep/sessions/{session_id}/summary",
            "Failed to generate summary",
            json={
                "rawNotes": raw_notes,
                "tone": tone,
                "includePlayerView": include_player_view,
                "includeDmView": include_dm_view,
            },
            timeout=GENERATION_TIMEOUT,
        )

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate_outline(
        self,
        campaign_id: str,
        session_id: str,
        premise: str,
        party_info: dict[str, int],
        use_canon: bool = True,
    ) -> dict[str, Any]:
        """POST /v2/ai/prep/outline. Returns {outline, warnings}."""
        if not (premise or "").strip():
            raise ValidationGateError("Please enter a session premise")
        return self._request(
            "POST",
            "/v2/ai/prep/outline",
            "Failed to generate outline",
            json={
                "campaignId": campaign_id,
                "sessionId": session_id,
                "premise": premise,
                "partyInfo": party_info,
                "useCanon": use_canon,
            },
            timeout=GENERATION_TIMEOUT,
        )

    def expand_scene(
        self,
        campaign_id: str,
        session_id: str,
        scene_id: str,
        beat: dict[str, Any] | None = None,
        use_canon: bool = True,
    ) -> dict[str, Any]:
        """POST /v2/ai/prep/expand-scene. Returns {scene, warnings}."""
        return self._request(
            "POST",
            "/v2/ai/prep/expand-scene",
            "Failed to generate scene details",
            json={
                "campaignId": campaign_id,
                "sessionId": session_id,
                "sceneId": scene_id,
                "beat": beat,
                "useCanon": use_canon,
            },
            timeout=GENERATION_TIMEOUT,
        )

    def canon_check(
        self,
        campaign_id: str,
        content: str,
        content_type: str = "scene",
        scene_id: str | None = None,
    ) -> dict[str, Any]:
        if not (content or "").strip():
            raise ValidationGateError("No content to check")
        payload: dict[str, Any] = {"campaignId": campaign_id, "content": content, "type": content_type}
        if scene_id:
            payload["sceneId"] = scene_id
        return self._request(
            "POST", "/v2/ai/prep/canon-check", "Failed to check canon consistency", json=payload,
            timeout=GENERATION_TIMEOUT,
        )

    def apply_canon_fixes(self, content: str, fixes: list[str]) -> str:
        if not fixes:
            raise ValidationGateError("No auto-fixable conflicts found")
        return self._request(
            "POST",
            "/v2/ai/prep/apply-canon-fixes",
            "Failed to apply fixes",
            json={"content": content, "fixes": list(fixes)},
            timeout=GENERATION_TIMEOUT,
        )["corrected"]

    def edit_beat(
        self,
        session_id: str,
        action: str,
        beat_id: str | None = None,
        user_edit_text: str | None = None,
        tone: str = "neutral",
        session_goal: str | None = None,
    ) -> dict[str, Any]:
        """POST /v2/ai/prep/edit-beat. Returns a proposed beat list; nothing is saved."""
        if action == "edit" and not (user_edit_text or "").strip():
            raise ValidationGateError("Describe the change to make to this beat")
        return self._request(
            "POST",
            "/v2/ai/prep/edit-beat",
            "Failed to edit beat",
            json={
                "sessionId": session_id,
                "action": action,
                "beatId": beat_id,
                "userEditText": user_edit_text,
                "tone": tone,
                "sessionGoal": session_goal,
            },
            timeout=GENERATION_TIMEOUT,
        )
