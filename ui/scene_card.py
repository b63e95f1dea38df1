"""Scene card controller: field edits, AI expansion, accepting canon-corrected text."""
from __future__ import annotations

import logging
from typing import Any

from shared.schemas import SceneData
from ui.api_client import PrepApiClient, PrepClientError
from ui.notifications import NotificationLog

logger = logging.getLogger(__name__)

# Scene data fields editable from the card, by wire key
EDITABLE_FIELDS: tuple[str, ...] = (
    "boxedText",
    "npcs",
    "skillChecks",
    "contingencies",
    "rewards",
    "notes",
    "estimatedDuration",
    "mood",
    "mapRequired",
    "relatedMemories",
)


class SceneCard:
    def __init__(
        self,
        api: PrepApiClient,
        scene: dict[str, Any],
        campaign_id: str,
        notifications: NotificationLog | None = None,
    ) -> None:
        self.api = api
        self.scene = scene
        self.campaign_id = campaign_id
        self.notifications = notifications or NotificationLog()
        self.saving = False
        self.expanding = False

    @property
    def data(self) -> SceneData:
        return SceneData.model_validate(self.scene.get("data") or {})

    def save_title(self, title: str) -> bool:
        return self._patch({"title": title}, "Title saved")

    def save_field(self, field: str, value: Any) -> bool:
        """Patch one data field; the server merges it into the stored scene data."""
        if field == "title":
            return self.save_title(value)
        if field not in EDITABLE_FIELDS:
            self.notifications.error("Failed to save scene", f"Unknown field: {field}")
            return False
        return self._patch({"data": {field: value}}, "Scene saved")

    def _patch(self, changes: dict[str, Any], done: str) -> bool:
        self.saving = True
        try:
            self.scene = self.api.patch_scene(self.scene["id"], **changes)
            self.notifications.success(done)
            return True
        except PrepClientError as e:
            self.notifications.error("Failed to save scene", e.message)
            return False
        finally:
            self.saving = False

    def expand(self, beat: dict[str, Any] | None = None, use_canon: bool = True) -> bool:
        """Generate scene details. Each call returns fresh flavor; manual memory links are kept."""
        self.expanding = True
        try:
            result = self.api.expand_scene(
                self.campaign_id, self.scene["session_id"], self.scene["id"], beat=beat, use_canon=use_canon
            )
            self.scene = result["scene"]
            for warning in result.get("warnings") or []:
                self.notifications.warning("Scene details", warning)
            self.notifications.success("Scene details generated")
            return True
        except PrepClientError as e:
            self.notifications.error("Failed to generate scene details", e.message)
            return False
        finally:
            self.expanding = False

    def accept_corrected(self, field: str, corrected: str) -> bool:
        """Write canon-corrected text into ``field``. Nothing is saved until this is called."""
        return self.save_field(field, corrected)
