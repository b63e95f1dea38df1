"""Scene list controller: ordered scenes, drag-and-drop reorder, confirmed delete."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from shared.ordering import move_item
from ui.api_client import PrepApiClient, PrepClientError
from ui.notifications import ConfirmFn, NotificationLog, decline

logger = logging.getLogger(__name__)


@dataclass
class ReorderInteraction:
    """Drag state for one drag gesture. Lives only between drag start and drop/end/cancel."""

    dragged_index: int | None = None
    hover_index: int | None = None

    @property
    def active(self) -> bool:
        return self.dragged_index is not None

    def start(self, index: int) -> None:
        self.dragged_index = index
        self.hover_index = index

    def hover(self, index: int) -> None:
        if self.active:
            self.hover_index = index

    def reset(self) -> None:
        self.dragged_index = None
        self.hover_index = None


class SceneList:
    def __init__(
        self,
        api: PrepApiClient,
        session_id: str,
        confirm: ConfirmFn = decline,
        notifications: NotificationLog | None = None,
    ) -> None:
        self.api = api
        self.session_id = session_id
        self.confirm = confirm
        self.notifications = notifications or NotificationLog()
        self.scenes: list[dict[str, Any]] = []
        self.drag = ReorderInteraction()
        self.reordering = False

    @property
    def scene_ids(self) -> list[str]:
        return [s["id"] for s in self.scenes]

    def refresh(self) -> list[dict[str, Any]]:
        try:
            self.scenes = self.api.list_scenes(self.session_id)
        except PrepClientError as e:
            self.notifications.error("Failed to load scenes", e.message)
        return self.scenes

    def start_drag(self, index: int) -> None:
        if 0 <= index < len(self.scenes):
            self.drag.start(index)

    def drag_over(self, index: int) -> None:
        self.drag.hover(index)

    def end_drag(self) -> None:
        """Drag ended without a drop (released outside the list, escape key)."""
        self.drag.reset()

    def drop(self, index: int) -> bool:
        """Move the dragged scene to ``index`` and submit the full order. Drag state is always cleared."""
        try:
            if not self.drag.active or self.drag.dragged_index == index:
                return False
            return self.move(self.drag.dragged_index, index)
        finally:
            self.drag.reset()

    def move(self, from_index: int, to_index: int) -> bool:
        """Single-element move: every other scene keeps its relative order."""
        try:
            ordered = move_item(self.scene_ids, from_index, to_index)
        except IndexError:
            self.drag.reset()
            return False
        return self.reorder(ordered)

    def reorder(self, ordered_ids: list[str]) -> bool:
        self.reordering = True
        try:
            self.scenes = self.api.reorder_scenes(self.session_id, ordered_ids)
            self.notifications.success("Scenes reordered")
            return True
        except PrepClientError as e:
            self.notifications.error("Failed to reorder scenes", e.message)
            return False
        finally:
            self.reordering = False
            self.drag.reset()

    def delete_scene(self, scene_id: str) -> bool:
        scene = next((s for s in self.scenes if s["id"] == scene_id), None)
        label = (scene or {}).get("title") or "this scene"
        if not self.confirm(f"Delete {label}?"):
            return False
        try:
            self.api.delete_scene(scene_id)
            self.scenes = self.api.list_scenes(self.session_id)
            self.notifications.success("Scene deleted")
            return True
        except PrepClientError as e:
            self.notifications.error("Failed to delete scene", e.message)
            return False
