"""Canon panel controller: run a check, group conflicts by severity, apply auto-fixes."""
from __future__ import annotations

import logging
from typing import Any

from shared.canon import group_by_severity, passes as score_passes
from shared.schemas import CanonCheckResult, CanonConflict
from ui.api_client import PrepApiClient, PrepClientError, ValidationGateError
from ui.notifications import NotificationLog
from ui.scene_card import SceneCard

logger = logging.getLogger(__name__)


class CanonPanel:
    def __init__(
        self,
        api: PrepApiClient,
        campaign_id: str,
        notifications: NotificationLog | None = None,
    ) -> None:
        self.api = api
        self.campaign_id = campaign_id
        self.notifications = notifications or NotificationLog()
        self.result: CanonCheckResult | None = None
        self.content: str = ""
        self.corrected: str | None = None
        self.checking = False
        self.fixing = False

    def check(self, content: str, content_type: str = "scene", scene_id: str | None = None) -> CanonCheckResult | None:
        self.checking = True
        try:
            raw = self.api.canon_check(self.campaign_id, content, content_type, scene_id)
            self.content = content
            self.corrected = None
            self.result = CanonCheckResult.model_validate(raw)
            count = len(self.result.conflicts)
            if count:
                self.notifications.warning("Canon check complete", f"Found {count} potential conflict(s)")
            else:
                self.notifications.success("Canon check complete", "No conflicts found")
            return self.result
        except PrepClientError as e:
            self.notifications.error("Failed to check canon consistency", e.message)
            return None
        finally:
            self.checking = False

    @property
    def grouped(self) -> dict[str, list[CanonConflict]]:
        return group_by_severity(self.result.conflicts if self.result else [])

    @property
    def passes(self) -> bool:
        return bool(self.result) and score_passes(self.result.overall_score)

    def auto_fixable(self) -> list[CanonConflict]:
        return [c for c in (self.result.conflicts if self.result else []) if c.auto_fixable]

    def apply_fixes(self) -> str | None:
        """Request corrected text for the auto-fixable conflicts. Refused locally when there are none."""
        self.fixing = True
        try:
            fixes = [c.suggested_fix for c in self.auto_fixable() if c.suggested_fix]
            if not fixes:
                raise ValidationGateError("No auto-fixable conflicts found")
            self.corrected = self.api.apply_canon_fixes(self.content, fixes)
            self.notifications.success("Fixes applied", f"Applied {len(fixes)} fix(es). Review before saving.")
            return self.corrected
        except PrepClientError as e:
            self.notifications.error("Failed to apply fixes", e.message)
            return None
        finally:
            self.fixing = False

    def accept_corrected(self, card: SceneCard, field: str = "boxedText") -> bool:
        """Persist the corrected text through the normal scene patch."""
        if self.corrected is None:
            self.notifications.error("Nothing to save", "Apply fixes first")
            return False
        return card.accept_corrected(field, self.corrected)

    def summary(self) -> dict[str, Any]:
        if not self.result:
            return {}
        return {
            "score": self.result.overall_score,
            "passes": self.passes,
            "counts": {sev: len(items) for sev, items in self.grouped.items()},
        }
