"""Session editor controller: outline generation, beat editing, conversion, status, export.

The last successful session fetch is the only source of truth. Every beat mutation sends the
full beat array and re-fetches; on failure the view keeps the previous session and one error
notice is recorded.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable

from shared.beats import BeatNotFoundError, add_beat, coerce_beats, delete_beat, move_beat, replace_beat
from shared.config import EXPORT_DIR
from shared.progress import SessionProgress, compute_progress
from shared.schemas import Beat
from ui.api_client import PrepApiClient, PrepClientError, ValidationGateError
from ui.notifications import ConfirmFn, NotificationLog, decline

logger = logging.getLogger(__name__)


class SessionEditor:
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
        self.session: dict[str, Any] | None = None
        self.scenes: list[dict[str, Any]] = []
        self.loading: dict[str, bool] = {
            "session": False,
            "beats": False,
            "outline": False,
            "convert": False,
            "status": False,
            "export": False,
        }

    # -- helpers --------------------------------------------------------

    def _run(self, flag: str, title: str, action: Callable[[], Any]) -> Any:
        """Run one user action: set the loading flag, report a failure once, always reset the flag."""
        self.loading[flag] = True
        try:
            return action()
        except PrepClientError as e:
            self.notifications.error(title, e.message)
            return None
        finally:
            self.loading[flag] = False

    @property
    def beats(self) -> list[Beat]:
        outline = (self.session or {}).get("outline") or {}
        return coerce_beats(outline.get("beats") or [])

    @property
    def campaign_id(self) -> str | None:
        return (self.session or {}).get("campaign_id")

    def refresh(self) -> dict[str, Any] | None:
        def load() -> dict[str, Any]:
            self.session = self.api.get_session(self.session_id)
            return self.session

        return self._run("session", "Failed to load session", load)

    def refresh_scenes(self) -> list[dict[str, Any]]:
        def load() -> list[dict[str, Any]]:
            self.scenes = self.api.list_scenes(self.session_id)
            return self.scenes

        self._run("session", "Failed to load scenes", load)
        return self.scenes

    # -- beats ----------------------------------------------------------

    def _persist_beats(self, build: Callable[[], list[Beat]], done: str) -> bool:
        def save() -> bool:
            try:
                beats = build()
            except BeatNotFoundError as e:
                raise ValidationGateError("Beat not found") from e
            self.api.save_beats(self.session_id, [b.model_dump() for b in beats])
            return True

        def reload() -> bool:
            self.session = self.api.get_session(self.session_id)
            return True

        if not self._run("beats", "Failed to save beats", save):
            return False
        # Saved on the server; a failed reload leaves the previous session in view.
        if self._run("beats", "Beats saved, but reloading the session failed", reload):
            self.notifications.success(done)
        return True

    def add_beat(self, beat: Beat | dict[str, Any]) -> bool:
        return self._persist_beats(lambda: add_beat(self.beats, beat), "Beat added")

    def update_beat(self, beat_id: str, updated: Beat | dict[str, Any]) -> bool:
        return self._persist_beats(lambda: replace_beat(self.beats, beat_id, updated), "Beat updated")

    def update_beats(self, beats: list[Beat | dict[str, Any]]) -> bool:
        return self._persist_beats(lambda: coerce_beats(beats), "Beats saved")

    def move_beat(self, beat_id: str, to_index: int) -> bool:
        return self._persist_beats(lambda: move_beat(self.beats, beat_id, to_index), "Beat moved")

    def delete_beat(self, beat_id: str) -> bool:
        """Delete after confirmation. A declined confirmation sends nothing."""
        beat = next((b for b in self.beats if b.id == beat_id), None)
        label = beat.title if beat and beat.title else "this beat"
        if not self.confirm(f"Delete {label}?"):
            return False
        return self._persist_beats(lambda: delete_beat(self.beats, beat_id), "Beat deleted")

    def forge_beat(self, action: str, beat_id: str | None = None, **kwargs: Any) -> dict[str, Any] | None:
        """Ask the beat forge for a proposal. Call ``update_beats`` with its beats to keep it."""
        return self._run(
            "beats",
            "Failed to edit beat",
            lambda: self.api.edit_beat(self.session_id, action, beat_id=beat_id, **kwargs),
        )

    # -- outline / conversion -------------------------------------------

    def generate_outline(self, premise: str, party_info: dict[str, int], use_canon: bool = True) -> bool:
        def generate() -> bool:
            campaign_id = self.campaign_id
            if campaign_id is None:
                raise ValidationGateError("Session is not loaded")
            result = self.api.generate_outline(campaign_id, self.session_id, premise, party_info, use_canon)
            for warning in result.get("warnings") or []:
                self.notifications.warning("Outline", warning)
            self.session = self.api.get_session(self.session_id)
            self.notifications.success("Outline generated")
            return True

        return bool(self._run("outline", "Failed to generate outline", generate))

    def convert_to_scenes(self) -> dict[str, Any] | None:
        def convert() -> dict[str, Any]:
            if not self.beats:
                raise ValidationGateError("Generate or add beats before converting to scenes")
            result = self.api.convert_to_scenes(self.session_id)
            self.scenes = result.get("scenes") or []
            self.session = self.api.get_session(self.session_id)
            self.notifications.success(f"Created {result.get('scenesCreated', 0)} scenes")
            return result

        return self._run("convert", "Failed to convert outline", convert)

    # -- status / export / progress -------------------------------------

    def set_status(self, status: str) -> bool:
        def update() -> bool:
            self.session = self.api.update_session(self.session_id, status=status)
            self.notifications.success(f"Session marked {status}")
            return True

        return bool(self._run("status", "Failed to update status", update))

    def export(self, mode: str = "dm", directory: str | Path | None = None) -> Path | None:
        """Fetch the rendered markdown and write ``<title>-<mode>.md``."""

        def write() -> Path:
            result = self.api.export_markdown(self.session_id, mode)
            out_dir = Path(directory or EXPORT_DIR)
            out_dir.mkdir(parents=True, exist_ok=True)
            path = out_dir / result["filename"]
            path.write_text(result["markdown"], encoding="utf-8")
            self.notifications.success("Session exported", str(path))
            return path

        return self._run("export", "Failed to export session", write)

    def progress(self) -> SessionProgress:
        """Duration progress over the last fetched scenes."""
        durations = [(s.get("data") or {}).get("estimatedDuration") for s in self.scenes]
        return compute_progress(durations, (self.session or {}).get("target_duration"))
