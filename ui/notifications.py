"""Transient user notifications (the toast queue) recorded by the prep controllers."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

logger = logging.getLogger(__name__)

NOTICE_KINDS = ("success", "error", "info", "warning")

ConfirmFn = Callable[[str], bool]


def decline(_prompt: str) -> bool:
    """Confirmation used when no dialog is wired up: destructive actions are refused."""
    return False


@dataclass(frozen=True)
class Notice:
    kind: str
    title: str
    message: str = ""
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class NotificationLog:
    """Append-only list of notices; views drain it to show toasts."""

    def __init__(self) -> None:
        self.items: list[Notice] = []

    def push(self, kind: str, title: str, message: str = "") -> Notice:
        if kind not in NOTICE_KINDS:
            raise ValueError(f"Unknown notice kind: {kind}")
        notice = Notice(kind=kind, title=title, message=message)
        self.items.append(notice)
        log = logger.warning if kind == "error" else logger.info
        log("[%s] %s %s", kind, title, message)
        return notice

    def success(self, title: str, message: str = "") -> Notice:
        return self.push("success", title, message)

    def error(self, title: str, message: str = "") -> Notice:
        return self.push("error", title, message)

    def info(self, title: str, message: str = "") -> Notice:
        return self.push("info", title, message)

    def warning(self, title: str, message: str = "") -> Notice:
        return self.push("warning", title, message)

    @property
    def latest(self) -> Notice | None:
        return self.items[-1] if self.items else None

    def errors(self) -> list[Notice]:
        return [n for n in self.items if n.kind == "error"]

    def drain(self) -> list[Notice]:
        out, self.items = self.items, []
        return out
