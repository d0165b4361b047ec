"""Notification contract."""

from __future__ import annotations

from typing import Any, Mapping, Protocol


class NotificationError(RuntimeError):
    pass


class Notifier(Protocol):
    """Send one templated message. Callers treat delivery as best-effort."""

    def send(self, template_key: str, to_address: str, context: Mapping[str, Any]) -> None:
        """Render ``template_key`` with ``context`` and deliver it to ``to_address``."""


__all__ = ["NotificationError", "Notifier"]
