from __future__ import annotations

from typing import Any, Mapping

import httpx
from loguru import logger

from remi.core.config import settings

from .base import NotificationError
from .templates import render


class ResendNotifier:
    """Deliver templated email through the Resend HTTP API."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        sender: str | None = None,
        timeout: float | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.api_key = api_key or settings.resend_api_key
        if not self.api_key:
            raise NotificationError("RESEND_API_KEY is not configured")
        self.base_url = base_url or str(settings.resend_api_base)
        self.sender = sender or settings.email_from
        self.client = client or httpx.Client(
            base_url=self.base_url,
            timeout=timeout or settings.gateway_timeout_seconds,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )

    def send(self, template_key: str, to_address: str, context: Mapping[str, Any]) -> None:
        message = render(template_key, context)
        try:
            response = self.client.post(
                "/emails",
                json={
                    "from": self.sender,
                    "to": [to_address],
                    "subject": message.subject,
                    "html": message.html,
                },
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise NotificationError(f"email '{template_key}' to {to_address} failed: {exc}") from exc
        logger.info("Email {} sent to {}", template_key, to_address)

    def close(self) -> None:
        self.client.close()


class LogNotifier:
    """Stand-in used when no email credentials are configured."""

    def send(self, template_key: str, to_address: str, context: Mapping[str, Any]) -> None:
        message = render(template_key, context)
        logger.info("Email delivery disabled; would send {} to {} subject={!r}", template_key, to_address, message.subject)


__all__ = ["LogNotifier", "ResendNotifier"]
