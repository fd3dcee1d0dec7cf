# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Telegram notifications for backup runs.

Delivery is best effort: failures are logged and never raised.
"""

import httpx
import structlog

from s3backup.config import TelegramSettings

logger = structlog.get_logger()

TELEGRAM_API_URL = "https://api.telegram.org"


class TelegramNotifier:
    """Sends plain-text messages to one Telegram chat."""

    def __init__(
        self,
        settings: TelegramSettings,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(
            self.settings.enabled and self.settings.bot_token and self.settings.chat_id
        )

    async def notify(self, text: str) -> bool:
        """
        Send a message.

        Returns:
            True if Telegram accepted the message
        """
        if not self.enabled:
            return False

        url = f"{TELEGRAM_API_URL}/bot{self.settings.bot_token}/sendMessage"
        payload = {"chat_id": self.settings.chat_id, "text": text}

        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                transport=self._transport,
            ) as client:
                response = await client.post(url, json=payload)
        except httpx.HTTPError as e:
            logger.warning("notification_failed", error=str(e))
            return False
        except Exception as e:
            # Malformed token or chat id (httpx.InvalidURL and the like)
            logger.warning("notification_failed", error=str(e), error_type=type(e).__name__)
            return False

        if response.status_code != 200:
            logger.warning("notification_rejected", status_code=response.status_code)
            return False

        logger.debug("notification_sent")
        return True
