"""
Expo push client.

Sends mobile push messages through the Expo push API. Tickets that come back
with status "error" are reported as a failed SendResult.
"""

import logging
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from shared.config import get_settings
from shared.results import SendResult

logger = logging.getLogger(__name__)


def is_expo_push_token(token: str) -> bool:
    return token.startswith("ExponentPushToken[") or token.startswith("ExpoPushToken[")


class ExpoPushClient:
    """Client for the Expo push API."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        settings = get_settings()
        self.push_url = settings.EXPO_PUSH_URL
        self.headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if settings.EXPO_ACCESS_TOKEN:
            self.headers["Authorization"] = f"Bearer {settings.EXPO_ACCESS_TOKEN}"
        self._transport = transport

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(httpx.HTTPError),
        reraise=True,
    )
    async def _post_messages(self, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.post(
                self.push_url,
                json=messages,
                headers=self.headers,
                timeout=10.0,
            )
            response.raise_for_status()
            return response.json().get("data", [])

    async def send(
        self,
        tokens: list[str],
        title: str,
        body: str,
        data: dict[str, Any] | None = None,
        channel_id: str = "default",
        priority: str = "default",
    ) -> SendResult:
        """
        Send one push message to every token.

        Invalid tokens are dropped before sending. Returns a failed result if
        nothing was deliverable or any ticket reported an error.
        """
        valid_tokens = [t for t in tokens if is_expo_push_token(t)]
        if not valid_tokens:
            return SendResult.failure("push", ",".join(tokens) or "-", "no valid push tokens")

        messages = [
            {
                "to": token,
                "title": title,
                "body": body,
                "data": data or {},
                "sound": "default",
                "channelId": channel_id,
                "priority": priority,
            }
            for token in valid_tokens
        ]

        try:
            tickets = await self._post_messages(messages)
        except httpx.HTTPError as e:
            logger.warning(f"Push to {len(valid_tokens)} device(s) failed: {e}")
            return SendResult.failure("push", ",".join(valid_tokens), str(e))

        errors = [t.get("message", "unknown error") for t in tickets if t.get("status") == "error"]
        if errors:
            return SendResult.failure("push", ",".join(valid_tokens), "; ".join(errors))

        ticket_ids = [t.get("id") for t in tickets if t.get("id")]
        return SendResult.success(",".join(ticket_ids) or None)
