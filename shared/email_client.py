"""
Brevo client for sending transactional email.

This module provides the BrevoEmailClient class. Delivery failures never
raise out of send_email(); they are returned as a failed SendResult so the
caller decides whether the failure matters.
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


class BrevoEmailClient:
    """Client for the Brevo transactional email API."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        """Initialize Brevo client with credentials from settings."""
        settings = get_settings()
        self.api_url = settings.BREVO_API_URL.rstrip("/")
        self.sender = {
            "email": settings.EMAIL_FROM_ADDRESS,
            "name": settings.EMAIL_FROM_NAME,
        }
        self.headers = {
            "api-key": settings.BREVO_API_KEY,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        self._transport = transport

        logger.info(f"BrevoEmailClient initialized: {self.api_url}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(httpx.HTTPError),
        reraise=True,
    )
    async def _post_email(self, payload: dict[str, Any]) -> dict[str, Any]:
        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.post(
                f"{self.api_url}/smtp/email",
                json=payload,
                headers=self.headers,
                timeout=10.0,
            )
            response.raise_for_status()
            return response.json() if response.content else {}

    async def send_email(
        self,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
        to_name: str | None = None,
    ) -> SendResult:
        """
        Send one transactional email.

        Args:
            to: Recipient email address
            subject: Subject line
            html: HTML body
            text: Optional plain-text body
            to_name: Optional recipient display name

        Returns:
            SendResult with the provider message id, or the failure
        """
        recipient: dict[str, str] = {"email": to}
        if to_name:
            recipient["name"] = to_name

        payload: dict[str, Any] = {
            "sender": self.sender,
            "to": [recipient],
            "subject": subject,
            "htmlContent": html,
        }
        if text:
            payload["textContent"] = text

        try:
            body = await self._post_email(payload)
        except httpx.HTTPError as e:
            logger.error(f"Email to {to} failed after retries: {e}")
            return SendResult.failure("email", to, str(e))

        message_id = body.get("messageId")
        logger.info(f"Email sent to {to}: subject='{subject}', message_id={message_id}")
        return SendResult.success(message_id)
