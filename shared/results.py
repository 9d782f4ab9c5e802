"""
Outcome types for outbound deliveries (email, push).

Senders never raise for delivery failures. They return a SendResult and the
caller decides whether the failure is fatal:

    result = await email_service.send_direct_lead_reminder(...)
    if not result.ok:
        logger.error(f"Reminder email failed: {result.error}")

    # or, where the send is critical
    result.raise_for_error()
"""

from dataclasses import dataclass


class SendFailedError(Exception):
    """Raised by SendResult.raise_for_error() for a failed delivery."""

    def __init__(self, error: "SendError"):
        super().__init__(str(error))
        self.error = error


@dataclass(frozen=True)
class SendError:
    channel: str
    recipient: str
    message: str

    def __str__(self) -> str:
        return f"{self.channel} to {self.recipient} failed: {self.message}"


@dataclass(frozen=True)
class SendResult:
    ok: bool
    message_id: str | None = None
    error: SendError | None = None

    @classmethod
    def success(cls, message_id: str | None = None) -> "SendResult":
        return cls(ok=True, message_id=message_id)

    @classmethod
    def failure(cls, channel: str, recipient: str, message: str) -> "SendResult":
        return cls(ok=False, error=SendError(channel=channel, recipient=recipient, message=message))

    def raise_for_error(self) -> None:
        if not self.ok and self.error is not None:
            raise SendFailedError(self.error)
