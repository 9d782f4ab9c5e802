"""Tests for the Expo push client."""

import json

import httpx
import pytest
from tenacity import wait_none

from shared.push_client import ExpoPushClient, is_expo_push_token
from shared.results import SendFailedError, SendResult

TOKEN = "ExponentPushToken[abc123]"


@pytest.fixture(autouse=True)
def no_retry_wait(monkeypatch):
    monkeypatch.setattr(ExpoPushClient._post_messages.retry, "wait", wait_none())


class TestExpoPushClient:
    @pytest.mark.asyncio
    async def test_send_builds_one_message_per_token(self):
        captured = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.extend(json.loads(request.content))
            return httpx.Response(200, json={"data": [{"status": "ok", "id": "t-1"}, {"status": "ok", "id": "t-2"}]})

        client = ExpoPushClient(transport=httpx.MockTransport(handler))
        result = await client.send(
            [TOKEN, "ExpoPushToken[def456]", "not-a-token"],
            title="New lead",
            body="You have a new request",
            data={"lead_id": "1"},
            channel_id="leads",
            priority="high",
        )

        assert result.ok
        assert result.message_id == "t-1,t-2"
        assert [m["to"] for m in captured] == [TOKEN, "ExpoPushToken[def456]"]
        assert captured[0]["channelId"] == "leads"
        assert captured[0]["priority"] == "high"
        assert captured[0]["data"] == {"lead_id": "1"}

    @pytest.mark.asyncio
    async def test_no_valid_tokens_skips_request(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        client = ExpoPushClient(transport=httpx.MockTransport(handler))
        result = await client.send(["garbage"], title="t", body="b")

        assert not result.ok
        assert result.error.message == "no valid push tokens"

    @pytest.mark.asyncio
    async def test_error_ticket_reported(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, json={"data": [{"status": "error", "message": "DeviceNotRegistered"}]}
            )

        client = ExpoPushClient(transport=httpx.MockTransport(handler))
        result = await client.send([TOKEN], title="t", body="b")

        assert not result.ok
        assert "DeviceNotRegistered" in result.error.message

    @pytest.mark.asyncio
    async def test_http_failure_reported(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500)

        client = ExpoPushClient(transport=httpx.MockTransport(handler))
        result = await client.send([TOKEN], title="t", body="b")

        assert not result.ok
        assert result.error.channel == "push"


class TestSendResult:
    def test_token_format(self):
        assert is_expo_push_token(TOKEN)
        assert not is_expo_push_token("fcm:abc")

    def test_raise_for_error(self):
        SendResult.success("id").raise_for_error()
        failed = SendResult.failure("email", "a@example.com", "bounced")
        with pytest.raises(SendFailedError) as exc_info:
            failed.raise_for_error()
        assert str(exc_info.value) == "email to a@example.com failed: bounced"
        assert exc_info.value.error is failed.error
