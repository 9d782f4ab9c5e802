"""Mobile push delivery to a user's registered Expo devices."""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database.connection import get_session_factory
from database.models import User
from shared.push_client import ExpoPushClient
from shared.results import SendResult

logger = logging.getLogger(__name__)


class PushService:
    def __init__(
        self,
        client: ExpoPushClient | None = None,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ):
        self.client = client or ExpoPushClient()
        self.session_factory = session_factory or get_session_factory()

    async def send_to_user(
        self,
        user_id: UUID,
        title: str,
        body: str,
        data: dict[str, Any] | None = None,
        channel_id: str = "default",
        priority: str = "default",
    ) -> SendResult:
        async with self.session_factory() as session:
            tokens = await session.scalar(select(User.push_tokens).where(User.id == user_id))

        if not tokens:
            logger.debug(f"No push tokens for user {user_id}, skipping push")
            return SendResult.failure("push", str(user_id), "user has no push tokens")

        return await self.client.send(
            tokens,
            title=title,
            body=body,
            data=data,
            channel_id=channel_id,
            priority=priority,
        )
