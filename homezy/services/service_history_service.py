"""
Service history lookups used by pattern detection.

A pattern is the average whole-day gap between a homeowner's most recent
completed services in one category.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database.connection import get_session_factory
from database.models import HomeServiceCategory, ServiceHistory
from homezy.constants import PATTERN_HISTORY_WINDOW

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class ServicePattern:
    service_count: int
    frequency_days: int | None = None


class ServiceHistoryService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self.session_factory = session_factory or get_session_factory()

    async def record_service(
        self,
        homeowner_id: UUID,
        category: HomeServiceCategory,
        title: str,
        completed_at: datetime,
        property_id: UUID | None = None,
        cost: Decimal | None = None,
    ) -> ServiceHistory:
        record = ServiceHistory(
            homeowner_id=homeowner_id,
            property_id=property_id,
            category=category,
            title=title,
            completed_at=completed_at,
            cost=cost,
        )
        async with self.session_factory() as session:
            session.add(record)
            await session.commit()
        logger.info(
            f"Service recorded: {category.value} for homeowner {homeowner_id}",
            extra={"homeowner_id": homeowner_id},
        )
        return record

    async def _recent_services(
        self,
        homeowner_id: UUID,
        category: HomeServiceCategory,
        property_id: UUID | None,
        limit: int,
    ) -> list[ServiceHistory]:
        stmt = select(ServiceHistory).where(
            ServiceHistory.homeowner_id == homeowner_id,
            ServiceHistory.category == category,
        )
        if property_id is not None:
            stmt = stmt.where(ServiceHistory.property_id == property_id)
        stmt = stmt.order_by(ServiceHistory.completed_at.desc()).limit(limit)

        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def detect_service_pattern(
        self,
        homeowner_id: UUID,
        category: HomeServiceCategory,
        property_id: UUID | None = None,
    ) -> ServicePattern:
        """
        Detect the average interval between recent services in a category.

        Looks at the last PATTERN_HISTORY_WINDOW services. Each gap between
        consecutive completions is rounded to whole days before averaging.

        Returns:
            ServicePattern with frequency_days=None when fewer than two
            services exist.
        """
        services = await self._recent_services(
            homeowner_id, category, property_id, PATTERN_HISTORY_WINDOW
        )
        if len(services) < 2:
            return ServicePattern(service_count=len(services))

        gaps = [
            round((newer.completed_at - older.completed_at).total_seconds() / SECONDS_PER_DAY)
            for newer, older in zip(services, services[1:])
        ]
        return ServicePattern(
            service_count=len(services),
            frequency_days=round(sum(gaps) / len(gaps)),
        )

    async def get_last_service_by_category(
        self,
        homeowner_id: UUID,
        category: HomeServiceCategory,
        property_id: UUID | None = None,
    ) -> ServiceHistory | None:
        services = await self._recent_services(homeowner_id, category, property_id, 1)
        return services[0] if services else None
