"""Homeowner lookups shared by the reminder generation jobs."""

from uuid import UUID

from sqlalchemy import select

from database.models import Property, User, UserRole
from homezy.workers.dependencies import WorkerDependencies


async def load_homeowners(
    deps: WorkerDependencies,
    homeowner_id: UUID | None = None,
    seasonal_only: bool = False,
) -> list[tuple[User, UUID | None]]:
    """
    Homeowners paired with their primary property id (None if they have none).

    Args:
        homeowner_id: Restrict to a single homeowner
        seasonal_only: Skip homeowners who opted out of seasonal reminders
    """
    stmt = select(User).where(User.role == UserRole.HOMEOWNER)
    if homeowner_id is not None:
        stmt = stmt.where(User.id == homeowner_id)
    if seasonal_only:
        stmt = stmt.where(User.seasonal_reminders_enabled.is_(True))

    async with deps.session_factory() as session:
        homeowners = list((await session.execute(stmt.order_by(User.created_at.asc()))).scalars().all())
        if not homeowners:
            return []

        rows = await session.execute(
            select(Property.homeowner_id, Property.id)
            .where(
                Property.homeowner_id.in_([h.id for h in homeowners]),
                Property.is_primary.is_(True),
            )
            .order_by(Property.created_at.asc())
        )
        primary: dict[UUID, UUID] = {}
        for owner_id, property_id in rows:
            primary.setdefault(owner_id, property_id)

    return [(homeowner, primary.get(homeowner.id)) for homeowner in homeowners]
