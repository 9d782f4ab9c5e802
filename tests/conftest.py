"""
Test configuration and fixtures.

Tests run against a throwaway SQLite database (aiosqlite) per test, with the
outbound email, push and real-time channels replaced by recording fakes and a
controllable clock.
"""

import os
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

import pytest

# Must be set BEFORE any imports of database.connection or shared.config
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"
os.environ["BREVO_API_KEY"] = "test-key"
os.environ["TIMEZONE"] = "Asia/Dubai"
os.environ["CLIENT_URL"] = "https://app.homezy.test"
os.environ["SITE_URL"] = "https://homezy.test"

from database.connection import create_engine_for_url, create_session_factory  # noqa: E402
from database.models import (  # noqa: E402
    Base,
    DirectLeadStatus,
    HomeServiceCategory,
    Lead,
    LeadStatus,
    LeadType,
    Property,
    ServiceHistory,
    User,
    UserRole,
    VerificationStatus,
)
from homezy.workers.dependencies import build_worker_dependencies  # noqa: E402
from shared.config import get_settings  # noqa: E402
from shared.results import SendResult  # noqa: E402
from tests.helpers import FakeClock  # noqa: E402


# ============================================================================
# Fakes
# ============================================================================


class FakeEmailClient:
    """Stands in for BrevoEmailClient; records every email."""

    def __init__(self):
        self.sent: list[dict[str, Any]] = []
        self.fail_for: set[str] = set()

    async def send_email(self, to, subject, html, text=None, to_name=None) -> SendResult:
        if to in self.fail_for:
            return SendResult.failure("email", to, "mailbox unavailable")
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})
        return SendResult.success(f"msg-{len(self.sent)}")

    def to(self, address: str) -> list[dict[str, Any]]:
        return [email for email in self.sent if email["to"] == address]


class FakePushClient:
    def __init__(self):
        self.sent: list[dict[str, Any]] = []

    async def send(self, tokens, title, body, data=None, channel_id="default", priority="default"):
        self.sent.append(
            {"tokens": tokens, "title": title, "body": body, "data": data,
             "channel_id": channel_id, "priority": priority}
        )
        return SendResult.success("ticket-1")


class RecordingEmitter:
    def __init__(self):
        self.events: list[tuple[Any, str, dict[str, Any]]] = []

    async def emit_to_user(self, user_id, event, payload) -> None:
        self.events.append((user_id, event, payload))


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def test_settings(tmp_path, monkeypatch):
    """Fresh settings per test with health files written under tmp_path."""
    monkeypatch.setenv("HEALTH_CHECK_DIR", str(tmp_path / "health"))
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
async def engine(tmp_path):
    engine = create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def clock():
    # Noon in Dubai
    return FakeClock(datetime(2024, 6, 10, 8, 0, tzinfo=UTC))


@pytest.fixture
def email_client():
    return FakeEmailClient()


@pytest.fixture
def push_client():
    return FakePushClient()


@pytest.fixture
def emitter():
    return RecordingEmitter()


@pytest.fixture
def deps(session_factory, clock, email_client, push_client, emitter):
    return build_worker_dependencies(
        session_factory=session_factory,
        clock=clock,
        email_client=email_client,
        push_client=push_client,
        realtime_emitter=emitter,
    )


class Factory:
    """Persists model rows for tests."""

    def __init__(self, session_factory, clock: FakeClock):
        self.session_factory = session_factory
        self.clock = clock
        self._counter = 0

    async def _add(self, obj):
        async with self.session_factory() as session:
            session.add(obj)
            await session.commit()
        return obj

    def _next(self) -> int:
        self._counter += 1
        return self._counter

    async def homeowner(self, **kwargs) -> User:
        n = self._next()
        values = {
            "email": f"homeowner{n}@example.com",
            "first_name": "Layla",
            "last_name": f"Homeowner{n}",
            "role": UserRole.HOMEOWNER,
        }
        values.update(kwargs)
        return await self._add(User(**values))

    async def professional(self, **kwargs) -> User:
        n = self._next()
        values = {
            "email": f"pro{n}@example.com",
            "first_name": "Omar",
            "last_name": f"Pro{n}",
            "role": UserRole.PRO,
            "business_name": f"Cool Breeze AC {n}",
            "verification_status": VerificationStatus.COMPREHENSIVE,
        }
        values.update(kwargs)
        return await self._add(User(**values))

    async def admin(self, **kwargs) -> User:
        n = self._next()
        values = {
            "email": f"admin{n}@homezy.test",
            "first_name": "Admin",
            "last_name": str(n),
            "role": UserRole.ADMIN,
        }
        values.update(kwargs)
        return await self._add(User(**values))

    async def property(self, homeowner_id: UUID, name: str = "Marina Apartment", is_primary: bool = True) -> Property:
        return await self._add(
            Property(homeowner_id=homeowner_id, name=name, emirate="Dubai", is_primary=is_primary)
        )

    async def service(
        self,
        homeowner_id: UUID,
        category: HomeServiceCategory,
        completed_at: datetime,
        property_id: UUID | None = None,
    ) -> ServiceHistory:
        return await self._add(
            ServiceHistory(
                homeowner_id=homeowner_id,
                property_id=property_id,
                category=category,
                title=f"{category.value} service",
                completed_at=completed_at,
                cost=Decimal("250.00"),
            )
        )

    async def direct_lead(
        self,
        homeowner_id: UUID,
        professional_id: UUID,
        expires_in: timedelta,
        **kwargs,
    ) -> Lead:
        now = self.clock()
        values = {
            "homeowner_id": homeowner_id,
            "title": "AC not cooling",
            "description": "Living room split unit blows warm air",
            "category": "hvac",
            "emirate": "Dubai",
            "status": LeadStatus.OPEN,
            "lead_type": LeadType.DIRECT,
            "target_professional_id": professional_id,
            "direct_lead_status": DirectLeadStatus.PENDING,
            "direct_lead_expires_at": now + expires_in,
            "reminder1_sent": False,
            "reminder2_sent": False,
            "claim_count": 0,
            "max_claims": 1,
            "expires_at": now + timedelta(days=7),
        }
        values.update(kwargs)
        return await self._add(Lead(**values))

    async def get(self, model, pk):
        async with self.session_factory() as session:
            return await session.get(model, pk)


@pytest.fixture
def factory(session_factory, clock):
    return Factory(session_factory, clock)

