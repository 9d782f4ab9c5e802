"""HTTP surface: reminders, direct leads, notifications and admin job runs."""

from datetime import timedelta
from uuid import uuid4

import httpx
import pytest

from api.dependencies import (
    get_direct_lead_service,
    get_notification_service,
    get_pattern_sync_service,
    get_reminder_service,
    get_service_history_service,
    get_services,
)
from api.main import app
from database.models import NotificationCategory, NotificationType, UserRole
from homezy.schemas import NotificationCreate


def headers_for(user) -> dict[str, str]:
    return {"X-User-Id": str(user.id), "X-User-Role": user.role.value}


@pytest.fixture
async def client(deps):
    app.dependency_overrides[get_services] = lambda: deps
    app.dependency_overrides[get_reminder_service] = lambda: deps.reminders
    app.dependency_overrides[get_pattern_sync_service] = lambda: deps.pattern_sync
    app.dependency_overrides[get_service_history_service] = lambda: deps.service_history
    app.dependency_overrides[get_direct_lead_service] = lambda: deps.direct_leads
    app.dependency_overrides[get_notification_service] = lambda: deps.notifications
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http
    app.dependency_overrides.clear()


REMINDER_BODY = {
    "category": "hvac",
    "title": "AC maintenance",
    "frequency": "quarterly",
    "last_service_date": "2024-04-20T06:00:00Z",
}


class TestIdentity:
    @pytest.mark.asyncio
    async def test_missing_headers(self, client):
        response = await client.get("/api/service-reminders")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_wrong_role(self, client, factory):
        professional = await factory.professional()
        response = await client.get("/api/service-reminders", headers=headers_for(professional))
        assert response.status_code == 403


class TestServiceReminderRoutes:
    @pytest.mark.asyncio
    async def test_create_and_fetch(self, client, factory):
        homeowner = await factory.homeowner()

        created = await client.post("/api/service-reminders", json=REMINDER_BODY, headers=headers_for(homeowner))
        assert created.status_code == 201
        body = created.json()
        assert body["next_due_date"].startswith("2024-07-20T06:00:00")
        assert body["status"] == "active"

        fetched = await client.get(f"/api/service-reminders/{body['id']}", headers=headers_for(homeowner))
        assert fetched.status_code == 200

        listed = await client.get("/api/service-reminders", headers=headers_for(homeowner))
        assert listed.json()["total"] == 1

    @pytest.mark.asyncio
    async def test_invalid_body_is_400(self, client, factory):
        homeowner = await factory.homeowner()
        response = await client.post(
            "/api/service-reminders",
            json={**REMINDER_BODY, "frequency": "custom"},
            headers=headers_for(homeowner),
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Validation error"

    @pytest.mark.asyncio
    async def test_other_homeowner_gets_404(self, client, factory):
        owner = await factory.homeowner()
        stranger = await factory.homeowner()
        created = await client.post("/api/service-reminders", json=REMINDER_BODY, headers=headers_for(owner))
        reminder_id = created.json()["id"]

        response = await client.post(
            f"/api/service-reminders/{reminder_id}/snooze", json={"days": 7}, headers=headers_for(stranger)
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_lifecycle_routes(self, client, factory):
        homeowner = await factory.homeowner()
        headers = headers_for(homeowner)
        reminder_id = (await client.post("/api/service-reminders", json=REMINDER_BODY, headers=headers)).json()["id"]
        base = f"/api/service-reminders/{reminder_id}"

        assert (await client.post(f"{base}/snooze", json={"days": 0}, headers=headers)).status_code == 400
        assert (await client.post(f"{base}/resume", headers=headers)).status_code == 409
        assert (await client.post(f"{base}/pause", headers=headers)).json()["status"] == "paused"
        assert (await client.post(f"{base}/resume", headers=headers)).json()["status"] == "active"

        completed = await client.post(
            f"{base}/complete", json={"service_date": "2024-06-01T06:00:00Z"}, headers=headers
        )
        assert completed.json()["next_due_date"].startswith("2024-09-01T06:00:00")

        lead_id = str(uuid4())
        converted = await client.post(f"{base}/convert-to-quote", json={"lead_id": lead_id}, headers=headers)
        assert converted.json()["status"] == "converted_to_quote"
        assert (await client.post(f"{base}/pause", headers=headers)).status_code == 409

        assert (await client.delete(base, headers=headers)).status_code == 204
        assert (await client.get(base, headers=headers)).status_code == 404

    @pytest.mark.asyncio
    async def test_sync_from_history(self, client, factory):
        homeowner = await factory.homeowner()
        response = await client.post("/api/service-reminders/sync", headers=headers_for(homeowner))
        assert response.json() == {"created": 0, "updated": 0}

    @pytest.mark.asyncio
    async def test_recorded_history_feeds_sync(self, client, factory):
        homeowner = await factory.homeowner()
        headers = headers_for(homeowner)

        for completed in ("2023-09-01T06:00:00Z", "2023-12-01T06:00:00Z", "2024-03-01T06:00:00Z"):
            recorded = await client.post(
                "/api/service-reminders/history",
                json={"category": "hvac", "title": "AC service", "completed_at": completed, "cost": "250.00"},
                headers=headers,
            )
            assert recorded.status_code == 201
            assert recorded.json()["homeowner_id"] == str(homeowner.id)

        response = await client.post("/api/service-reminders/sync", headers=headers)
        assert response.json() == {"created": 1, "updated": 0}

        listed = await client.get("/api/service-reminders", headers=headers)
        [reminder] = listed.json()["items"]
        assert reminder["trigger_type"] == "pattern-based"
        assert reminder["frequency"] == "quarterly"

    @pytest.mark.asyncio
    async def test_history_rejects_negative_cost(self, client, factory):
        homeowner = await factory.homeowner()
        response = await client.post(
            "/api/service-reminders/history",
            json={"category": "hvac", "title": "AC service", "completed_at": "2024-03-01T06:00:00Z", "cost": "-5"},
            headers=headers_for(homeowner),
        )
        assert response.status_code == 400


class TestPublicLeadRoutes:
    @pytest.mark.asyncio
    async def test_homeowner_posts_public_lead(self, client, factory, test_settings):
        homeowner = await factory.homeowner()
        response = await client.post(
            "/api/leads",
            json={
                "title": "Deep clean before move-in",
                "description": "Three bedroom apartment, empty, needs a full deep clean",
                "category": "cleaning",
                "emirate": "Dubai",
            },
            headers=headers_for(homeowner),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["lead_type"] == "indirect"
        assert body["claim_count"] == 0
        assert body["max_claims"] == test_settings.MAX_LEAD_CLAIMS

    @pytest.mark.asyncio
    async def test_professional_cannot_post(self, client, factory):
        professional = await factory.professional()
        response = await client.post(
            "/api/leads",
            json={"title": "x" * 5, "description": "y" * 20, "category": "cleaning"},
            headers=headers_for(professional),
        )
        assert response.status_code == 403


class TestDirectLeadRoutes:
    @pytest.mark.asyncio
    async def test_create_accept_flow(self, client, factory):
        homeowner = await factory.homeowner()
        professional = await factory.professional()

        created = await client.post(
            "/api/leads/direct",
            json={
                "title": "Leaking kitchen tap",
                "description": "Tap drips constantly even when fully closed",
                "category": "plumbing",
                "professional_id": str(professional.id),
            },
            headers=headers_for(homeowner),
        )
        assert created.status_code == 201
        lead_id = created.json()["id"]
        assert created.json()["direct_lead_status"] == "pending"

        mine = await client.get("/api/leads/direct/mine", headers=headers_for(professional))
        assert [lead["id"] for lead in mine.json()] == [lead_id]

        accepted = await client.post(f"/api/leads/direct/{lead_id}/accept", headers=headers_for(professional))
        assert accepted.status_code == 200
        assert accepted.json()["direct_lead_status"] == "accepted"

        again = await client.post(f"/api/leads/direct/{lead_id}/decline", headers=headers_for(professional))
        assert again.status_code == 409

    @pytest.mark.asyncio
    async def test_errors_mapped(self, client, factory):
        homeowner = await factory.homeowner()
        professional = await factory.professional()
        intruder = await factory.professional()
        lead = await factory.direct_lead(homeowner.id, professional.id, expires_in=timedelta(hours=5))

        forbidden = await client.post(f"/api/leads/direct/{lead.id}/accept", headers=headers_for(intruder))
        assert forbidden.status_code == 403

        missing = await client.post(f"/api/leads/direct/{uuid4()}/accept", headers=headers_for(professional))
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_unknown_professional(self, client, factory):
        homeowner = await factory.homeowner()
        response = await client.post(
            "/api/leads/direct",
            json={
                "title": "Paint bedroom",
                "description": "One bedroom, walls only, white",
                "category": "painting",
                "professional_id": str(uuid4()),
            },
            headers=headers_for(homeowner),
        )
        assert response.status_code == 404


class TestNotificationRoutes:
    @pytest.mark.asyncio
    async def test_inbox(self, client, deps, factory):
        user = await factory.homeowner()
        notification = await deps.notifications.create_notification(
            NotificationCreate(
                recipient_id=user.id,
                recipient_role=UserRole.HOMEOWNER,
                type=NotificationType.SYSTEM_ALERT,
                category=NotificationCategory.SYSTEM,
                title="Welcome",
                message="Welcome to Homezy",
            )
        )
        headers = headers_for(user)

        listed = (await client.get("/api/notifications", headers=headers)).json()
        assert (listed["total"], listed["unread_count"], listed["has_more"]) == (1, 1, False)

        read = await client.patch(f"/api/notifications/{notification.id}/read", headers=headers)
        assert read.json()["is_read"] is True
        assert (await client.get("/api/notifications/unread-count", headers=headers)).json() == {"count": 0}

        assert (await client.delete("/api/notifications/read", headers=headers)).json() == {"count": 1}
        missing = await client.delete(f"/api/notifications/{notification.id}", headers=headers)
        assert missing.status_code == 404


class TestJobRoutes:
    @pytest.mark.asyncio
    async def test_admin_runs_job(self, client, factory):
        admin = await factory.admin()

        listed = await client.get("/api/admin/jobs", headers=headers_for(admin))
        assert "trade_license_expiry" in listed.json()["jobs"]

        response = await client.post("/api/admin/jobs/direct_lead_reminders/run", headers=headers_for(admin))
        assert response.status_code == 200
        assert response.json() == {
            "job_name": "direct_lead_reminders",
            "results": {"checked": 0, "reminder1_sent": 0, "reminder2_sent": 0, "errors": 0},
        }

    @pytest.mark.asyncio
    async def test_unknown_job_and_non_admin(self, client, factory):
        admin = await factory.admin()
        homeowner = await factory.homeowner()

        assert (await client.post("/api/admin/jobs/backup/run", headers=headers_for(admin))).status_code == 404
        assert (
            await client.post("/api/admin/jobs/sitemap_ping/run", headers=headers_for(homeowner))
        ).status_code == 403
