"""
Tests for waitlist signups and the platform admin endpoints.
"""
import pytest
from datetime import datetime, timedelta, timezone
from httpx import AsyncClient


class TestJoinWaitlist:
    """Tests for POST /waitlist"""

    @pytest.mark.asyncio
    async def test_join(self, client: AsyncClient, waitlist_store):
        response = await client.post("/waitlist", json={
            "email": "Ana@Example.com",
            "name": "Ana",
            "company": "Example",
            "message": "We need breach monitoring",
        })

        assert response.status_code == 201
        entry = waitlist_store.entries[response.json()["id"]]
        assert entry["email"] == "ana@example.com"
        assert entry["status"] == "PENDING"
        assert entry["onboarding_token"] is None

    @pytest.mark.asyncio
    async def test_duplicate_email(self, client: AsyncClient, waitlist_store):
        waitlist_store.add_entry("ana@example.com")

        response = await client.post("/waitlist", json={"email": "ANA@example.com", "name": "Ana"})

        assert response.status_code == 409
        assert len(waitlist_store.entries) == 1

    @pytest.mark.asyncio
    async def test_invalid_payload(self, client: AsyncClient, waitlist_store):
        response = await client.post("/waitlist", json={"email": "not-an-email", "name": "Ana"})
        assert response.status_code == 422

        response = await client.post("/waitlist", json={"email": "ana@example.com"})
        assert response.status_code == 422


class TestAdminAccess:

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client: AsyncClient):
        response = await client.get("/admin/waitlist")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_regular_user_forbidden(self, client: AsyncClient, waitlist_store, login_as):
        login_as(role="USER", org_role="OWNER")

        response = await client.get("/admin/waitlist")

        assert response.status_code == 403
        assert response.json()["message"] == "Forbidden - Admin only"

    @pytest.mark.asyncio
    async def test_regular_user_cannot_approve(self, client: AsyncClient, waitlist_store, login_as, mock_send_email):
        login_as(role="USER")
        entry = waitlist_store.add_entry("ana@example.com")

        response = await client.patch(f"/admin/waitlist/{entry['id']}", json={"status": "APPROVED"})

        assert response.status_code == 403
        assert entry["status"] == "PENDING"
        mock_send_email.assert_not_awaited()


class TestListWaitlist:
    """Tests for GET /admin/waitlist"""

    @pytest.mark.asyncio
    async def test_list_with_stats(self, client: AsyncClient, waitlist_store, login_as):
        login_as(role="ADMIN")
        waitlist_store.add_entry("a@example.com")
        waitlist_store.add_entry("b@example.com", status="APPROVED", token="secret-token",
                                 expires_at=datetime.now(timezone.utc) + timedelta(hours=1))
        waitlist_store.add_entry("c@example.com", status="REJECTED")

        response = await client.get("/admin/waitlist")

        assert response.status_code == 200
        data = response.json()
        assert data["stats"] == {"total": 3, "pending": 1, "approved": 1, "rejected": 1}
        assert len(data["waitlist"]) == 3
        assert "secret-token" not in response.text


class TestUpdateWaitlistStatus:
    """Tests for PATCH /admin/waitlist/{entry_id}"""

    @pytest.mark.asyncio
    async def test_approve_sends_onboarding_email(self, client: AsyncClient, waitlist_store, login_as, mock_send_email):
        login_as(role="ADMIN")
        entry = waitlist_store.add_entry("ana@example.com", name="Ana")

        response = await client.patch(f"/admin/waitlist/{entry['id']}", json={"status": "APPROVED"})

        assert response.status_code == 200
        assert response.json()["waitlist"]["status"] == "APPROVED"
        assert entry["status"] == "APPROVED"
        assert entry["onboarding_token"]
        assert entry["token_consumed_at"] is None
        remaining = entry["token_expires_at"] - datetime.now(timezone.utc)
        assert timedelta(hours=23) < remaining <= timedelta(hours=24)

        mock_send_email.assert_awaited_once()
        kwargs = mock_send_email.await_args.kwargs
        assert kwargs["to_email"] == "ana@example.com"
        assert entry["onboarding_token"] in kwargs["html_body"]

    @pytest.mark.asyncio
    async def test_approve_send_failure(self, client: AsyncClient, waitlist_store, login_as, mock_send_email):
        login_as(role="ADMIN")
        entry = waitlist_store.add_entry("ana@example.com")
        mock_send_email.return_value = False

        response = await client.patch(f"/admin/waitlist/{entry['id']}", json={"status": "APPROVED"})

        assert response.status_code == 500
        assert response.json()["message"] == "Failed to send onboarding email"

    @pytest.mark.asyncio
    async def test_reject_sends_nothing(self, client: AsyncClient, waitlist_store, login_as, mock_send_email):
        login_as(role="ADMIN")
        entry = waitlist_store.add_entry("ana@example.com")

        response = await client.patch(f"/admin/waitlist/{entry['id']}", json={"status": "REJECTED"})

        assert response.status_code == 200
        assert entry["status"] == "REJECTED"
        assert entry["onboarding_token"] is None
        mock_send_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_already_reviewed(self, client: AsyncClient, waitlist_store, login_as, mock_send_email):
        login_as(role="ADMIN")
        entry = waitlist_store.add_entry("ana@example.com", status="REJECTED")

        response = await client.patch(f"/admin/waitlist/{entry['id']}", json={"status": "APPROVED"})

        assert response.status_code == 400
        assert entry["status"] == "REJECTED"
        mock_send_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_back_to_pending_rejected(self, client: AsyncClient, waitlist_store, login_as):
        login_as(role="ADMIN")
        entry = waitlist_store.add_entry("ana@example.com")

        response = await client.patch(f"/admin/waitlist/{entry['id']}", json={"status": "PENDING"})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_status_value(self, client: AsyncClient, waitlist_store, login_as):
        login_as(role="ADMIN")
        entry = waitlist_store.add_entry("ana@example.com")

        response = await client.patch(f"/admin/waitlist/{entry['id']}", json={"status": "MAYBE"})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_not_found(self, client: AsyncClient, waitlist_store, login_as):
        login_as(role="ADMIN")

        response = await client.patch("/admin/waitlist/missing", json={"status": "APPROVED"})

        assert response.status_code == 404


class TestPlatformStats:
    """Tests for GET /admin/stats"""

    @pytest.mark.asyncio
    async def test_stats(self, client: AsyncClient, mock_db, login_as):
        login_as(role="ADMIN")
        mock_db.set_fetchrow_return("AS total_users", {
            "total_users": 12,
            "total_organizations": 4,
            "total_team_members": 10,
            "total_waitlist": 7,
            "pending_waitlist": 2,
            "total_invitations": 5,
            "pending_invitations": 1,
            "active_subscriptions": None,
        })

        response = await client.get("/admin/stats")

        assert response.status_code == 200
        data = response.json()
        assert data["total_users"] == 12
        assert data["pending_waitlist"] == 2
        assert data["active_subscriptions"] == 0


class TestAdminOrganizations:
    """Tests for GET /admin/organizations"""

    @pytest.mark.asyncio
    async def test_list_with_counts(self, client: AsyncClient, mock_db, login_as):
        login_as(role="ADMIN", organization_id=None, org_role=None)
        mock_db.set_fetch_return("FROM organizations o", [
            {"id": "org-1", "name": "Acme Security", "slug": "acme-security",
             "created_at": datetime.now(timezone.utc), "user_count": 3, "team_member_count": 2},
            {"id": "org-2", "name": "Startup Labs", "slug": "startup-labs",
             "created_at": datetime.now(timezone.utc), "user_count": None, "team_member_count": None},
        ])

        response = await client.get("/admin/organizations")

        assert response.status_code == 200
        organizations = response.json()["organizations"]
        assert [o["slug"] for o in organizations] == ["acme-security", "startup-labs"]
        assert organizations[0]["user_count"] == 3
        assert organizations[0]["team_member_count"] == 2
        assert organizations[1]["user_count"] == 0
        assert "ORDER BY o.name" in mock_db.calls_with("FROM organizations o")[0][1]

    @pytest.mark.asyncio
    async def test_regular_user_forbidden(self, client: AsyncClient, mock_db, login_as):
        login_as(role="USER")

        response = await client.get("/admin/organizations")

        assert response.status_code == 403
        assert mock_db.get_call_history() == []


class TestAdminUsers:
    """Tests for GET /admin/users"""

    @pytest.mark.asyncio
    async def test_directory(self, client: AsyncClient, mock_db, login_as):
        login_as(role="ADMIN", organization_id=None, org_role=None)
        now = datetime.now(timezone.utc)
        mock_db.set_fetch_return("LEFT JOIN subscriptions", [
            {"id": "org-1", "name": "Acme Security", "slug": "acme-security", "created_at": now,
             "user_count": 2, "team_member_count": 2,
             "plan": "PROFESSIONAL", "subscription_status": "ACTIVE", "current_period_end": now},
            {"id": "org-2", "name": "Startup Labs", "slug": "startup-labs", "created_at": now,
             "user_count": 0, "team_member_count": 0,
             "plan": None, "subscription_status": None, "current_period_end": None},
        ])
        mock_db.set_fetch_return("SELECT id, name, email, role, organization_id", [
            {"id": "user-1", "name": "Olivia", "email": "olivia@acme.com", "role": "USER",
             "organization_id": "org-1", "created_at": now, "updated_at": now},
            {"id": "user-2", "name": "Max", "email": "max@acme.com", "role": "USER",
             "organization_id": "org-1", "created_at": now, "updated_at": now},
            {"id": "user-3", "name": None, "email": "admin@gladiatorrx.com", "role": "ADMIN",
             "organization_id": None, "created_at": now, "updated_at": now},
        ])

        response = await client.get("/admin/users")

        assert response.status_code == 200
        data = response.json()
        assert data["total_organizations"] == 2
        assert data["total_users"] == 3

        acme, startup = data["organizations"]
        assert [u["email"] for u in acme["users"]] == ["olivia@acme.com", "max@acme.com"]
        assert acme["subscription"]["plan"] == "PROFESSIONAL"
        assert acme["subscription"]["status"] == "ACTIVE"
        assert startup["users"] == []
        assert startup["subscription"] is None

        assert [u["email"] for u in data["users_without_organization"]] == ["admin@gladiatorrx.com"]

    @pytest.mark.asyncio
    async def test_regular_user_forbidden(self, client: AsyncClient, login_as):
        login_as(role="USER")

        response = await client.get("/admin/users")

        assert response.status_code == 403


class TestAdminSendEmail:
    """Tests for POST /admin/send-email"""

    @pytest.mark.asyncio
    async def test_send_text_email(self, client: AsyncClient, login_as, mock_send_email):
        login_as(role="ADMIN")

        response = await client.post("/admin/send-email", json={
            "to": ["a@example.com", "b@example.com"],
            "subject": "Maintenance window",
            "text": "Back at <10:00>",
        })

        assert response.status_code == 200
        kwargs = mock_send_email.await_args.kwargs
        assert kwargs["to_email"] == ["a@example.com", "b@example.com"]
        assert kwargs["text_body"] == "Back at <10:00>"
        assert "&lt;10:00&gt;" in kwargs["html_body"]

    @pytest.mark.asyncio
    async def test_body_required(self, client: AsyncClient, login_as):
        login_as(role="ADMIN")

        response = await client.post("/admin/send-email", json={"to": ["a@example.com"], "subject": "Hi"})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_send_failure(self, client: AsyncClient, login_as, mock_send_email):
        login_as(role="ADMIN")
        mock_send_email.return_value = False

        response = await client.post("/admin/send-email", json={
            "to": ["a@example.com"], "subject": "Hi", "html": "<p>Hi</p>",
        })

        assert response.status_code == 500
