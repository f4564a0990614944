"""
Tests for onboarding of approved waitlist entries.
"""
import pytest
from datetime import datetime, timedelta, timezone
from httpx import AsyncClient

from app.core.security import verify_password
from app.services.onboarding_service import create_organization, slugify, unique_slug
from tests.utils.mocks import WaitlistStoreConnection


def _future(hours: int = 24):
    return datetime.now(timezone.utc) + timedelta(hours=hours)


def _past(seconds: int = 1):
    return datetime.now(timezone.utc) - timedelta(seconds=seconds)


class SlugRaceStore(WaitlistStoreConnection):
    """The first slug check misses an organization inserted by a concurrent request"""

    def __init__(self):
        super().__init__()
        self.missed = False

    async def fetchval(self, query: str, *args):
        if "FROM organizations WHERE slug" in query and not self.missed:
            self.missed = True
            self._call_history.append(("fetchval", query, args))
            return False
        return await super().fetchval(query, *args)


class TestOnboardingFlow:
    """join -> approve -> verify -> complete"""

    @pytest.mark.asyncio
    async def test_full_flow(self, client: AsyncClient, waitlist_store, login_as, mock_send_email):
        join = await client.post("/waitlist", json={"email": "Founder@Startup.io", "name": "Fran Founder"})
        assert join.status_code == 201
        entry_id = join.json()["id"]

        login_as(role="ADMIN")
        approve = await client.patch(f"/admin/waitlist/{entry_id}", json={"status": "APPROVED"})
        assert approve.status_code == 200

        token = waitlist_store.entries[entry_id]["onboarding_token"]
        assert token
        assert f"/onboarding/{token}" in mock_send_email.await_args.kwargs["html_body"]

        verify = await client.get("/onboarding/verify", params={"token": token})
        assert verify.status_code == 200
        assert verify.json()["waitlist"]["email"] == "founder@startup.io"

        complete = await client.post("/onboarding/complete", json={
            "token": token,
            "organization_name": "Startup Labs",
            "password": "longenough1",
        })

        assert complete.status_code == 200
        data = complete.json()
        assert data["organization"]["name"] == "Startup Labs"
        assert data["organization"]["slug"] == "startup-labs"
        assert data["user"]["email"] == "founder@startup.io"

        user = waitlist_store.users["founder@startup.io"]
        assert verify_password("longenough1", user["password_hash"])
        assert waitlist_store.members == [
            {"user_id": user["id"], "organization_id": data["organization"]["id"], "role": "OWNER"}
        ]
        assert waitlist_store.entries[entry_id]["token_consumed_at"] is not None

    @pytest.mark.asyncio
    async def test_token_is_single_use(self, client: AsyncClient, waitlist_store):
        waitlist_store.add_entry("once@startup.io", status="APPROVED", token="onb-1", expires_at=_future())
        payload = {"token": "onb-1", "organization_name": "Once Inc", "password": "longenough1"}

        first = await client.post("/onboarding/complete", json=payload)
        second = await client.post("/onboarding/complete", json=payload)

        assert first.status_code == 200
        assert second.status_code == 400
        assert second.json()["details"]["status"] == "ALREADY_USED"
        assert len(waitlist_store.organizations) == 1

        verify = await client.get("/onboarding/verify", params={"token": "onb-1"})
        assert verify.status_code == 400
        assert verify.json()["details"]["status"] == "ALREADY_USED"


class TestVerifyOnboarding:
    """Tests for GET /onboarding/verify"""

    @pytest.mark.asyncio
    async def test_valid(self, client: AsyncClient, waitlist_store):
        waitlist_store.add_entry("ok@startup.io", name="Oak", status="APPROVED", token="onb-ok",
                                 expires_at=_future(), company="Oak Co")

        response = await client.get("/onboarding/verify", params={"token": "onb-ok"})

        assert response.status_code == 200
        assert response.json()["waitlist"] == {"email": "ok@startup.io", "name": "Oak", "company": "Oak Co"}

    @pytest.mark.asyncio
    async def test_expired_one_second_ago(self, client: AsyncClient, waitlist_store):
        """An onboarding link past its expiry is gone (410)."""
        waitlist_store.add_entry("late@startup.io", status="APPROVED", token="onb-late", expires_at=_past())

        response = await client.get("/onboarding/verify", params={"token": "onb-late"})

        assert response.status_code == 410
        assert response.json()["details"]["status"] == "EXPIRED"

    @pytest.mark.asyncio
    async def test_unknown(self, client: AsyncClient, waitlist_store):
        response = await client.get("/onboarding/verify", params={"token": "nope"})

        assert response.status_code == 404
        assert response.json()["details"]["status"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_missing_token(self, client: AsyncClient, waitlist_store):
        response = await client.get("/onboarding/verify")

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_existing_account(self, client: AsyncClient, waitlist_store):
        waitlist_store.add_entry("taken@startup.io", status="APPROVED", token="onb-taken", expires_at=_future())
        waitlist_store.users["taken@startup.io"] = {"id": "user-x", "email": "taken@startup.io"}

        response = await client.get("/onboarding/verify", params={"token": "onb-taken"})

        assert response.status_code == 409


class TestCompleteOnboarding:
    """Tests for POST /onboarding/complete"""

    @pytest.mark.asyncio
    async def test_expired(self, client: AsyncClient, waitlist_store):
        entry = waitlist_store.add_entry("late@startup.io", status="APPROVED", token="onb-late", expires_at=_past())

        response = await client.post("/onboarding/complete", json={
            "token": "onb-late", "organization_name": "Late Co", "password": "longenough1",
        })

        assert response.status_code == 410
        assert entry["token_consumed_at"] is None
        assert waitlist_store.users == {}

    @pytest.mark.asyncio
    async def test_short_password(self, client: AsyncClient, waitlist_store):
        entry = waitlist_store.add_entry("pw@startup.io", status="APPROVED", token="onb-pw", expires_at=_future())

        response = await client.post("/onboarding/complete", json={
            "token": "onb-pw", "organization_name": "Pw Co", "password": "short",
        })

        assert response.status_code == 400
        assert entry["token_consumed_at"] is None

    @pytest.mark.asyncio
    async def test_short_organization_name(self, client: AsyncClient, waitlist_store):
        waitlist_store.add_entry("org@startup.io", status="APPROVED", token="onb-org", expires_at=_future())

        response = await client.post("/onboarding/complete", json={
            "token": "onb-org", "organization_name": " x ", "password": "longenough1",
        })

        assert response.status_code == 400
        assert "Organization name" in response.json()["message"]

    @pytest.mark.asyncio
    async def test_rejected_entry(self, client: AsyncClient, waitlist_store):
        waitlist_store.add_entry("no@startup.io", status="REJECTED", token="onb-no", expires_at=_future())

        response = await client.post("/onboarding/complete", json={
            "token": "onb-no", "organization_name": "No Co", "password": "longenough1",
        })

        assert response.status_code == 400
        assert response.json()["details"]["status"] == "ALREADY_USED"

    @pytest.mark.asyncio
    async def test_existing_account(self, client: AsyncClient, waitlist_store):
        waitlist_store.add_entry("taken@startup.io", status="APPROVED", token="onb-taken", expires_at=_future())
        waitlist_store.users["taken@startup.io"] = {"id": "user-x", "email": "taken@startup.io"}

        response = await client.post("/onboarding/complete", json={
            "token": "onb-taken", "organization_name": "Taken Co", "password": "longenough1",
        })

        assert response.status_code == 409
        assert waitlist_store.organizations == []


class TestSlugs:

    @pytest.mark.parametrize("name,slug", [
        ("Acme Security", "acme-security"),
        ("  Red / Blue Team!  ", "red-blue-team"),
        ("***", "organization"),
    ])
    def test_slugify(self, name, slug):
        assert slugify(name) == slug

    @pytest.mark.asyncio
    async def test_unique_slug_suffix(self, waitlist_store):
        waitlist_store.organizations.append({"id": "org-a", "name": "Acme", "slug": "acme"})
        waitlist_store.organizations.append({"id": "org-b", "name": "Acme", "slug": "acme-2"})

        assert await unique_slug(waitlist_store, "Acme") == "acme-3"

    @pytest.mark.asyncio
    async def test_create_organization_retries_taken_slug(self):
        store = SlugRaceStore()
        store.organizations.append({"id": "org-a", "name": "Acme", "slug": "acme"})

        organization = await create_organization(store, "Acme")

        assert organization["slug"] == "acme-2"
        assert [o["slug"] for o in store.organizations] == ["acme", "acme-2"]

    @pytest.mark.asyncio
    async def test_concurrent_same_name_onboarding(self, client: AsyncClient, db_context):
        store = SlugRaceStore()
        db_context.connection = store
        store.organizations.append({"id": "org-a", "name": "Startup Labs", "slug": "startup-labs"})
        store.add_entry("second@startup.io", status="APPROVED", token="onb-race", expires_at=_future())

        response = await client.post("/onboarding/complete", json={
            "token": "onb-race", "organization_name": "Startup Labs", "password": "longenough1",
        })

        assert response.status_code == 200
        assert response.json()["organization"]["slug"] == "startup-labs-2"
        assert store.members[0]["user_id"] == store.users["second@startup.io"]["id"]
