"""
Global pytest configuration and shared fixtures.
"""
import pytest
from contextlib import ExitStack
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport
from unittest.mock import AsyncMock, patch

from app.main import app
from app.config import settings

from tests.utils.factories import WEBHOOK_SECRET, SessionFactory
from tests.utils.mocks import (
    MockDBConnection, MockDBContextManager, InvitationStoreConnection,
    WaitlistStoreConnection, ResetTokenStoreConnection, InvoiceStoreConnection
)

# Every module that does `from app.database import get_db_connection`
DB_CONNECTION_TARGETS = [
    'app.core.security.get_db_connection',
    'app.routers.auth.get_db_connection',
    'app.services.invitations_service.get_db_connection',
    'app.services.waitlist_service.get_db_connection',
    'app.services.onboarding_service.get_db_connection',
    'app.services.password_reset_service.get_db_connection',
    'app.services.team_service.get_db_connection',
    'app.services.billing_service.get_db_connection',
    'app.services.admin_service.get_db_connection',
    'app.tasks.cleanup.get_db_connection',
]


# ============================================================================
# Async HTTP client
# ============================================================================

@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against the ASGI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ============================================================================
# Database mock
# ============================================================================

@pytest.fixture(autouse=True)
def db_context():
    """
    Patch get_db_connection everywhere it is imported.
    Swap `db_context.connection` to use one of the in-memory stores.
    """
    context = MockDBContextManager(MockDBConnection())
    with ExitStack() as stack:
        for target in DB_CONNECTION_TARGETS:
            stack.enter_context(patch(target, return_value=context))
        yield context


@pytest.fixture
def mock_db(db_context) -> MockDBConnection:
    return db_context.connection


@pytest.fixture
def invitation_store(db_context) -> InvitationStoreConnection:
    db_context.connection = InvitationStoreConnection()
    return db_context.connection


@pytest.fixture
def waitlist_store(db_context) -> WaitlistStoreConnection:
    db_context.connection = WaitlistStoreConnection()
    return db_context.connection


@pytest.fixture
def reset_store(db_context) -> ResetTokenStoreConnection:
    db_context.connection = ResetTokenStoreConnection()
    return db_context.connection


@pytest.fixture
def invoice_store(db_context) -> InvoiceStoreConnection:
    db_context.connection = InvoiceStoreConnection()
    return db_context.connection


# ============================================================================
# Authentication
# ============================================================================

@pytest.fixture
def login_as(monkeypatch):
    """
    Resolve every request to a session built by SessionFactory.

    login_as(org_role="ADMIN"), login_as(role="ADMIN"), ...
    """
    def _login(**overrides) -> dict:
        session = SessionFactory.create(**overrides)
        monkeypatch.setattr(
            'app.core.security.get_session_from_request',
            AsyncMock(return_value=session)
        )
        return session

    return _login


@pytest.fixture
def auth_headers():
    """Session cookie header."""
    return {"Cookie": "session-token=test-session-token-123"}


# ============================================================================
# External services
# ============================================================================

@pytest.fixture(autouse=True)
def mock_send_email():
    """SES is never called; tests flip return_value to simulate failures."""
    with patch('app.services.email_service.send_email', new_callable=AsyncMock) as mock:
        mock.return_value = True
        yield mock


@pytest.fixture
def stripe_settings(monkeypatch):
    monkeypatch.setattr(settings, "stripe_secret_key", "sk_test_123")
    monkeypatch.setattr(settings, "stripe_webhook_secret", WEBHOOK_SECRET)
    monkeypatch.setattr(settings, "stripe_professional_monthly_price_id", "price_pro_monthly")
    return settings
