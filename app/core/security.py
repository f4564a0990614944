import bcrypt
import logging
import secrets
from hashlib import sha256
from datetime import timedelta
from fastapi import Request, Response
from app.config import settings
from app.database import get_db_connection
from app.services.tokens import utcnow
from typing import Optional

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session-token"

_BCRYPT_MAX_INPUT_BYTES = 72


def _password_bytes(password: str) -> bytes:
    """bcrypt only takes 72 bytes; longer passwords are pre-hashed with SHA-256"""
    raw = password.encode('utf-8')
    if len(raw) > _BCRYPT_MAX_INPUT_BYTES:
        return sha256(raw).hexdigest().encode('ascii')
    return raw


def hash_password(password: str) -> str:
    """Hash password using bcrypt."""
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode('utf-8')


def verify_password(password: str, hashed: Optional[str]) -> bool:
    """Verify password against hash."""
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(_password_bytes(password), hashed.encode('utf-8'))
    except ValueError:
        return False


def get_session_token(request: Request) -> Optional[str]:
    """Extract session-token from cookies"""
    return request.cookies.get(SESSION_COOKIE)


async def create_session(conn, user_id) -> str:
    """Insert a session row and return its opaque id (the cookie value)"""
    session_id = secrets.token_urlsafe(32)
    expires_at = utcnow() + timedelta(days=settings.session_max_age_days)

    await conn.execute("""
        INSERT INTO sessions (id, user_id, expires_at, created_at, is_active)
        VALUES ($1, $2, $3, NOW(), true)
    """, session_id, user_id, expires_at)

    return session_id


async def end_session(session_id: str) -> None:
    async with get_db_connection() as conn:
        await conn.execute("""
            UPDATE sessions
            SET is_active = false
            WHERE id = $1 AND is_active = true
        """, session_id)


def set_session_cookie(response: Response, session_token: str):
    """Set session cookie"""
    response.set_cookie(
        key=SESSION_COOKIE,
        value=session_token,
        httponly=True,
        secure=not settings.is_development,
        samesite="lax",
        max_age=settings.session_max_age_days * 24 * 60 * 60,
        path="/"
    )


def clear_session_cookie(response: Response):
    response.delete_cookie(SESSION_COOKIE, path="/")


async def get_session_from_request(request: Request) -> Optional[dict]:
    """
    Get session data from request using session token.
    Returns user id, platform role and active organization membership.
    """
    session_token = get_session_token(request)
    if not session_token:
        return None

    async with get_db_connection() as conn:
        session_result = await conn.fetchrow("""
            SELECT s.id AS session_id, s.user_id, s.expires_at,
                   u.email, u.name, u.role, u.organization_id,
                   tm.id AS member_id, tm.role AS org_role
            FROM sessions s
            JOIN users u ON u.id = s.user_id
            LEFT JOIN team_members tm
                   ON tm.user_id = u.id
                  AND tm.organization_id = u.organization_id
                  AND tm.status = 'ACTIVE'
            WHERE s.id = $1
              AND s.expires_at > NOW()
              AND s.is_active = true
            LIMIT 1
        """, session_token)

        if not session_result:
            return None

        await conn.execute("""
            UPDATE sessions
            SET last_activity_at = NOW()
            WHERE id = $1
        """, session_token)

        return {
            'session_id': session_result['session_id'],
            'user_id': session_result['user_id'],
            'email': session_result['email'],
            'name': session_result['name'],
            'role': session_result['role'],
            'organization_id': session_result['organization_id'],
            'member_id': session_result['member_id'],
            'org_role': session_result['org_role'],
            'expires_at': session_result['expires_at'],
        }
