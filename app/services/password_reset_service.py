"""
Password reset through a single-use emailed token stored on the user row
"""
import logging

from app.config import settings
from app.core.exceptions import TokenError
from app.core.security import hash_password
from app.database import get_db_connection
from app.services import email_service
from app.services.tokens import (
    PASSWORD_RESET_TTL, TokenStatus, claim_failure_status, classify_token, expires_in,
    generate_token, validate_password
)

logger = logging.getLogger(__name__)

RESET_REQUESTED_MESSAGE = "If an account exists with that email, a reset link has been sent."

RESET_MESSAGES = {
    TokenStatus.NOT_FOUND: "Invalid or expired reset link",
    TokenStatus.EXPIRED: "This reset link has expired. Please request a new one.",
    TokenStatus.ALREADY_USED: "This reset link has already been used",
}


def build_reset_url(token: str) -> str:
    return f"{settings.app_url}/reset-password/{token}"


def reset_token_status(user) -> TokenStatus:
    if not user:
        return TokenStatus.NOT_FOUND
    return classify_token(
        found=True,
        consumed=user['reset_token_used_at'] is not None,
        expires_at=user['reset_token_expires_at'],
    )


def reset_error(status: TokenStatus, expired_status_code: int = None) -> TokenError:
    status_code = expired_status_code if status == TokenStatus.EXPIRED else None
    return TokenError(status, RESET_MESSAGES.get(status), status_code=status_code)


async def request_password_reset(email: str) -> dict:
    """
    Issue a reset token and email it if the account exists.
    The response is the same either way.
    """
    email = email.strip().lower()

    async with get_db_connection() as conn:
        user = await conn.fetchrow(
            "SELECT id, email, name FROM users WHERE lower(email) = $1",
            email
        )

        if not user:
            logger.info("Password reset requested for an unknown email")
            return {'success': True, 'message': RESET_REQUESTED_MESSAGE}

        token = generate_token()
        await conn.execute("""
            UPDATE users
            SET reset_token = $2, reset_token_expires_at = $3,
                reset_token_used_at = NULL, updated_at = NOW()
            WHERE id = $1
        """, user['id'], token, expires_in(PASSWORD_RESET_TTL))

    sent = await email_service.send_password_reset_email(
        to_email=user['email'],
        name=user['name'],
        reset_url=build_reset_url(token)
    )
    if sent:
        logger.info(f"Password reset email sent to {user['email']}")
    else:
        logger.error(f"Failed to send password reset email to {user['email']}")

    return {'success': True, 'message': RESET_REQUESTED_MESSAGE}


async def verify_reset_token(token: str) -> dict:
    """
    Raises:
        TokenError: not found (404), expired (410) or already used (400)
    """
    async with get_db_connection(use_transaction=False) as conn:
        user = await conn.fetchrow("""
            SELECT id, email, reset_token_expires_at, reset_token_used_at
            FROM users
            WHERE reset_token = $1
        """, token)

    status = reset_token_status(user)
    if status != TokenStatus.VALID:
        raise reset_error(status, expired_status_code=410)

    return {'success': True, 'email': user['email']}


async def reset_password(token: str, password: str) -> dict:
    """
    Set a new password with a reset token.
    The claim stamps reset_token_used_at; every active session of the user
    is ended in the same transaction.
    """
    validate_password(password)
    password_hash = hash_password(password)

    async with get_db_connection() as conn:
        user = await conn.fetchrow("""
            UPDATE users
            SET password_hash = $2, reset_token_used_at = NOW(), updated_at = NOW()
            WHERE reset_token = $1
              AND reset_token_used_at IS NULL
              AND reset_token_expires_at > NOW()
            RETURNING id, email
        """, token, password_hash)

        if not user:
            current = await conn.fetchrow("""
                SELECT id, email, reset_token_expires_at, reset_token_used_at
                FROM users
                WHERE reset_token = $1
            """, token)
            raise reset_error(claim_failure_status(reset_token_status(current)))

        await conn.execute(
            "UPDATE sessions SET is_active = false WHERE user_id = $1 AND is_active = true",
            user['id']
        )

    logger.info(f"Password reset completed for {user['email']}")
    return {'success': True, 'message': "Password has been reset. You can now log in."}
