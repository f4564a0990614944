"""
Waitlist signups and their review by platform admins.
Approving an entry issues the single-use onboarding token.
"""
import logging
from typing import Optional

import asyncpg

from app.config import settings
from app.core.exceptions import ConflictError, EmailDeliveryError, NotFoundError, ValidationError
from app.database import get_db_connection
from app.models.waitlist import WaitlistStatus
from app.services import email_service
from app.services.tokens import ONBOARDING_TTL, expires_in, generate_token

logger = logging.getLogger(__name__)

ENTRY_COLUMNS = """
    id, email, name, company, message, status,
    token_expires_at, token_consumed_at, created_at
"""


def build_onboarding_url(token: str) -> str:
    return f"{settings.app_url}/onboarding/{token}"


def _entry_dict(row) -> dict:
    entry = dict(row)
    entry['id'] = str(entry['id'])
    return entry


async def join_waitlist(email: str, name: str, company: Optional[str] = None, message: Optional[str] = None) -> dict:
    """
    Add a signup request to the waitlist

    Raises:
        ConflictError (409): email already on the waitlist
    """
    email = email.strip().lower()

    async with get_db_connection() as conn:
        existing = await conn.fetchval(
            "SELECT id FROM waitlist WHERE lower(email) = $1",
            email
        )
        if existing:
            raise ConflictError("This email is already on the waitlist", status_code=409)

        try:
            row = await conn.fetchrow(f"""
                INSERT INTO waitlist (id, email, name, company, message, status, created_at, updated_at)
                VALUES (gen_random_uuid(), $1, $2, $3, $4, 'PENDING', NOW(), NOW())
                RETURNING {ENTRY_COLUMNS}
            """, email, name.strip(), company, message)
        except asyncpg.UniqueViolationError:
            raise ConflictError("This email is already on the waitlist", status_code=409)

    logger.info(f"Waitlist signup: {email}")
    return _entry_dict(row)


async def list_waitlist() -> dict:
    """All entries newest first, with counts per status"""
    async with get_db_connection(use_transaction=False) as conn:
        rows = await conn.fetch(f"SELECT {ENTRY_COLUMNS} FROM waitlist ORDER BY created_at DESC")

    entries = [_entry_dict(row) for row in rows]
    stats = {
        'total': len(entries),
        'pending': sum(1 for e in entries if e['status'] == WaitlistStatus.PENDING.value),
        'approved': sum(1 for e in entries if e['status'] == WaitlistStatus.APPROVED.value),
        'rejected': sum(1 for e in entries if e['status'] == WaitlistStatus.REJECTED.value),
    }
    return {'waitlist': entries, 'stats': stats}


async def update_status(entry_id: str, status: str) -> dict:
    """
    Approve or reject a PENDING waitlist entry.

    Approval stores a fresh onboarding token and emails the onboarding link
    in the same transaction; if the email cannot be sent the approval is
    rolled back.

    Raises:
        NotFoundError: entry does not exist
        ValidationError: entry already reviewed, or target status is PENDING
        EmailDeliveryError: onboarding email could not be sent
    """
    status = getattr(status, 'value', status)

    if status not in (WaitlistStatus.APPROVED.value, WaitlistStatus.REJECTED.value):
        raise ValidationError("Status must be APPROVED or REJECTED")

    async with get_db_connection() as conn:
        entry = await conn.fetchrow(
            "SELECT id, email, name, status FROM waitlist WHERE id = $1 FOR UPDATE",
            entry_id
        )
        if not entry:
            raise NotFoundError("Waitlist entry not found")

        if entry['status'] != WaitlistStatus.PENDING.value:
            raise ValidationError(f"Waitlist entry is already {entry['status']}")

        if status == WaitlistStatus.REJECTED.value:
            row = await conn.fetchrow(f"""
                UPDATE waitlist
                SET status = 'REJECTED', updated_at = NOW()
                WHERE id = $1 AND status = 'PENDING'
                RETURNING {ENTRY_COLUMNS}
            """, entry_id)
            logger.info(f"Waitlist entry {entry_id} rejected")
            return _entry_dict(row)

        token = generate_token()
        row = await conn.fetchrow(f"""
            UPDATE waitlist
            SET status = 'APPROVED', onboarding_token = $2, token_expires_at = $3,
                token_consumed_at = NULL, updated_at = NOW()
            WHERE id = $1 AND status = 'PENDING'
            RETURNING {ENTRY_COLUMNS}
        """, entry_id, token, expires_in(ONBOARDING_TTL))

        sent = await email_service.send_onboarding_email(
            to_email=entry['email'],
            name=entry['name'],
            onboarding_url=build_onboarding_url(token)
        )
        if not sent:
            raise EmailDeliveryError(
                "Failed to send onboarding email",
                details={"hint": "Check the email configuration (AWS SES credentials and verified sender)"}
            )

        logger.info(f"Waitlist entry {entry_id} approved, onboarding email sent to {entry['email']}")
        return _entry_dict(row)
