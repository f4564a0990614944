"""
Shared lifecycle for invitation, onboarding and password reset tokens.

A token is generated with 256 bits of entropy, persisted with an expiry,
delivered by email and consumed exactly once. Consumption is always a
single conditional UPDATE ... RETURNING (the "claim"); when the claim
returns no row, `classify_token` tells the caller why.
"""
import logging
import secrets
from hashlib import sha256
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from app.core.exceptions import EmailDeliveryError, ValidationError

logger = logging.getLogger(__name__)

INVITATION_TTL = timedelta(days=7)
ONBOARDING_TTL = timedelta(hours=24)
PASSWORD_RESET_TTL = timedelta(hours=1)

MIN_PASSWORD_LENGTH = 8


class TokenStatus(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    EXPIRED = "EXPIRED"
    ALREADY_USED = "ALREADY_USED"
    VALID = "VALID"


def generate_token() -> str:
    """Opaque URL-safe token (32 random bytes)"""
    return secrets.token_urlsafe(32)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def expires_in(ttl: timedelta, now: Optional[datetime] = None) -> datetime:
    return (now or utcnow()) + ttl


def token_fingerprint(token: str) -> str:
    """Short hash prefix safe to put in logs"""
    return sha256(token.encode()).hexdigest()[:8] if token else "<empty>"


def classify_token(
    found: bool,
    consumed: bool,
    expires_at: Optional[datetime],
    now: Optional[datetime] = None,
    expired: bool = False,
) -> TokenStatus:
    """
    Classify a token record.

    Args:
        found: a record matched the token
        consumed: the record is in a terminal non-expired state
            (accepted, revoked, consumed, rejected)
        expires_at: expiry of the token; None counts as expired
        now: evaluation time, defaults to the current UTC time
        expired: the record is already stored as EXPIRED

    Terminal states win over expiry: a consumed token stays ALREADY_USED
    after its expiry passes.
    """
    if not found:
        return TokenStatus.NOT_FOUND
    if consumed:
        return TokenStatus.ALREADY_USED
    if expired or expires_at is None:
        return TokenStatus.EXPIRED
    now = now or utcnow()
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    if now >= expires_at:
        return TokenStatus.EXPIRED
    return TokenStatus.VALID


def claim_failure_status(status: TokenStatus) -> TokenStatus:
    """
    Status to report when a claim matched no row.
    A record that still looks valid lost on the database clock, so it expired.
    """
    return TokenStatus.EXPIRED if status == TokenStatus.VALID else status


def validate_password(password: Optional[str]) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


async def send_then_persist(
    send: Callable[[], Awaitable[bool]],
    persist: Callable[[], Awaitable[Any]],
    compensate: Callable[[Exception], Awaitable[None]],
    failure_details: Optional[dict] = None,
) -> Any:
    """
    Two-phase issuance: notify first, then persist.

    1. `send()` must return True. On False nothing is persisted and
       EmailDeliveryError is raised.
    2. `persist()` stores the record. If it raises, `compensate(exc)` runs
       for the notification that went out without a record, then the
       original exception propagates (compensate may raise a more specific
       APIError instead).

    No record ever exists without a notification having been sent.
    """
    sent = await send()
    if not sent:
        raise EmailDeliveryError("Failed to send invitation email", details=failure_details)

    try:
        return await persist()
    except Exception as e:
        await compensate(e)
        raise
