"""
Onboarding of approved waitlist entries.

The onboarding token is exchanged once for a new user, a new organization
and the user's OWNER membership.
"""
import logging
import re

import asyncpg

from app.core.exceptions import ConflictError, TokenError, ValidationError
from app.core.security import hash_password
from app.database import get_db_connection
from app.services.tokens import TokenStatus, claim_failure_status, classify_token, validate_password

logger = logging.getLogger(__name__)

MIN_ORGANIZATION_NAME_LENGTH = 2
MAX_SLUG_ATTEMPTS = 5

ONBOARDING_MESSAGES = {
    TokenStatus.NOT_FOUND: "Invalid onboarding link",
    TokenStatus.EXPIRED: "This onboarding link has expired. Please contact support for a new link.",
    TokenStatus.ALREADY_USED: "This onboarding link has already been used",
}


def onboarding_token_status(entry) -> TokenStatus:
    if not entry:
        return TokenStatus.NOT_FOUND
    return classify_token(
        found=True,
        consumed=entry['token_consumed_at'] is not None or entry['status'] == 'REJECTED',
        expires_at=entry['token_expires_at'],
        expired=entry['status'] != 'APPROVED',
    )


def onboarding_error(status: TokenStatus) -> TokenError:
    # Expired onboarding links answer 410 Gone
    status_code = 410 if status == TokenStatus.EXPIRED else None
    return TokenError(status, ONBOARDING_MESSAGES.get(status), status_code=status_code)


def slugify(name: str) -> str:
    slug = re.sub(r'[^a-z0-9]+', '-', name.lower()).strip('-')
    return slug or 'organization'


async def unique_slug(conn, name: str) -> str:
    """Slug for an organization name, suffixed with -2, -3... on collision"""
    base = slugify(name)
    slug = base
    suffix = 1
    while await conn.fetchval("SELECT EXISTS(SELECT 1 FROM organizations WHERE slug = $1)", slug):
        suffix += 1
        slug = f"{base}-{suffix}"
    return slug


async def create_organization(conn, name: str):
    """
    Insert an organization under a free slug.

    Each attempt runs in a savepoint; a slug taken by a concurrent insert
    moves on to the next suffix.
    """
    for attempt in range(MAX_SLUG_ATTEMPTS):
        slug = await unique_slug(conn, name)
        try:
            async with conn.transaction():
                return await conn.fetchrow("""
                    INSERT INTO organizations (id, name, slug, created_at)
                    VALUES (gen_random_uuid(), $1, $2, NOW())
                    RETURNING id, name, slug
                """, name, slug)
        except asyncpg.UniqueViolationError:
            if attempt == MAX_SLUG_ATTEMPTS - 1:
                raise
            logger.warning(f"Organization slug {slug} was taken concurrently, retrying")


def validate_organization_name(name) -> str:
    name = (name or '').strip()
    if len(name) < MIN_ORGANIZATION_NAME_LENGTH:
        raise ValidationError(
            f"Organization name must be at least {MIN_ORGANIZATION_NAME_LENGTH} characters long"
        )
    return name


async def verify_onboarding(token: str) -> dict:
    """
    Check an onboarding token before showing the registration form

    Raises:
        TokenError: not found (404), expired (410) or already used (400)
        ConflictError (409): an account with this email already exists
    """
    async with get_db_connection(use_transaction=False) as conn:
        entry = await conn.fetchrow("""
            SELECT id, email, name, company, status, token_expires_at, token_consumed_at
            FROM waitlist
            WHERE onboarding_token = $1
        """, token)

        status = onboarding_token_status(entry)
        if status != TokenStatus.VALID:
            raise onboarding_error(status)

        user_exists = await conn.fetchval(
            "SELECT EXISTS(SELECT 1 FROM users WHERE lower(email) = $1)",
            entry['email'].lower()
        )
        if user_exists:
            raise ConflictError("An account with this email already exists. Please log in instead.", status_code=409)

        return {
            'email': entry['email'],
            'name': entry['name'],
            'company': entry['company'],
        }


async def complete_onboarding(token: str, organization_name: str, password: str) -> dict:
    """
    Exchange an onboarding token for a user, organization and OWNER membership.

    The waitlist entry is claimed with a conditional UPDATE stamping
    token_consumed_at; everything runs in one transaction.
    """
    validate_password(password)

    organization_name = validate_organization_name(organization_name)

    password_hash = hash_password(password)

    async with get_db_connection() as conn:
        entry = await conn.fetchrow("""
            UPDATE waitlist
            SET token_consumed_at = NOW(), updated_at = NOW()
            WHERE onboarding_token = $1
              AND status = 'APPROVED'
              AND token_consumed_at IS NULL
              AND token_expires_at > NOW()
            RETURNING id, email, name
        """, token)

        if not entry:
            current = await conn.fetchrow("""
                SELECT id, email, status, token_expires_at, token_consumed_at
                FROM waitlist
                WHERE onboarding_token = $1
            """, token)
            raise onboarding_error(claim_failure_status(onboarding_token_status(current)))

        email = entry['email'].lower()

        user_exists = await conn.fetchval(
            "SELECT EXISTS(SELECT 1 FROM users WHERE lower(email) = $1)",
            email
        )
        if user_exists:
            raise ConflictError("An account with this email already exists. Please log in instead.", status_code=409)

        organization = await create_organization(conn, organization_name)

        user = await conn.fetchrow("""
            INSERT INTO users (id, email, name, password_hash, role, organization_id, created_at, updated_at)
            VALUES (gen_random_uuid(), $1, $2, $3, 'USER', $4, NOW(), NOW())
            RETURNING id, email, name
        """, email, entry['name'], password_hash, organization['id'])

        await conn.execute("""
            INSERT INTO team_members (id, user_id, organization_id, role, status, joined_at)
            VALUES (gen_random_uuid(), $1, $2, 'OWNER', 'ACTIVE', NOW())
        """, user['id'], organization['id'])

    logger.info(f"Onboarding completed: {email} (organization {organization['name']})")

    return {
        'success': True,
        'message': "Registration completed successfully! You can now log in.",
        'user': {
            'id': str(user['id']),
            'email': user['email'],
            'name': user['name'],
        },
        'organization': {
            'id': str(organization['id']),
            'name': organization['name'],
            'slug': organization['slug'],
        },
    }
