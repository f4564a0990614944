"""
Service for organization team invitations

Lifecycle: issue (email first, then persist) -> verify -> accept (single
conditional UPDATE claims the invitation) or revoke / expire.
"""
import logging
from datetime import datetime
from typing import Optional

import asyncpg

from app.config import settings
from app.core.exceptions import (
    ConflictError, EmailDeliveryError, NotFoundError, TokenError, ValidationError
)
from app.core.security import hash_password
from app.database import get_db_connection
from app.models.team import OrgRole
from app.services import email_service
from app.services.tokens import (
    INVITATION_TTL, TokenStatus, claim_failure_status, classify_token, expires_in,
    generate_token, send_then_persist, token_fingerprint, utcnow, validate_password
)

logger = logging.getLogger(__name__)

INVITABLE_ROLES = (OrgRole.ADMIN.value, OrgRole.MEMBER.value, OrgRole.VIEWER.value)

TERMINAL_STATUSES = ('ACCEPTED', 'REVOKED')


def build_accept_url(token: str) -> str:
    return f"{settings.app_url}/invite/{token}"


def invitation_token_status(invitation, now: Optional[datetime] = None) -> TokenStatus:
    """Classify an invitation row (or None) as a TokenStatus"""
    if not invitation:
        return TokenStatus.NOT_FOUND
    return classify_token(
        found=True,
        consumed=invitation['status'] in TERMINAL_STATUSES,
        expires_at=invitation['expires_at'],
        expired=invitation['status'] == 'EXPIRED',
        now=now,
    )


async def issue_invitation(
    organization_id: str,
    invited_by_id: str,
    inviter_name: Optional[str],
    email: str,
    role: str = OrgRole.MEMBER.value
) -> dict:
    """
    Invite an email address to join an organization

    The invitation email is sent before the row is written: if the email
    cannot be delivered nothing is stored, and if the row cannot be written
    after the email went out the compensation step runs.

    Raises:
        ValidationError: role cannot be invited
        ConflictError: already a member, or a pending invitation exists
        EmailDeliveryError: invitation email could not be sent
    """
    email = email.strip().lower()
    role = getattr(role, 'value', role)

    if role not in INVITABLE_ROLES:
        raise ValidationError(f"Invalid role: {role}")

    async with get_db_connection() as conn:
        organization = await conn.fetchrow(
            "SELECT id, name FROM organizations WHERE id = $1",
            organization_id
        )
        if not organization:
            raise NotFoundError("Organization not found")

        existing_member = await conn.fetchrow("""
            SELECT tm.id
            FROM team_members tm
            JOIN users u ON u.id = tm.user_id
            WHERE tm.organization_id = $1 AND lower(u.email) = $2 AND tm.status = 'ACTIVE'
        """, organization_id, email)

        if existing_member:
            raise ConflictError("User is already a member of this organization")

        # A stale pending invitation must not block a new one
        await conn.execute("""
            UPDATE invitations
            SET status = 'EXPIRED'
            WHERE organization_id = $1 AND lower(email) = $2
              AND status = 'PENDING' AND expires_at <= NOW()
        """, organization_id, email)

        existing_invitation = await conn.fetchrow("""
            SELECT id FROM invitations
            WHERE organization_id = $1 AND lower(email) = $2 AND status = 'PENDING'
        """, organization_id, email)

        if existing_invitation:
            raise ConflictError("An invitation has already been sent to this email")

        token = generate_token()
        expires_at = expires_in(INVITATION_TTL)
        accept_url = build_accept_url(token)

        async def send() -> bool:
            return await email_service.send_invitation_email(
                to_email=email,
                inviter_name=inviter_name,
                organization_name=organization['name'],
                role=role,
                accept_url=accept_url
            )

        async def persist():
            return await conn.fetchrow("""
                INSERT INTO invitations (
                    id, email, role, organization_id, invited_by_id,
                    token, status, expires_at, created_at
                )
                VALUES (gen_random_uuid(), $1, $2, $3, $4, $5, 'PENDING', $6, NOW())
                RETURNING id, email, role, status, expires_at
            """, email, role, organization_id, invited_by_id, token, expires_at)

        async def compensate(exc: Exception):
            # The emailed link has no row behind it and resolves to NOT_FOUND
            logger.warning(
                f"Invitation email sent to {email} but invitation {token_fingerprint(token)} "
                f"was not stored: {exc.__class__.__name__}"
            )
            if isinstance(exc, asyncpg.UniqueViolationError):
                raise ConflictError("An invitation has already been sent to this email") from exc

        invitation = await send_then_persist(
            send, persist, compensate,
            failure_details={"hint": "Check the email configuration (AWS SES credentials and verified sender)"}
        )

        logger.info(f"Invitation {invitation['id']} issued to {email} for organization {organization_id} as {role}")

        return {
            'id': str(invitation['id']),
            'email': invitation['email'],
            'role': invitation['role'],
            'status': invitation['status'],
            'expires_at': invitation['expires_at'],
            'accept_url': accept_url,
            'email_sent': True,
        }


async def verify_invitation(token: str) -> TokenStatus:
    """
    Classify an invitation token.
    A pending invitation found past its expiry is stored as EXPIRED.
    """
    async with get_db_connection() as conn:
        invitation = await conn.fetchrow(
            "SELECT id, status, expires_at FROM invitations WHERE token = $1",
            token
        )
        status = invitation_token_status(invitation)

        if status == TokenStatus.EXPIRED and invitation['status'] == 'PENDING':
            await conn.execute(
                "UPDATE invitations SET status = 'EXPIRED' WHERE id = $1 AND status = 'PENDING'",
                invitation['id']
            )

        return status


async def get_invitation_details(token: str) -> dict:
    """Public view of an invitation for the accept page"""
    status = await verify_invitation(token)
    if status == TokenStatus.NOT_FOUND:
        raise TokenError(status, "Invitation not found")

    async with get_db_connection(use_transaction=False) as conn:
        invitation = await conn.fetchrow("""
            SELECT i.id, i.email, i.role, i.status, i.expires_at,
                   o.id AS organization_id, o.name AS organization_name,
                   u.name AS invited_by_name, u.email AS invited_by_email
            FROM invitations i
            JOIN organizations o ON o.id = i.organization_id
            LEFT JOIN users u ON u.id = i.invited_by_id
            WHERE i.token = $1
        """, token)

        if not invitation:
            raise TokenError(TokenStatus.NOT_FOUND, "Invitation not found")

        user_exists = await conn.fetchval(
            "SELECT EXISTS(SELECT 1 FROM users WHERE lower(email) = $1)",
            invitation['email'].lower()
        )

        return {
            'id': str(invitation['id']),
            'email': invitation['email'],
            'role': invitation['role'],
            'status': invitation['status'],
            'token_status': status.value,
            'expires_at': invitation['expires_at'],
            'organization': {
                'id': str(invitation['organization_id']),
                'name': invitation['organization_name'],
            },
            'invited_by': {
                'name': invitation['invited_by_name'],
                'email': invitation['invited_by_email'],
            },
            'user_exists': bool(user_exists),
        }


async def accept_invitation(
    token: str,
    name: Optional[str] = None,
    password: Optional[str] = None
) -> dict:
    """
    Accept an invitation via its token.

    Flow:
    1. Verify the token (expired pending invitations are stored as EXPIRED)
    2. New invitees must supply name and a valid password
    3. Claim the invitation with a conditional UPDATE; no row means the
       token was used, revoked or expired concurrently
    4. Create the user if needed and activate the membership

    Steps 2-4 share one transaction.

    Raises:
        TokenError: token not found, expired or already used
        ValidationError: missing name/password for a new user
    """
    status = await verify_invitation(token)
    if status != TokenStatus.VALID:
        raise TokenError(status)

    async with get_db_connection() as conn:
        invitation = await conn.fetchrow(
            "SELECT id, email, status, expires_at FROM invitations WHERE token = $1",
            token
        )
        if not invitation:
            raise TokenError(TokenStatus.NOT_FOUND)

        email = invitation['email'].lower()

        user = await conn.fetchrow(
            "SELECT id, name, email, organization_id FROM users WHERE lower(email) = $1",
            email
        )

        password_hash = None
        if not user:
            if not (name or '').strip() or not password:
                raise ValidationError("Name and password are required for new users")
            validate_password(password)
            password_hash = hash_password(password)

        claimed = await conn.fetchrow("""
            UPDATE invitations
            SET status = 'ACCEPTED', accepted_at = NOW()
            WHERE token = $1 AND status = 'PENDING' AND expires_at > NOW()
            RETURNING id, email, role, organization_id
        """, token)

        if not claimed:
            current = await conn.fetchrow(
                "SELECT id, email, status, expires_at FROM invitations WHERE token = $1",
                token
            )
            raise TokenError(claim_failure_status(invitation_token_status(current)))

        organization_id = claimed['organization_id']
        created = False

        if not user:
            user = await conn.fetchrow("""
                INSERT INTO users (id, email, name, password_hash, role, organization_id, created_at, updated_at)
                VALUES (gen_random_uuid(), $1, $2, $3, 'USER', $4, NOW(), NOW())
                RETURNING id, name, email, organization_id
            """, email, name.strip(), password_hash, organization_id)
            created = True
        elif not user['organization_id']:
            await conn.execute(
                "UPDATE users SET organization_id = $2, updated_at = NOW() WHERE id = $1",
                user['id'], organization_id
            )

        await conn.execute("""
            INSERT INTO team_members (id, user_id, organization_id, role, status, joined_at)
            VALUES (gen_random_uuid(), $1, $2, $3, 'ACTIVE', NOW())
            ON CONFLICT (user_id, organization_id)
            DO UPDATE SET role = EXCLUDED.role, status = 'ACTIVE', joined_at = NOW()
        """, user['id'], organization_id, claimed['role'])

        await conn.execute(
            "UPDATE invitations SET invited_user_id = $2 WHERE id = $1",
            claimed['id'], user['id']
        )

        organization = await conn.fetchrow(
            "SELECT id, name FROM organizations WHERE id = $1",
            organization_id
        )

        logger.info(f"Invitation {claimed['id']} accepted: {email} joined organization {organization_id} as {claimed['role']}")

        return {
            'user': {
                'id': str(user['id']),
                'email': user['email'],
                'name': user['name'],
            },
            'organization': {
                'id': str(organization_id),
                'name': organization['name'] if organization else None,
            },
            'role': claimed['role'],
            'user_created': created,
        }


async def list_invitations(organization_id: str) -> list:
    """All invitations of an organization, newest first"""
    async with get_db_connection(use_transaction=False) as conn:
        rows = await conn.fetch("""
            SELECT
                i.id, i.email, i.role, i.status, i.expires_at,
                i.created_at, i.accepted_at,
                u.name AS invited_by_name,
                u.email AS invited_by_email
            FROM invitations i
            LEFT JOIN users u ON u.id = i.invited_by_id
            WHERE i.organization_id = $1
            ORDER BY i.created_at DESC
        """, organization_id)

    now = utcnow()
    invitations = []
    for row in rows:
        invitation = dict(row)
        invitation['id'] = str(invitation['id'])
        if invitation['status'] == 'PENDING' and invitation_token_status(row, now) == TokenStatus.EXPIRED:
            invitation['status'] = 'EXPIRED'
        invitations.append(invitation)
    return invitations


async def revoke_invitation(invitation_id: str, organization_id: str) -> bool:
    """
    Revoke a pending invitation

    Returns:
        True if revoked, False if no pending invitation matched
    """
    async with get_db_connection() as conn:
        result = await conn.execute("""
            UPDATE invitations
            SET status = 'REVOKED'
            WHERE id = $1 AND organization_id = $2 AND status = 'PENDING'
        """, invitation_id, organization_id)

        revoked = result.split()[-1] == '1'
        if revoked:
            logger.info(f"Invitation {invitation_id} revoked")
        return revoked


async def resend_invitation(invitation_id: str, organization_id: str, inviter_name: Optional[str]) -> dict:
    """
    Resend the email of a pending invitation

    Raises:
        NotFoundError: invitation not found in this organization
        ValidationError: invitation is no longer pending or has expired
        EmailDeliveryError: email could not be sent
    """
    async with get_db_connection(use_transaction=False) as conn:
        invitation = await conn.fetchrow("""
            SELECT i.id, i.email, i.role, i.status, i.token, i.expires_at, o.name AS organization_name
            FROM invitations i
            JOIN organizations o ON o.id = i.organization_id
            WHERE i.id = $1 AND i.organization_id = $2
        """, invitation_id, organization_id)

    if not invitation:
        raise NotFoundError("Invitation not found")

    status = invitation_token_status(invitation)
    if status == TokenStatus.ALREADY_USED:
        raise ValidationError(f"Cannot resend: invitation is {invitation['status']}")
    if status == TokenStatus.EXPIRED:
        raise ValidationError("The invitation has expired. Create a new invitation.")

    sent = await email_service.send_invitation_email(
        to_email=invitation['email'],
        inviter_name=inviter_name,
        organization_name=invitation['organization_name'],
        role=invitation['role'],
        accept_url=build_accept_url(invitation['token'])
    )
    if not sent:
        raise EmailDeliveryError("Failed to resend invitation email")

    logger.info(f"Invitation {invitation_id} resent to {invitation['email']}")

    return {
        'id': str(invitation['id']),
        'email': invitation['email'],
        'role': invitation['role'],
        'status': invitation['status'],
        'expires_at': invitation['expires_at'],
    }
