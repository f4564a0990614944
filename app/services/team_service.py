"""
Organization membership management
"""
import logging

from app.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from app.database import get_db_connection
from app.models.team import OrgRole
from app.services.onboarding_service import create_organization, validate_organization_name

logger = logging.getLogger(__name__)


def _member_dict(row) -> dict:
    member = dict(row)
    member['id'] = str(member['id'])
    member['user_id'] = str(member['user_id'])
    return member


async def list_members(organization_id: str) -> list:
    """Active members of an organization, owners first"""
    async with get_db_connection(use_transaction=False) as conn:
        rows = await conn.fetch("""
            SELECT tm.id, tm.user_id, u.name, u.email, tm.role, tm.status, tm.joined_at
            FROM team_members tm
            JOIN users u ON u.id = tm.user_id
            WHERE tm.organization_id = $1 AND tm.status = 'ACTIVE'
            ORDER BY CASE tm.role
                WHEN 'OWNER' THEN 0 WHEN 'ADMIN' THEN 1
                WHEN 'MEMBER' THEN 2 ELSE 3 END,
                tm.joined_at
        """, organization_id)

    return [_member_dict(row) for row in rows]


async def _get_member(conn, member_id: str, organization_id: str):
    member = await conn.fetchrow("""
        SELECT tm.id, tm.user_id, tm.organization_id, tm.role, tm.status
        FROM team_members tm
        WHERE tm.id = $1 AND tm.status = 'ACTIVE'
    """, member_id)

    if not member:
        raise NotFoundError("Member not found")
    if str(member['organization_id']) != str(organization_id):
        raise AuthorizationError("Member belongs to another organization")
    return member


async def update_member_role(
    member_id: str,
    new_role: str,
    organization_id: str,
    actor_user_id: str,
    actor_role: str
) -> dict:
    """
    Change a member's role.

    Rules: managers only (checked by the route dependency), same
    organization, never your own role, only the OWNER grants OWNER and an
    ADMIN cannot touch the OWNER.
    """
    new_role = getattr(new_role, 'value', new_role)

    async with get_db_connection() as conn:
        member = await _get_member(conn, member_id, organization_id)

        if str(member['user_id']) == str(actor_user_id):
            raise ValidationError("You cannot change your own role")

        if new_role == OrgRole.OWNER.value and actor_role != OrgRole.OWNER.value:
            raise AuthorizationError("Only the owner can assign the owner role")

        if member['role'] == OrgRole.OWNER.value and actor_role == OrgRole.ADMIN.value:
            raise AuthorizationError("Admins cannot change the owner's role")

        row = await conn.fetchrow("""
            UPDATE team_members tm
            SET role = $2
            FROM users u
            WHERE tm.id = $1 AND u.id = tm.user_id
            RETURNING tm.id, tm.user_id, u.name, u.email, tm.role, tm.status, tm.joined_at
        """, member_id, new_role)

    logger.info(f"Member {member_id} of organization {organization_id} changed to {new_role} by {actor_user_id}")
    return _member_dict(row)


async def remove_member(
    member_id: str,
    organization_id: str,
    actor_user_id: str,
    actor_role: str
) -> bool:
    """
    Deactivate a membership (soft delete).
    The OWNER can never be removed and an ADMIN cannot remove another ADMIN.
    """
    async with get_db_connection() as conn:
        member = await _get_member(conn, member_id, organization_id)

        if str(member['user_id']) == str(actor_user_id):
            raise ValidationError("You cannot remove yourself from the team")

        if member['role'] == OrgRole.OWNER.value:
            raise ValidationError("Cannot remove the organization owner")

        if actor_role == OrgRole.ADMIN.value and member['role'] == OrgRole.ADMIN.value:
            raise AuthorizationError("Admins cannot remove other admins")

        result = await conn.execute(
            "UPDATE team_members SET status = 'INACTIVE' WHERE id = $1 AND status = 'ACTIVE'",
            member_id
        )

    removed = result.split()[-1] == '1'
    if removed:
        logger.info(f"Member {member_id} removed from organization {organization_id} by {actor_user_id}")
    return removed


async def setup_organization(user_id: str, organization_name: str) -> dict:
    """
    Create an organization for a user who has none; the user becomes its OWNER.

    A user who already has an organization gets it back unchanged.

    Raises:
        NotFoundError: user not found
        ValidationError: organization name too short
    """
    async with get_db_connection() as conn:
        user = await conn.fetchrow(
            "SELECT id, email, organization_id FROM users WHERE id = $1 FOR UPDATE",
            user_id
        )
        if not user:
            raise NotFoundError("User not found")

        if user['organization_id']:
            existing = await conn.fetchrow(
                "SELECT id, name FROM organizations WHERE id = $1",
                user['organization_id']
            )
            return {
                'success': True,
                'message': "Organization already exists",
                'organization': {
                    'id': str(existing['id']) if existing else str(user['organization_id']),
                    'name': existing['name'] if existing else None,
                },
            }

        name = validate_organization_name(organization_name)
        organization = await create_organization(conn, name)

        await conn.execute(
            "UPDATE users SET organization_id = $2, updated_at = NOW() WHERE id = $1",
            user['id'], organization['id']
        )
        await conn.execute("""
            INSERT INTO team_members (id, user_id, organization_id, role, status, joined_at)
            VALUES (gen_random_uuid(), $1, $2, 'OWNER', 'ACTIVE', NOW())
        """, user['id'], organization['id'])

    logger.info(f"Organization {organization['slug']} created by {user['email']}")

    return {
        'success': True,
        'message': "Organization created successfully",
        'organization': {
            'id': str(organization['id']),
            'name': organization['name'],
            'slug': organization['slug'],
        },
    }
