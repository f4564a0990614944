"""
Platform admin tools: platform-wide counters, organization and user
directories, and ad-hoc email
"""
import logging
from collections import defaultdict
from html import escape
from typing import List, Optional

from app.core.exceptions import EmailDeliveryError
from app.database import get_db_connection
from app.services import email_service

logger = logging.getLogger(__name__)


async def get_platform_stats() -> dict:
    async with get_db_connection(use_transaction=False) as conn:
        row = await conn.fetchrow("""
            SELECT
                (SELECT COUNT(*) FROM users) AS total_users,
                (SELECT COUNT(*) FROM organizations) AS total_organizations,
                (SELECT COUNT(*) FROM team_members WHERE status = 'ACTIVE') AS total_team_members,
                (SELECT COUNT(*) FROM waitlist) AS total_waitlist,
                (SELECT COUNT(*) FROM waitlist WHERE status = 'PENDING') AS pending_waitlist,
                (SELECT COUNT(*) FROM invitations) AS total_invitations,
                (SELECT COUNT(*) FROM invitations
                    WHERE status = 'PENDING' AND expires_at > NOW()) AS pending_invitations,
                (SELECT COUNT(*) FROM subscriptions WHERE status = 'ACTIVE') AS active_subscriptions
        """)

    return {key: int(value or 0) for key, value in dict(row).items()}


_ORGANIZATION_COLUMNS = """
    o.id, o.name, o.slug, o.created_at,
    (SELECT COUNT(*) FROM users u WHERE u.organization_id = o.id) AS user_count,
    (SELECT COUNT(*) FROM team_members tm
        WHERE tm.organization_id = o.id AND tm.status = 'ACTIVE') AS team_member_count
"""


def _organization_dict(row) -> dict:
    return {
        'id': str(row['id']),
        'name': row['name'],
        'slug': row['slug'],
        'created_at': row['created_at'],
        'user_count': int(row['user_count'] or 0),
        'team_member_count': int(row['team_member_count'] or 0),
    }


def _user_dict(row) -> dict:
    user = dict(row)
    user['id'] = str(user['id'])
    user.pop('organization_id', None)
    return user


async def list_organizations() -> dict:
    """All organizations by name with their user and active member counts"""
    async with get_db_connection(use_transaction=False) as conn:
        rows = await conn.fetch(f"""
            SELECT {_ORGANIZATION_COLUMNS}
            FROM organizations o
            ORDER BY o.name
        """)

    return {'organizations': [_organization_dict(row) for row in rows]}


async def list_users() -> dict:
    """
    User directory: organizations newest first with their users and
    subscription summary, plus the users that belong to no organization.
    """
    async with get_db_connection(use_transaction=False) as conn:
        organizations = await conn.fetch(f"""
            SELECT {_ORGANIZATION_COLUMNS},
                s.plan, s.status AS subscription_status, s.current_period_end
            FROM organizations o
            LEFT JOIN subscriptions s ON s.organization_id = o.id
            ORDER BY o.created_at DESC
        """)
        users = await conn.fetch("""
            SELECT id, name, email, role, organization_id, created_at, updated_at
            FROM users
            ORDER BY created_at DESC
        """)

    users_by_organization = defaultdict(list)
    without_organization = []
    for row in users:
        if row['organization_id']:
            users_by_organization[str(row['organization_id'])].append(_user_dict(row))
        else:
            without_organization.append(_user_dict(row))

    directory = []
    for row in organizations:
        organization = _organization_dict(row)
        organization['users'] = users_by_organization.get(organization['id'], [])
        organization['subscription'] = {
            'plan': row['plan'],
            'status': row['subscription_status'],
            'current_period_end': row['current_period_end'],
        } if row['plan'] else None
        directory.append(organization)

    return {
        'organizations': directory,
        'users_without_organization': without_organization,
        'total_organizations': len(directory),
        'total_users': len(users),
    }


async def send_admin_email(
    to: List[str],
    subject: str,
    html: Optional[str] = None,
    text: Optional[str] = None,
    sent_by: Optional[str] = None
) -> dict:
    """
    Raises:
        EmailDeliveryError: SES rejected or could not send the message
    """
    html_body = html or f"<pre style=\"font-family: inherit; white-space: pre-wrap;\">{escape(text)}</pre>"

    sent = await email_service.send_email(
        to_email=list(to),
        subject=subject,
        html_body=html_body,
        text_body=text
    )
    if not sent:
        raise EmailDeliveryError("Failed to send email")

    logger.info(f"Admin email '{subject}' sent to {len(to)} recipient(s) by {sent_by}")
    return {'success': True, 'message': "Email sent successfully"}
