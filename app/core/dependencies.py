from fastapi import Request
from app.core.middleware import get_session_context
from app.core.exceptions import AuthenticationError, AuthorizationError, NotFoundError
from app.models.team import OrgRole
import logging

logger = logging.getLogger(__name__)

ORG_MANAGER_ROLES = (OrgRole.OWNER.value, OrgRole.ADMIN.value)


class AuthenticatedUser:
    """
    Dependency class that provides the session user.
    Use this for endpoints that require authentication.
    """
    def __init__(self, request: Request):
        self.session = get_session_context(request)

        if not self.session.is_valid:
            raise AuthenticationError("Authentication required")

    @property
    def user_id(self) -> str:
        return str(self.session.user_id)

    @property
    def email(self) -> str:
        return self.session.email

    @property
    def name(self) -> str:
        return self.session.name

    @property
    def organization_id(self):
        return self.session.organization_id

    @property
    def org_role(self):
        return self.session.org_role

    @property
    def is_platform_admin(self) -> bool:
        return self.session.is_platform_admin


def get_authenticated_user(request: Request) -> AuthenticatedUser:
    """Dependency to get authenticated user"""
    return AuthenticatedUser(request)


def get_organization_member(request: Request) -> AuthenticatedUser:
    """Authenticated user with an active membership in their organization"""
    user = AuthenticatedUser(request)
    if not user.organization_id:
        raise NotFoundError("No organization found for user")
    if not user.org_role:
        raise AuthorizationError("Not a team member")
    return user


def get_organization_manager(request: Request) -> AuthenticatedUser:
    """Organization member whose role is OWNER or ADMIN"""
    user = get_organization_member(request)
    if user.org_role not in ORG_MANAGER_ROLES:
        raise AuthorizationError("Only owners and admins can manage the team")
    return user


def require_platform_admin(request: Request) -> AuthenticatedUser:
    """Platform administrator, identified by users.role = 'ADMIN'"""
    user = AuthenticatedUser(request)
    if not user.is_platform_admin:
        raise AuthorizationError("Forbidden - Admin only")
    return user
