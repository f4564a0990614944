"""
API endpoints for team member invitations
"""
import logging
from typing import List

from fastapi import APIRouter, Depends

from app.core.dependencies import (
    AuthenticatedUser, get_organization_manager, get_organization_member
)
from app.core.exceptions import NotFoundError
from app.models.invitation import InvitationAccept, InvitationCreate, InvitationResponse
from app.services import invitations_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invitations", tags=["invitations"])


@router.get("", response_model=List[InvitationResponse])
async def list_invitations(user: AuthenticatedUser = Depends(get_organization_member)):
    """Invitations of the current organization"""
    return await invitations_service.list_invitations(user.organization_id)


@router.post("", status_code=201)
async def send_invitation(
    invitation: InvitationCreate,
    user: AuthenticatedUser = Depends(get_organization_manager)
):
    """
    Invite an email to the current organization

    Requires OWNER or ADMIN role
    """
    result = await invitations_service.issue_invitation(
        organization_id=user.organization_id,
        invited_by_id=user.user_id,
        inviter_name=user.name,
        email=invitation.email,
        role=invitation.role.value
    )

    return {
        "success": True,
        "message": f"Invitation sent to {result['email']}",
        "invitation": result
    }


@router.get("/{token}")
async def get_invitation(token: str):
    """
    Public: invitation details for the accept page

    `token_status` is VALID, EXPIRED or ALREADY_USED; unknown tokens are 404.
    """
    return await invitations_service.get_invitation_details(token)


@router.post("/{token}/accept")
async def accept_invitation(token: str, data: InvitationAccept):
    """
    Public: accept an invitation.
    New users must send name and password; existing users only join.
    """
    result = await invitations_service.accept_invitation(
        token=token,
        name=data.name,
        password=data.password
    )

    return {
        "success": True,
        "message": f"You have joined {result['organization']['name']}",
        **result
    }


@router.delete("/{invitation_id}")
async def revoke_invitation(
    invitation_id: str,
    user: AuthenticatedUser = Depends(get_organization_manager)
):
    """Revoke a pending invitation"""
    revoked = await invitations_service.revoke_invitation(invitation_id, user.organization_id)
    if not revoked:
        raise NotFoundError("Pending invitation not found")

    return {"success": True, "message": "Invitation revoked"}


@router.post("/{invitation_id}/resend")
async def resend_invitation(
    invitation_id: str,
    user: AuthenticatedUser = Depends(get_organization_manager)
):
    """Send the invitation email again"""
    result = await invitations_service.resend_invitation(
        invitation_id=invitation_id,
        organization_id=user.organization_id,
        inviter_name=user.name
    )

    return {
        "success": True,
        "message": f"Invitation resent to {result['email']}",
        "invitation": result
    }
