"""
API endpoints for organization members
"""
from typing import List

from fastapi import APIRouter, Depends

from app.core.dependencies import (
    AuthenticatedUser, get_organization_manager, get_organization_member
)
from app.core.exceptions import NotFoundError
from app.models.team import MemberRoleUpdate, TeamMember
from app.services import team_service

router = APIRouter(prefix="/team", tags=["team"])


@router.get("/members", response_model=List[TeamMember])
async def list_members(user: AuthenticatedUser = Depends(get_organization_member)):
    return await team_service.list_members(user.organization_id)


@router.patch("/members/{member_id}", response_model=TeamMember)
async def update_member_role(
    member_id: str,
    data: MemberRoleUpdate,
    user: AuthenticatedUser = Depends(get_organization_manager)
):
    return await team_service.update_member_role(
        member_id=member_id,
        new_role=data.role.value,
        organization_id=user.organization_id,
        actor_user_id=user.user_id,
        actor_role=user.org_role
    )


@router.delete("/members/{member_id}")
async def remove_member(
    member_id: str,
    user: AuthenticatedUser = Depends(get_organization_manager)
):
    removed = await team_service.remove_member(
        member_id=member_id,
        organization_id=user.organization_id,
        actor_user_id=user.user_id,
        actor_role=user.org_role
    )
    if not removed:
        raise NotFoundError("Member not found")

    return {"success": True, "message": "Member removed"}
