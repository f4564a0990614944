"""
Organization setup for users who signed up without one
"""
from fastapi import APIRouter, Depends

from app.core.dependencies import AuthenticatedUser, get_authenticated_user
from app.models.team import OrganizationSetup
from app.services import team_service

router = APIRouter(prefix="/organization", tags=["organization"])


@router.post("/setup")
async def setup_organization(
    data: OrganizationSetup,
    user: AuthenticatedUser = Depends(get_authenticated_user)
):
    return await team_service.setup_organization(user.user_id, data.organization_name)
