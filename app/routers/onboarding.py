"""
Public onboarding endpoints for approved waitlist entries
"""
from fastapi import APIRouter, Query

from app.models.auth import OnboardingComplete
from app.services import onboarding_service

router = APIRouter(prefix="/onboarding", tags=["onboarding"])


@router.get("/verify")
async def verify_onboarding(token: str = Query(..., min_length=1)):
    waitlist = await onboarding_service.verify_onboarding(token)
    return {"success": True, "waitlist": waitlist}


@router.post("/complete")
async def complete_onboarding(data: OnboardingComplete):
    """Create the user, organization and OWNER membership"""
    return await onboarding_service.complete_onboarding(
        token=data.token,
        organization_name=data.organization_name,
        password=data.password
    )
