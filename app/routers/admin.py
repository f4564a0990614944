"""
Platform admin endpoints (users.role = 'ADMIN')
"""
from fastapi import APIRouter, Depends

from app.core.dependencies import AuthenticatedUser, require_platform_admin
from app.models.admin import OrganizationListing, PlatformStats, SendEmailRequest, UserDirectory
from app.models.waitlist import WaitlistListing, WaitlistStatusUpdate
from app.services import admin_service, waitlist_service

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/waitlist", response_model=WaitlistListing)
async def list_waitlist(admin: AuthenticatedUser = Depends(require_platform_admin)):
    return await waitlist_service.list_waitlist()


@router.patch("/waitlist/{entry_id}")
async def update_waitlist_status(
    entry_id: str,
    data: WaitlistStatusUpdate,
    admin: AuthenticatedUser = Depends(require_platform_admin)
):
    """
    Approve or reject a pending entry.
    Approval emails the onboarding link.
    """
    entry = await waitlist_service.update_status(entry_id, data.status.value)
    return {"success": True, "waitlist": entry}


@router.get("/stats", response_model=PlatformStats)
async def get_stats(admin: AuthenticatedUser = Depends(require_platform_admin)):
    return await admin_service.get_platform_stats()


@router.get("/organizations", response_model=OrganizationListing)
async def list_organizations(admin: AuthenticatedUser = Depends(require_platform_admin)):
    return await admin_service.list_organizations()


@router.get("/users", response_model=UserDirectory)
async def list_users(admin: AuthenticatedUser = Depends(require_platform_admin)):
    """Organizations with their users, plus users without an organization"""
    return await admin_service.list_users()


@router.post("/send-email")
async def send_email(
    data: SendEmailRequest,
    admin: AuthenticatedUser = Depends(require_platform_admin)
):
    return await admin_service.send_admin_email(
        to=data.to,
        subject=data.subject,
        html=data.html,
        text=data.text,
        sent_by=admin.email
    )
