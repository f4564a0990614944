from fastapi import APIRouter

from app.models.waitlist import WaitlistJoin
from app.services import waitlist_service

router = APIRouter(prefix="/waitlist", tags=["waitlist"])


@router.post("", status_code=201)
async def join_waitlist(data: WaitlistJoin):
    """Public: request access to GladiatorRX"""
    entry = await waitlist_service.join_waitlist(
        email=data.email,
        name=data.name,
        company=data.company,
        message=data.message
    )
    return {
        "success": True,
        "message": "You have been added to the waitlist",
        "id": entry['id']
    }
