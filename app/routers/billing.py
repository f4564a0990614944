"""
Subscription billing endpoints and the payment webhook
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, Request

from app.core.dependencies import (
    AuthenticatedUser, get_organization_manager, get_organization_member
)
from app.models.billing import CheckoutRequest, CheckoutResponse, Invoice, PortalResponse, Subscription
from app.services import billing_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["billing"])


# ============================================================================
# PUBLIC ENDPOINTS
# ============================================================================

@router.post("/webhook")
async def billing_webhook(request: Request):
    """
    Webhook endpoint for Stripe events.

    The raw body is needed for signature verification.
    """
    body = await request.body()
    return await billing_service.process_webhook(dict(request.headers), body)


# ============================================================================
# AUTHENTICATED ENDPOINTS
# ============================================================================

@router.get("/subscription")
async def get_subscription(user: AuthenticatedUser = Depends(get_organization_member)):
    subscription = await billing_service.get_subscription(user.organization_id)
    if not subscription:
        return {"subscription": None, "message": "No active subscription"}
    return {"subscription": Subscription(**subscription)}


@router.get("/invoices", response_model=List[Invoice])
async def list_invoices(user: AuthenticatedUser = Depends(get_organization_member)):
    return await billing_service.list_invoices(user.organization_id)


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
    data: CheckoutRequest,
    user: AuthenticatedUser = Depends(get_organization_manager)
):
    """Start a hosted checkout for a plan (OWNER/ADMIN)"""
    return await billing_service.create_checkout(
        user_id=user.user_id,
        email=user.email,
        name=user.name,
        organization_id=user.organization_id,
        plan=data.plan,
        interval=data.interval
    )


@router.post("/portal", response_model=PortalResponse)
async def create_portal(user: AuthenticatedUser = Depends(get_organization_manager)):
    return await billing_service.create_portal(user.organization_id)
