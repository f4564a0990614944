"""
Stripe Billing Gateway (stripe.com)

Recurring subscriptions through hosted Checkout and the Customer Portal.
Requests go to the REST API as form-encoded bodies; webhooks are signed
with the endpoint secret in the `Stripe-Signature` header.

Documentation: https://docs.stripe.com/api
"""
import hashlib
import hmac
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import httpx

from app.config import settings
from app.models.billing import InvoiceStatus, SubscriptionStatus
from app.services.gateways.base import (
    BaseGateway, CheckoutSession, GatewayError, GatewaySubscription,
    WebhookEvent, WebhookVerificationError
)

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "stripe-signature"
SIGNATURE_SCHEME = "v1"


def form_encode(data: Dict[str, Any], prefix: str = "") -> List[Tuple[str, str]]:
    """Flatten nested dicts/lists into Stripe's bracket notation, e.g. metadata[plan]"""
    pairs = []
    for key, value in data.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, dict):
            pairs.extend(form_encode(value, name))
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                item_name = f"{name}[{index}]"
                if isinstance(item, dict):
                    pairs.extend(form_encode(item, item_name))
                else:
                    pairs.append((item_name, str(item)))
        elif isinstance(value, bool):
            pairs.append((name, "true" if value else "false"))
        else:
            pairs.append((name, str(value)))
    return pairs


def from_timestamp(value: Optional[int]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def compute_signature(secret: str, timestamp: str, body: bytes) -> str:
    signed_payload = f"{timestamp}.".encode() + body
    return hmac.new(secret.encode(), signed_payload, hashlib.sha256).hexdigest()


def parse_signature_header(header: str) -> Tuple[Optional[str], List[str]]:
    """Split `t=...,v1=...,v1=...` into the timestamp and the v1 signatures"""
    timestamp = None
    signatures = []
    for item in header.split(","):
        key, _, value = item.strip().partition("=")
        if key == "t":
            timestamp = value
        elif key == SIGNATURE_SCHEME:
            signatures.append(value)
    return timestamp, signatures


class StripeGateway(BaseGateway):
    """Stripe gateway implementation over the REST API"""

    def __init__(self):
        self.secret_key = settings.stripe_secret_key
        self.webhook_secret = settings.stripe_webhook_secret
        self.base_url = settings.stripe_api_base.rstrip("/")
        self.tolerance = settings.stripe_webhook_tolerance_seconds

    @property
    def name(self) -> str:
        return "stripe"

    @property
    def display_name(self) -> str:
        return "Stripe"

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        }

    async def _request(self, method: str, path: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if not self.secret_key:
            raise GatewayError("STRIPE_SECRET_KEY is not configured")

        try:
            async with httpx.AsyncClient() as client:
                response = await client.request(
                    method,
                    f"{self.base_url}{path}",
                    data=form_encode(data) if data else None,
                    headers=self._get_headers(),
                    timeout=30.0
                )
        except httpx.RequestError as e:
            logger.error(f"Stripe API request failed: {e}")
            raise GatewayError(f"Failed to connect to Stripe: {e}") from e

        response_data = response.json()

        if response.status_code >= 400:
            error_msg = response_data.get("error", {}).get("message", "Unknown error")
            logger.error(f"Stripe API error: {response.status_code} - {error_msg}")
            raise GatewayError(f"Stripe request failed: {error_msg}")

        return response_data

    async def create_customer(self, email: str, name: Optional[str], metadata: Dict[str, str]) -> str:
        customer = await self._request("POST", "/customers", {
            "email": email,
            "name": name,
            "metadata": metadata,
        })
        logger.info(f"Created Stripe customer {customer['id']}")
        return customer["id"]

    async def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        metadata: Dict[str, str],
        success_url: str,
        cancel_url: str
    ) -> CheckoutSession:
        session = await self._request("POST", "/checkout/sessions", {
            "mode": "subscription",
            "payment_method_types": ["card"],
            "customer": customer_id,
            "line_items": [{"price": price_id, "quantity": 1}],
            "metadata": metadata,
            "subscription_data": {"metadata": metadata},
            "success_url": success_url,
            "cancel_url": cancel_url,
            "allow_promotion_codes": True,
        })
        logger.info(f"Created Stripe checkout session {session['id']} for customer {customer_id}")
        return CheckoutSession(
            session_id=session["id"],
            url=session["url"],
            customer_id=customer_id
        )

    async def create_portal_session(self, customer_id: str, return_url: str) -> str:
        session = await self._request("POST", "/billing_portal/sessions", {
            "customer": customer_id,
            "return_url": return_url,
        })
        return session["url"]

    async def retrieve_subscription(self, subscription_id: str) -> GatewaySubscription:
        subscription = await self._request("GET", f"/subscriptions/{subscription_id}")
        return self.parse_subscription(subscription)

    def parse_subscription(self, subscription: Dict[str, Any]) -> GatewaySubscription:
        """Build a GatewaySubscription from a Stripe subscription object"""
        period_start = subscription.get("current_period_start")
        period_end = subscription.get("current_period_end")

        # Newer API versions report billing periods per subscription item
        items = (subscription.get("items") or {}).get("data") or []
        if items and not period_start:
            period_start = items[0].get("current_period_start")
            period_end = items[0].get("current_period_end")

        return GatewaySubscription(
            subscription_id=subscription["id"],
            status=self.map_subscription_status(subscription.get("status")),
            customer_id=subscription.get("customer"),
            current_period_start=from_timestamp(period_start),
            current_period_end=from_timestamp(period_end),
            cancel_at_period_end=bool(subscription.get("cancel_at_period_end")),
            canceled_at=from_timestamp(subscription.get("canceled_at")),
            metadata=subscription.get("metadata") or {},
        )

    def verify_webhook(self, headers: Dict[str, str], body: bytes) -> WebhookEvent:
        """
        Verify the Stripe-Signature header and parse the event.

        The signature is HMAC-SHA256 of "{t}.{raw body}" keyed with the
        endpoint secret; any v1 entry may match. Timestamps older than the
        tolerance are rejected.
        """
        if not self.webhook_secret:
            raise WebhookVerificationError("Webhook secret is not configured")

        header = None
        for key, value in headers.items():
            if key.lower() == SIGNATURE_HEADER:
                header = value
                break

        if not header:
            raise WebhookVerificationError("No signature")

        timestamp, signatures = parse_signature_header(header)
        if not timestamp or not signatures:
            raise WebhookVerificationError("Malformed signature header")

        expected = compute_signature(self.webhook_secret, timestamp, body).encode()
        # Header values may carry non-ASCII; compare bytes
        candidates = [signature.encode("utf-8", "surrogateescape") for signature in signatures]
        if not any(hmac.compare_digest(expected, candidate) for candidate in candidates):
            raise WebhookVerificationError("Invalid signature")

        try:
            signed_at = int(timestamp)
        except ValueError:
            raise WebhookVerificationError("Malformed signature timestamp")

        if self.tolerance and abs(time.time() - signed_at) > self.tolerance:
            raise WebhookVerificationError("Signature timestamp outside the tolerance zone")

        try:
            payload = json.loads(body)
        except ValueError:
            raise WebhookVerificationError("Invalid payload")

        return WebhookEvent(
            id=payload.get("id", ""),
            type=payload.get("type", ""),
            data=(payload.get("data") or {}).get("object") or {},
            created=from_timestamp(payload.get("created")),
        )

    def map_subscription_status(self, gateway_status: Optional[str]) -> SubscriptionStatus:
        status_map = {
            'active': SubscriptionStatus.ACTIVE,
            'canceled': SubscriptionStatus.CANCELLED,
            'paused': SubscriptionStatus.CANCELLED,
            'past_due': SubscriptionStatus.PAST_DUE,
            'unpaid': SubscriptionStatus.PAST_DUE,
            'incomplete': SubscriptionStatus.INCOMPLETE,
            'incomplete_expired': SubscriptionStatus.INCOMPLETE,
            'trialing': SubscriptionStatus.TRIALING,
        }
        return status_map.get((gateway_status or '').lower(), SubscriptionStatus.INCOMPLETE)

    def map_invoice_status(self, gateway_status: Optional[str]) -> InvoiceStatus:
        status_map = {
            'paid': InvoiceStatus.PAID,
            'open': InvoiceStatus.PENDING,
            'draft': InvoiceStatus.PENDING,
            'uncollectible': InvoiceStatus.FAILED,
            'void': InvoiceStatus.VOID,
        }
        return status_map.get((gateway_status or '').lower(), InvoiceStatus.PENDING)
