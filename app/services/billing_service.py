"""
Subscription billing: read APIs, checkout/portal sessions and the
payment webhook dispatcher.

Every invoice write is an upsert keyed on the provider invoice id, so a
replayed webhook event never creates a second invoice row.
"""
import logging
from typing import Any, Dict, Optional

from app.config import settings
from app.core.exceptions import NotFoundError, PaymentError, ValidationError
from app.database import get_db_connection
from app.models.billing import BillingInterval, InvoiceStatus, Plan, SubscriptionStatus
from app.services.gateways import get_gateway
from app.services.gateways.base import GatewayError, WebhookEvent, WebhookVerificationError
from app.services.gateways.stripe import from_timestamp

logger = logging.getLogger(__name__)

SUBSCRIPTION_COLUMNS = """
    id, organization_id, plan, interval, status, stripe_customer_id,
    stripe_subscription_id, current_period_start, current_period_end,
    cancel_at_period_end, canceled_at
"""


def _subscription_dict(row) -> dict:
    subscription = dict(row)
    subscription['id'] = str(subscription['id'])
    subscription['organization_id'] = str(subscription['organization_id'])
    return subscription


async def get_subscription(organization_id: str) -> Optional[dict]:
    async with get_db_connection(use_transaction=False) as conn:
        row = await conn.fetchrow(
            f"SELECT {SUBSCRIPTION_COLUMNS} FROM subscriptions WHERE organization_id = $1",
            organization_id
        )
        return _subscription_dict(row) if row else None


async def list_invoices(organization_id: str) -> list:
    """Invoices of the organization's subscription, newest first"""
    async with get_db_connection(use_transaction=False) as conn:
        rows = await conn.fetch("""
            SELECT i.id, i.stripe_invoice_id, i.amount, i.currency, i.status,
                   i.invoice_url, i.paid_at, i.created_at
            FROM invoices i
            JOIN subscriptions s ON s.id = i.subscription_id
            WHERE s.organization_id = $1
            ORDER BY i.created_at DESC
        """, organization_id)

    invoices = []
    for row in rows:
        invoice = dict(row)
        invoice['id'] = str(invoice['id'])
        invoices.append(invoice)
    return invoices


def resolve_price(plan: str, interval: str) -> tuple:
    """
    Normalize plan/interval and look up the configured price id

    Raises:
        ValidationError: unknown plan/interval or no price configured
    """
    plan = (plan or '').strip().upper()
    interval = (interval or '').strip().upper()

    if plan not in Plan.__members__ or interval not in BillingInterval.__members__:
        raise ValidationError("Invalid plan or interval", {"plan": plan, "interval": interval})

    price_id = settings.stripe_price_id(plan, interval)
    if not price_id:
        logger.error(f"No Stripe price configured for {plan}/{interval}")
        raise ValidationError("Invalid plan or interval", {"plan": plan, "interval": interval})

    return plan, interval, price_id


async def create_checkout(user_id: str, email: str, name: Optional[str], organization_id: str, plan: str, interval: str) -> dict:
    """
    Start a hosted checkout for a subscription plan.
    A provider customer is created for organizations that have none.
    """
    plan, interval, price_id = resolve_price(plan, interval)
    gateway = get_gateway()

    async with get_db_connection(use_transaction=False) as conn:
        customer_id = await conn.fetchval(
            "SELECT stripe_customer_id FROM subscriptions WHERE organization_id = $1",
            organization_id
        )

    metadata = {
        'organizationId': str(organization_id),
        'plan': plan,
        'interval': interval,
    }

    try:
        if not customer_id:
            customer_id = await gateway.create_customer(
                email=email,
                name=name,
                metadata={'userId': str(user_id), 'organizationId': str(organization_id)}
            )

        session = await gateway.create_checkout_session(
            customer_id=customer_id,
            price_id=price_id,
            metadata={**metadata, 'userId': str(user_id)},
            success_url=f"{settings.app_url}/dashboard/subscription?success=true",
            cancel_url=f"{settings.app_url}/dashboard/subscription?canceled=true"
        )
    except GatewayError as e:
        raise PaymentError("Failed to create checkout session", {"reason": str(e)}, status_code=502)

    logger.info(f"Checkout session {session.session_id} created for organization {organization_id} ({plan}/{interval})")

    return {'url': session.url, 'session_id': session.session_id}


async def create_portal(organization_id: str) -> dict:
    async with get_db_connection(use_transaction=False) as conn:
        customer_id = await conn.fetchval(
            "SELECT stripe_customer_id FROM subscriptions WHERE organization_id = $1",
            organization_id
        )

    if not customer_id:
        raise NotFoundError("No billing account found for this organization")

    try:
        url = await get_gateway().create_portal_session(
            customer_id=customer_id,
            return_url=f"{settings.app_url}/dashboard/subscription"
        )
    except GatewayError as e:
        raise PaymentError("Failed to create portal session", {"reason": str(e)}, status_code=502)

    return {'url': url}


# ============================================================================
# WEBHOOK DISPATCHER
# ============================================================================

async def process_webhook(headers: Dict[str, str], body: bytes) -> dict:
    """
    Verify and dispatch a payment webhook.

    Raises:
        PaymentError (400): missing or invalid signature
    """
    gateway = get_gateway()

    try:
        event = gateway.verify_webhook(headers, body)
    except WebhookVerificationError as e:
        logger.warning(f"Webhook signature verification failed: {e}")
        raise PaymentError(str(e), status_code=400)

    handler = EVENT_HANDLERS.get(event.type)
    if not handler:
        logger.info(f"Unhandled webhook event type: {event.type}")
        return {'received': True}

    logger.info(f"Processing webhook event {event.id} ({event.type})")
    await handler(event)
    return {'received': True}


def _invoice_subscription_id(invoice: Dict[str, Any]) -> Optional[str]:
    subscription = invoice.get('subscription')
    if isinstance(subscription, dict):
        return subscription.get('id')
    if subscription:
        return subscription
    # Newer API versions nest it under parent.subscription_details
    details = (invoice.get('parent') or {}).get('subscription_details') or {}
    return details.get('subscription')


async def upsert_invoice(
    conn,
    subscription_id,
    stripe_invoice_id: str,
    amount: int,
    currency: str,
    status: InvoiceStatus,
    invoice_url: Optional[str],
    paid_at=None
):
    """Insert or update an invoice by its provider id. A PAID invoice is never downgraded."""
    return await conn.fetchrow("""
        INSERT INTO invoices (
            id, subscription_id, stripe_invoice_id, amount, currency,
            status, invoice_url, paid_at, created_at, updated_at
        )
        VALUES (gen_random_uuid(), $1, $2, $3, $4, $5, $6, $7, NOW(), NOW())
        ON CONFLICT (stripe_invoice_id) DO UPDATE SET
            amount = EXCLUDED.amount,
            currency = EXCLUDED.currency,
            status = CASE WHEN invoices.status = 'PAID' THEN invoices.status ELSE EXCLUDED.status END,
            invoice_url = COALESCE(EXCLUDED.invoice_url, invoices.invoice_url),
            paid_at = COALESCE(invoices.paid_at, EXCLUDED.paid_at),
            updated_at = NOW()
        RETURNING id, stripe_invoice_id, status
    """, subscription_id, stripe_invoice_id, amount, currency,
        getattr(status, 'value', status), invoice_url, paid_at)


async def _find_subscription(conn, stripe_subscription_id: Optional[str]):
    if not stripe_subscription_id:
        return None
    return await conn.fetchrow(
        "SELECT id, organization_id, status FROM subscriptions WHERE stripe_subscription_id = $1",
        stripe_subscription_id
    )


async def handle_checkout_completed(event: WebhookEvent):
    session = event.data
    metadata = session.get('metadata') or {}
    organization_id = metadata.get('organizationId')
    plan = metadata.get('plan')
    interval = metadata.get('interval')

    if not organization_id or not plan or not interval:
        logger.error(f"Missing metadata in checkout session {session.get('id')}: {metadata}")
        return

    try:
        subscription = await get_gateway().retrieve_subscription(session.get('subscription'))
    except GatewayError as e:
        raise PaymentError("Failed to retrieve subscription", {"reason": str(e)}, status_code=502)

    async with get_db_connection() as conn:
        await conn.execute("""
            INSERT INTO subscriptions (
                id, organization_id, plan, interval, status, stripe_customer_id,
                stripe_subscription_id, current_period_start, current_period_end,
                cancel_at_period_end, created_at, updated_at
            )
            VALUES (gen_random_uuid(), $1, $2, $3, $4, $5, $6, $7, $8, $9, NOW(), NOW())
            ON CONFLICT (organization_id) DO UPDATE SET
                plan = EXCLUDED.plan,
                interval = EXCLUDED.interval,
                status = EXCLUDED.status,
                stripe_customer_id = EXCLUDED.stripe_customer_id,
                stripe_subscription_id = EXCLUDED.stripe_subscription_id,
                current_period_start = EXCLUDED.current_period_start,
                current_period_end = EXCLUDED.current_period_end,
                cancel_at_period_end = EXCLUDED.cancel_at_period_end,
                updated_at = NOW()
        """, organization_id, plan, interval, subscription.status.value,
            session.get('customer'), subscription.subscription_id,
            subscription.current_period_start, subscription.current_period_end,
            subscription.cancel_at_period_end)

    logger.info(f"Subscription created/updated for organization {organization_id}")


async def handle_subscription_updated(event: WebhookEvent):
    subscription = get_gateway().parse_subscription(event.data)

    async with get_db_connection() as conn:
        result = await conn.execute("""
            UPDATE subscriptions
            SET status = $2,
                current_period_start = COALESCE($3, current_period_start),
                current_period_end = COALESCE($4, current_period_end),
                cancel_at_period_end = $5,
                canceled_at = $6,
                updated_at = NOW()
            WHERE stripe_subscription_id = $1
        """, subscription.subscription_id, subscription.status.value,
            subscription.current_period_start, subscription.current_period_end,
            subscription.cancel_at_period_end, subscription.canceled_at)

    if result.split()[-1] == '0':
        logger.warning(f"Subscription {subscription.subscription_id} not found for update")
    else:
        logger.info(f"Subscription updated: {subscription.subscription_id} -> {subscription.status.value}")


async def handle_subscription_deleted(event: WebhookEvent):
    stripe_subscription_id = event.data.get('id')

    async with get_db_connection() as conn:
        await conn.execute("""
            UPDATE subscriptions
            SET status = $2, canceled_at = NOW(), updated_at = NOW()
            WHERE stripe_subscription_id = $1
        """, stripe_subscription_id, SubscriptionStatus.CANCELLED.value)

    logger.info(f"Subscription deleted: {stripe_subscription_id}")


async def handle_invoice_payment_succeeded(event: WebhookEvent):
    invoice = event.data
    paid_at = from_timestamp((invoice.get('status_transitions') or {}).get('paid_at')) or event.created

    async with get_db_connection() as conn:
        subscription = await _find_subscription(conn, _invoice_subscription_id(invoice))
        if not subscription:
            logger.error(f"Subscription not found for invoice {invoice.get('id')}")
            return

        await upsert_invoice(
            conn,
            subscription['id'],
            invoice['id'],
            invoice.get('amount_paid') or 0,
            invoice.get('currency') or 'usd',
            InvoiceStatus.PAID,
            invoice.get('hosted_invoice_url'),
            paid_at
        )

    logger.info(f"Invoice payment recorded: {invoice['id']}")


async def handle_invoice_payment_failed(event: WebhookEvent):
    invoice = event.data

    async with get_db_connection() as conn:
        subscription = await _find_subscription(conn, _invoice_subscription_id(invoice))
        if not subscription:
            logger.error(f"Subscription not found for failed invoice {invoice.get('id')}")
            return

        await conn.execute(
            "UPDATE subscriptions SET status = $2, updated_at = NOW() WHERE id = $1",
            subscription['id'], SubscriptionStatus.PAST_DUE.value
        )

        await upsert_invoice(
            conn,
            subscription['id'],
            invoice['id'],
            invoice.get('amount_due') or 0,
            invoice.get('currency') or 'usd',
            InvoiceStatus.FAILED,
            invoice.get('hosted_invoice_url')
        )

    logger.info(f"Payment failed for invoice {invoice['id']}")


async def handle_invoice_finalized(event: WebhookEvent):
    invoice = event.data

    async with get_db_connection() as conn:
        subscription = await _find_subscription(conn, _invoice_subscription_id(invoice))
        if not subscription:
            return

        await upsert_invoice(
            conn,
            subscription['id'],
            invoice['id'],
            invoice.get('amount_due') or 0,
            invoice.get('currency') or 'usd',
            get_gateway().map_invoice_status(invoice.get('status')),
            invoice.get('hosted_invoice_url')
        )


EVENT_HANDLERS = {
    'checkout.session.completed': handle_checkout_completed,
    'customer.subscription.updated': handle_subscription_updated,
    'customer.subscription.deleted': handle_subscription_deleted,
    'invoice.payment_succeeded': handle_invoice_payment_succeeded,
    'invoice.payment_failed': handle_invoice_payment_failed,
    'invoice.finalized': handle_invoice_finalized,
}
