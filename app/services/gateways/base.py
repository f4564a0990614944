"""
Base Billing Gateway Interface

Subscription billing providers implement this interface so the billing
service and webhook dispatcher stay provider-agnostic.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Dict, Any
from datetime import datetime

from app.models.billing import InvoiceStatus, SubscriptionStatus


class WebhookVerificationError(Exception):
    """Webhook payload could not be authenticated"""
    pass


class GatewayError(Exception):
    """The provider API rejected a request or could not be reached"""
    pass


@dataclass
class CheckoutSession:
    """Result of creating a hosted checkout session"""
    session_id: str
    url: str
    customer_id: Optional[str] = None


@dataclass
class GatewaySubscription:
    """Subscription as reported by the provider"""
    subscription_id: str
    status: SubscriptionStatus
    customer_id: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    canceled_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class WebhookEvent:
    """Authenticated webhook event"""
    id: str
    type: str
    data: Dict[str, Any]
    created: Optional[datetime] = None


class BaseGateway(ABC):
    """
    Abstract base class for subscription billing gateways.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Gateway identifier (e.g., 'stripe')"""
        pass

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable gateway name"""
        pass

    @abstractmethod
    async def create_customer(self, email: str, name: Optional[str], metadata: Dict[str, str]) -> str:
        """
        Create a customer record with the provider.

        Returns:
            Provider customer id
        """
        pass

    @abstractmethod
    async def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        metadata: Dict[str, str],
        success_url: str,
        cancel_url: str
    ) -> CheckoutSession:
        """Create a hosted checkout session for a recurring price"""
        pass

    @abstractmethod
    async def create_portal_session(self, customer_id: str, return_url: str) -> str:
        """
        Create a self-service billing portal session.

        Returns:
            Portal URL
        """
        pass

    @abstractmethod
    async def retrieve_subscription(self, subscription_id: str) -> GatewaySubscription:
        """Fetch the current state of a subscription"""
        pass

    @abstractmethod
    def parse_subscription(self, subscription: Dict[str, Any]) -> GatewaySubscription:
        """Build a GatewaySubscription from a provider subscription payload"""
        pass

    @abstractmethod
    def verify_webhook(self, headers: Dict[str, str], body: bytes) -> WebhookEvent:
        """
        Authenticate a webhook request and parse its event.

        Args:
            headers: Request headers
            body: Raw request body

        Raises:
            WebhookVerificationError: missing or invalid signature
        """
        pass

    def map_subscription_status(self, gateway_status: Optional[str]) -> SubscriptionStatus:
        """
        Map gateway-specific subscription status to SubscriptionStatus.
        Override in subclasses for gateway-specific mappings.
        """
        status_map = {
            'active': SubscriptionStatus.ACTIVE,
            'canceled': SubscriptionStatus.CANCELLED,
            'past_due': SubscriptionStatus.PAST_DUE,
            'incomplete': SubscriptionStatus.INCOMPLETE,
            'trialing': SubscriptionStatus.TRIALING,
        }
        return status_map.get((gateway_status or '').lower(), SubscriptionStatus.INCOMPLETE)

    def map_invoice_status(self, gateway_status: Optional[str]) -> InvoiceStatus:
        status_map = {
            'paid': InvoiceStatus.PAID,
            'open': InvoiceStatus.PENDING,
            'void': InvoiceStatus.VOID,
        }
        return status_map.get((gateway_status or '').lower(), InvoiceStatus.PENDING)
