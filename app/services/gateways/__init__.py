# Billing Gateways
from app.services.gateways.base import (
    BaseGateway, CheckoutSession, GatewayError, GatewaySubscription,
    WebhookEvent, WebhookVerificationError
)
from app.services.gateways.stripe import StripeGateway

GATEWAYS = {
    'stripe': StripeGateway,
}

def get_gateway(name: str = 'stripe') -> BaseGateway:
    """Get gateway instance by name"""
    gateway_class = GATEWAYS.get(name.lower())
    if not gateway_class:
        raise ValueError(f"Unknown gateway: {name}. Available: {list(GATEWAYS.keys())}")
    return gateway_class()
