"""
Stripe service: the only module that talks to the Stripe API.

Covers customers, payment methods, subscriptions, invoices and webhook
verification. Stripe errors are logged and re-raised unchanged; the API
layer maps them to responses.
"""
import logging
from typing import Any, Dict, List, Optional

import stripe

from billing_api.core.config import settings
from billing_api.core.logging_config import sanitize_log_data
from billing_api.schemas.events import SubscriptionPayload, dig

logger = logging.getLogger(__name__)

# Initialize Stripe client
stripe.api_key = settings.STRIPE_SECRET_KEY
stripe.max_network_retries = settings.STRIPE_MAX_NETWORK_RETRIES

PRORATION_BEHAVIORS = ("create_prorations", "none", "always_invoice")


# ============================================
# ✅ WEBHOOKS
# ============================================

def verify_webhook(request_body: bytes, signature: Optional[str]) -> Any:
    """
    Verify and parse a Stripe webhook event.

    Args:
        request_body: Raw request body bytes
        signature: Stripe-Signature header value

    Returns:
        Verified Stripe event

    Raises:
        ValueError: If the payload is invalid or the signature does not match
    """
    if not signature:
        raise ValueError("Missing Stripe-Signature header")

    try:
        event = stripe.Webhook.construct_event(
            request_body, signature, settings.STRIPE_WEBHOOK_SECRET
        )
    except stripe.SignatureVerificationError as e:
        logger.error(f"Webhook signature verification failed: {e}")
        raise ValueError(f"Invalid signature: {e}") from e
    except ValueError as e:
        logger.error(f"Invalid webhook payload: {e}")
        raise ValueError(f"Invalid payload: {e}") from e

    logger.info(f"Verified webhook event: {event['type']}, id={event['id']}")
    return event


# ============================================
# ✅ CUSTOMERS
# ============================================

def create_customer(email: str) -> str:
    """Create a Stripe customer and return its id."""
    customer = stripe.Customer.create(email=email)
    logger.info(f"Created Stripe customer: customer_id={customer['id']}")
    return customer["id"]


def get_default_payment_method_id(customer_id: str) -> Optional[str]:
    customer = stripe.Customer.retrieve(customer_id)
    default = dig(customer, "invoice_settings", "default_payment_method")
    if default is not None and not isinstance(default, str):
        default = dig(default, "id")
    return default


def set_default_payment_method(customer_id: str, payment_method_id: str) -> None:
    stripe.Customer.modify(
        customer_id,
        invoice_settings={"default_payment_method": payment_method_id},
    )
    logger.info(f"Default payment method set: customer_id={customer_id}, payment_method_id={payment_method_id}")


# ============================================
# ✅ PAYMENT METHODS
# ============================================

def list_card_payment_methods(customer_id: str) -> List[Dict[str, Any]]:
    """List a customer's card payment methods in a flat shape."""
    methods = stripe.PaymentMethod.list(customer=customer_id, type="card")
    return [
        {
            "id": pm["id"],
            "type": pm["type"],
            "card": {
                "brand": dig(pm, "card", "brand"),
                "last4": dig(pm, "card", "last4"),
                "exp_month": dig(pm, "card", "exp_month"),
                "exp_year": dig(pm, "card", "exp_year"),
            },
        }
        for pm in methods["data"]
    ]


def attach_payment_method(payment_method_id: str, customer_id: str, ignore_already_attached: bool = False) -> None:
    """
    Attach a payment method to a customer.

    Args:
        ignore_already_attached: Treat "already attached" as success
    """
    try:
        stripe.PaymentMethod.attach(payment_method_id, customer=customer_id)
    except stripe.InvalidRequestError as e:
        if ignore_already_attached and e.code == "resource_already_exists":
            logger.info(f"Payment method already attached: payment_method_id={payment_method_id}")
            return
        raise
    logger.info(f"Attached payment method: customer_id={customer_id}, payment_method_id={payment_method_id}")


def get_payment_method_customer(payment_method_id: str) -> Optional[str]:
    pm = stripe.PaymentMethod.retrieve(payment_method_id)
    customer = dig(pm, "customer")
    if customer is not None and not isinstance(customer, str):
        customer = dig(customer, "id")
    return customer


def detach_payment_method(payment_method_id: str) -> None:
    stripe.PaymentMethod.detach(payment_method_id)
    logger.info(f"Detached payment method: payment_method_id={payment_method_id}")


# ============================================
# ✅ SUBSCRIPTIONS
# ============================================

def create_subscription(customer_id: str, price_id: str) -> Dict[str, Any]:
    """
    Create an incomplete subscription awaiting first payment confirmation.

    Returns:
        Dictionary with the parsed subscription under "subscription" and the
        payment client secret (or None) under "client_secret"
    """
    subscription = stripe.Subscription.create(
        customer=customer_id,
        items=[{"price": price_id}],
        payment_behavior="default_incomplete",
        payment_settings={"save_default_payment_method": "on_subscription"},
        expand=["latest_invoice.payment_intent"],
    )
    client_secret = (
        dig(subscription, "latest_invoice", "payment_intent", "client_secret")
        or dig(subscription, "latest_invoice", "confirmation_secret", "client_secret")
    )
    parsed = SubscriptionPayload.model_validate(subscription)
    logger.debug(f"Subscription create result: {sanitize_log_data({'subscription_id': parsed.id, 'client_secret': client_secret})}")
    logger.info(
        f"Created subscription: customer_id={customer_id}, subscription_id={parsed.id}, status={parsed.status}"
    )
    return {"subscription": parsed, "client_secret": client_secret}


def retrieve_subscription(subscription_id: str) -> SubscriptionPayload:
    return SubscriptionPayload.model_validate(stripe.Subscription.retrieve(subscription_id))


def set_cancel_at_period_end(subscription_id: str, cancel: bool) -> SubscriptionPayload:
    subscription = stripe.Subscription.modify(subscription_id, cancel_at_period_end=cancel)
    logger.info(f"Subscription cancel_at_period_end={cancel}: subscription_id={subscription_id}")
    return SubscriptionPayload.model_validate(subscription)


def change_subscription_price(
    subscription_id: str,
    price_id: str,
    proration_behavior: str = "create_prorations"
) -> SubscriptionPayload:
    """Swap the price of the subscription's first item."""
    current = retrieve_subscription(subscription_id)
    params = {
        "items": [{"id": current.item_id, "price": price_id}],
        "proration_behavior": proration_behavior,
    }
    subscription = stripe.Subscription.modify(subscription_id, **params)
    logger.info(f"Subscription price changed: subscription_id={subscription_id}, price_id={price_id}")
    return SubscriptionPayload.model_validate(subscription)


# ============================================
# ✅ INVOICES
# ============================================

def list_invoices(customer_id: str, limit: int = 100) -> List[Any]:
    """List the customer's invoices, newest first."""
    invoices = stripe.Invoice.list(customer=customer_id, limit=limit)
    return list(invoices["data"])


def preview_upcoming_invoice(customer_id: str, subscription_id: str) -> Any:
    return stripe.Invoice.create_preview(customer=customer_id, subscription=subscription_id)
