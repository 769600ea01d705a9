"""
Stripe webhook event handlers.

Each handler applies one typed event to local state. Handlers are safe to
re-apply: invoices are upserted by Stripe id, subscription updates overwrite,
and subscription creation skips ids it has already seen. Missing local
records are logged and ignored rather than treated as failures.
"""
import logging
from typing import Callable, Dict, Optional
from sqlalchemy.orm import Session

from billing_api.db.models.account import Account
from billing_api.db.models.subscription import Subscription
from billing_api.schemas.events import (
    ProviderEvent,
    InvoicePaidEvent,
    InvoicePaymentFailedEvent,
    SubscriptionCreatedEvent,
    SubscriptionUpdatedEvent,
    SubscriptionDeletedEvent,
    IgnoredEvent,
)
from billing_api.services.invoice_service import upsert_invoice
from billing_api.services.notification_service import create_notification_for_customer

logger = logging.getLogger(__name__)


def _find_subscription(db: Session, stripe_subscription_id: Optional[str]) -> Optional[Subscription]:
    if not stripe_subscription_id:
        return None
    return db.query(Subscription).filter(
        Subscription.stripe_subscription_id == stripe_subscription_id
    ).first()


ZERO_DECIMAL_CURRENCIES = {
    "bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga",
    "pyg", "rwf", "ugx", "vnd", "vuv", "xaf", "xof", "xpf",
}


def format_amount(amount: int, currency: str) -> str:
    """Format a minor-unit amount, e.g. 1999 usd -> '19.99 USD', 500 jpy -> '500 JPY'."""
    if currency.lower() in ZERO_DECIMAL_CURRENCIES:
        return f"{amount} {currency.upper()}"
    return f"{amount / 100:.2f} {currency.upper()}"


def handle_invoice_paid(event: InvoicePaidEvent, db: Session) -> None:
    """
    Handle invoice.paid webhook event.

    Upserts the invoice under its subscription and notifies the account holder.
    """
    invoice = event.invoice
    subscription = _find_subscription(db, invoice.subscription)

    if not subscription:
        logger.warning(f"invoice.paid: Subscription not found for invoice_id={invoice.id}, subscription_id={invoice.subscription}")
        return

    if invoice.status == "draft":
        logger.info(f"invoice.paid: Skipping draft invoice_id={invoice.id}")
        return

    upsert_invoice(db, subscription, invoice)
    db.commit()

    create_notification_for_customer(
        db,
        subscription.account.stripe_customer_id,
        "invoice_paid",
        "Payment Successful",
        f"Your payment of {format_amount(invoice.amount_paid, invoice.currency)} has been processed successfully.",
        {"invoice_id": invoice.id, "amount": invoice.amount_paid, "currency": invoice.currency},
    )


def handle_invoice_payment_failed(event: InvoicePaymentFailedEvent, db: Session) -> None:
    """
    Handle invoice.payment_failed webhook event.

    Updates subscription status to past_due.
    """
    invoice = event.invoice
    subscription = _find_subscription(db, invoice.subscription)

    if not subscription:
        logger.warning(f"invoice.payment_failed: Subscription not found for subscription_id={invoice.subscription}")
        return

    subscription.status = "past_due"
    db.commit()

    logger.warning(f"Invoice payment failed: account_id={subscription.account_id}, subscription_id={invoice.subscription}")


def handle_subscription_created(event: SubscriptionCreatedEvent, db: Session) -> None:
    """
    Handle customer.subscription.created webhook event.

    Inserts the subscription unless it is already known locally.
    """
    data = event.subscription
    account = db.query(Account).filter(Account.stripe_customer_id == data.customer).first()

    if not account:
        logger.error(f"subscription.created: Account not found for customer_id={data.customer}, subscription_id={data.id}")
        return

    if _find_subscription(db, data.id):
        logger.info(f"subscription.created: Already stored, subscription_id={data.id}")
        return

    subscription = Subscription(
        account_id=account.id,
        stripe_subscription_id=data.id,
        status=data.status,
        price_id=data.price_id,
        current_period_start=data.current_period_start,
        current_period_end=data.current_period_end,
        cancel_at_period_end=bool(data.cancel_at_period_end),
    )
    db.add(subscription)
    db.commit()

    logger.info(f"Subscription created: account_id={account.id}, subscription_id={data.id}, status={data.status}")


def handle_subscription_updated(event: SubscriptionUpdatedEvent, db: Session) -> None:
    """
    Handle customer.subscription.updated webhook event.

    Overwrites status, billing period and cancel flag, then sends at most one
    notification: cancellation scheduled, cancellation withdrawn, or the
    subscription becoming active.
    """
    data = event.subscription
    subscription = _find_subscription(db, data.id)

    if not subscription:
        logger.warning(f"subscription.updated: Subscription not found for subscription_id={data.id}")
        return

    is_now_canceled = bool(data.cancel_at_period_end)
    was_canceled = bool(subscription.cancel_at_period_end)
    status_changed = subscription.status != data.status

    subscription.status = data.status
    subscription.current_period_start = data.current_period_start
    subscription.current_period_end = data.current_period_end
    subscription.cancel_at_period_end = is_now_canceled
    db.commit()

    logger.info(
        f"Subscription updated: subscription_id={data.id}, status={data.status}, "
        f"cancel_at_period_end={is_now_canceled}"
    )

    customer_id = subscription.account.stripe_customer_id
    if not was_canceled and is_now_canceled:
        create_notification_for_customer(
            db,
            customer_id,
            "subscription_cancelled",
            "Subscription Cancelled",
            "Your subscription has been scheduled for cancellation at the end of the current billing period.",
            {"subscription_id": data.id},
        )
    elif was_canceled and not is_now_canceled:
        create_notification_for_customer(
            db,
            customer_id,
            "subscription_resumed",
            "Subscription Resumed",
            "Your subscription has been resumed successfully.",
            {"subscription_id": data.id},
        )
    elif status_changed and data.status == "active":
        create_notification_for_customer(
            db,
            customer_id,
            "subscription_updated",
            "Subscription Updated",
            "Your subscription has been updated successfully.",
            {"subscription_id": data.id, "status": data.status},
        )


def handle_subscription_deleted(event: SubscriptionDeletedEvent, db: Session) -> None:
    """
    Handle customer.subscription.deleted webhook event.

    Marks the subscription canceled; the row and its history are kept.
    """
    data = event.subscription
    subscription = _find_subscription(db, data.id)

    if not subscription:
        logger.warning(f"subscription.deleted: Subscription not found for subscription_id={data.id}")
        return

    subscription.status = "canceled"
    db.commit()

    logger.info(f"Subscription deleted: account_id={subscription.account_id}, subscription_id={data.id}")


def handle_ignored(event: IgnoredEvent, db: Session) -> None:
    logger.info(f"Unhandled event type: {event.type}, id={event.id}")


HANDLERS: Dict[type, Callable[..., None]] = {
    InvoicePaidEvent: handle_invoice_paid,
    InvoicePaymentFailedEvent: handle_invoice_payment_failed,
    SubscriptionCreatedEvent: handle_subscription_created,
    SubscriptionUpdatedEvent: handle_subscription_updated,
    SubscriptionDeletedEvent: handle_subscription_deleted,
    IgnoredEvent: handle_ignored,
}


def dispatch_event(event: ProviderEvent, db: Session) -> bool:
    """
    Run the handler for a typed event.

    Handler failures are logged and rolled back, never raised, so that one
    bad event cannot block acknowledgement of the delivery.

    Returns:
        True if the handler completed, False if it failed
    """
    handler = HANDLERS[type(event)]
    try:
        handler(event, db)
        return True
    except Exception:
        db.rollback()
        logger.exception(f"Error processing webhook event: type={event.type}, id={event.id}")
        return False
