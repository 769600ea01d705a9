"""
Subscription service.

Subscription management (create / cancel / resume / change price) and the
self-heal reconciliation run whenever an account's subscriptions are read:
the current subscription is refreshed from Stripe and the local row is
rewritten if it drifted, for example after a missed webhook.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from billing_api.core.errors import NotFoundError
from billing_api.db.models.account import Account
from billing_api.db.models.subscription import Subscription, current_subscription_query
from billing_api.schemas.events import SubscriptionPayload
from billing_api.services import stripe_service

logger = logging.getLogger(__name__)

SYNCED_FIELDS = (
    "status",
    "price_id",
    "cancel_at_period_end",
    "current_period_start",
    "current_period_end",
)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _values_equal(local, remote) -> bool:
    if isinstance(local, datetime) or isinstance(remote, datetime):
        return _as_utc(local) == _as_utc(remote)
    return local == remote


def provider_values(subscription: Subscription, remote: SubscriptionPayload) -> Dict:
    """Stripe-side field values, falling back to local ones Stripe did not report."""
    return {
        "status": remote.status or subscription.status,
        "price_id": remote.price_id or subscription.price_id,
        "cancel_at_period_end": (
            remote.cancel_at_period_end
            if remote.cancel_at_period_end is not None
            else subscription.cancel_at_period_end
        ),
        "current_period_start": remote.current_period_start or subscription.current_period_start,
        "current_period_end": remote.current_period_end or subscription.current_period_end,
    }


def reconcile_subscription(db: Session, subscription: Subscription) -> Tuple[Dict, bool]:
    """
    Refresh one subscription from Stripe and persist any drift.

    A failed write is logged and rolled back; the Stripe values are still
    returned so callers always see fresh data.

    Returns:
        (provider values, whether the local row was changed and saved)
    """
    remote = stripe_service.retrieve_subscription(subscription.stripe_subscription_id)
    values = provider_values(subscription, remote)

    drifted = [
        field for field in SYNCED_FIELDS
        if not _values_equal(getattr(subscription, field), values[field])
    ]
    if not drifted:
        return values, False

    try:
        for field in drifted:
            setattr(subscription, field, values[field])
        db.commit()
        logger.info(
            f"Self-heal updated subscription_id={subscription.stripe_subscription_id}, fields={','.join(drifted)}"
        )
        return values, True
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"Failed to sync subscription from Stripe: subscription_id={subscription.stripe_subscription_id}, error={e}")
        return values, False


def _serialize(subscription: Subscription, overrides: Optional[Dict] = None) -> Dict:
    data = {
        "id": subscription.id,
        "stripe_subscription_id": subscription.stripe_subscription_id,
        "status": subscription.status,
        "price_id": subscription.price_id,
        "current_period_start": subscription.current_period_start,
        "current_period_end": subscription.current_period_end,
        "cancel_at_period_end": subscription.cancel_at_period_end,
        "created_at": subscription.created_at,
    }
    if overrides:
        data.update(overrides)
    return data


def get_customer_subscriptions(db: Session, customer_id: str) -> Dict:
    """
    Subscription history plus the self-healed current subscription.

    Only the current (most recently created) subscription is fetched from
    Stripe, so each call costs exactly one provider request.

    Raises:
        NotFoundError: If the account or its subscriptions are missing
    """
    account = db.query(Account).filter(Account.stripe_customer_id == customer_id).first()
    if not account:
        raise NotFoundError("User not found")

    subscriptions: List[Subscription] = current_subscription_query(db, account.id).all()
    if not subscriptions:
        raise NotFoundError("No subscription found")

    current = subscriptions[0]
    # Capture identity before reconcile; a rolled-back session expires the row
    current_id = current.id
    snapshot = _serialize(current)
    values, _ = reconcile_subscription(db, current)
    current_data = {**snapshot, **values}

    history = [current_data] + [_serialize(s) for s in subscriptions[1:] if s.id != current_id]
    return {"subscriptions": history, "subscription": current_data}


def _owned_subscription(db: Session, subscription_id: int, account: Account) -> Subscription:
    subscription = db.query(Subscription).filter(
        Subscription.id == subscription_id,
        Subscription.account_id == account.id
    ).first()
    if not subscription:
        raise NotFoundError("Subscription not found")
    return subscription


def _apply_remote(subscription: Subscription, remote: SubscriptionPayload, price_id: str) -> None:
    subscription.status = remote.status
    subscription.price_id = price_id
    subscription.cancel_at_period_end = bool(remote.cancel_at_period_end)
    if remote.current_period_start:
        subscription.current_period_start = remote.current_period_start
    if remote.current_period_end:
        subscription.current_period_end = remote.current_period_end


def _find_by_stripe_id(db: Session, stripe_subscription_id: str) -> Optional[Subscription]:
    return db.query(Subscription).filter(
        Subscription.stripe_subscription_id == stripe_subscription_id
    ).first()


def _store_created_subscription(
    db: Session,
    account: Account,
    remote: SubscriptionPayload,
    price_id: str
) -> Subscription:
    """
    Save a newly created Stripe subscription.

    The customer.subscription.created webhook may store the same row before
    this runs, or commit between the lookup and the insert; either way the
    existing row is refreshed with the create response instead of failing.
    """
    subscription = _find_by_stripe_id(db, remote.id)
    if subscription is None:
        subscription = Subscription(account_id=account.id, stripe_subscription_id=remote.id)
        db.add(subscription)
    else:
        logger.info(f"Subscription already stored by webhook: subscription_id={remote.id}")
    _apply_remote(subscription, remote, price_id)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        subscription = _find_by_stripe_id(db, remote.id)
        if subscription is None:
            raise
        logger.info(f"Subscription stored concurrently by webhook: subscription_id={remote.id}")
        _apply_remote(subscription, remote, price_id)
        db.commit()

    db.refresh(subscription)
    return subscription


def create_subscription(
    db: Session,
    account: Account,
    payment_method_id: str,
    price_id: str
) -> Dict:
    """
    Attach the payment method, make it the default and start a subscription.

    Returns:
        Local id, Stripe id, status and the client secret for confirming payment
    """
    customer_id = account.stripe_customer_id
    stripe_service.attach_payment_method(payment_method_id, customer_id, ignore_already_attached=True)
    stripe_service.set_default_payment_method(customer_id, payment_method_id)

    result = stripe_service.create_subscription(customer_id, price_id)
    remote: SubscriptionPayload = result["subscription"]

    subscription = _store_created_subscription(db, account, remote, price_id)

    logger.info(f"Subscription stored: account_id={account.id}, subscription_id={remote.id}, status={remote.status}")
    return {
        "id": subscription.id,
        "stripe_subscription_id": remote.id,
        "status": remote.status,
        "client_secret": result["client_secret"],
    }


def cancel_subscription(db: Session, subscription_id: int, account: Account) -> Subscription:
    """Schedule cancellation at the end of the current period."""
    subscription = _owned_subscription(db, subscription_id, account)
    stripe_service.set_cancel_at_period_end(subscription.stripe_subscription_id, True)

    subscription.cancel_at_period_end = True
    db.commit()
    db.refresh(subscription)
    return subscription


def resume_subscription(db: Session, subscription_id: int, account: Account) -> Subscription:
    """Withdraw a scheduled cancellation."""
    subscription = _owned_subscription(db, subscription_id, account)
    remote = stripe_service.set_cancel_at_period_end(subscription.stripe_subscription_id, False)

    subscription.cancel_at_period_end = False
    subscription.status = remote.status
    if remote.current_period_start:
        subscription.current_period_start = remote.current_period_start
    if remote.current_period_end:
        subscription.current_period_end = remote.current_period_end
    db.commit()
    db.refresh(subscription)
    return subscription


def change_subscription_price(
    db: Session,
    subscription_id: int,
    account: Account,
    price_id: str,
    proration_behavior: str = "create_prorations"
) -> Subscription:
    """Upgrade or downgrade the subscription to another price."""
    subscription = _owned_subscription(db, subscription_id, account)
    remote = stripe_service.change_subscription_price(
        subscription.stripe_subscription_id, price_id, proration_behavior
    )

    subscription.price_id = price_id
    subscription.status = remote.status
    if remote.current_period_start:
        subscription.current_period_start = remote.current_period_start
    if remote.current_period_end:
        subscription.current_period_end = remote.current_period_end
    db.commit()
    db.refresh(subscription)
    return subscription
