"""
Notification service.

Creates per-account notifications (from webhook handlers) and serves the
read side used by the notifications API.
"""
import logging
from typing import Dict, List, Optional
from sqlalchemy.orm import Session

from billing_api.core.errors import NotFoundError
from billing_api.db.models.account import Account
from billing_api.db.models.notification import Notification

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50


def create_notification(
    db: Session,
    account_id: int,
    type: str,
    title: str,
    message: str,
    metadata: Optional[Dict] = None
) -> Notification:
    """Insert an unread notification for an account."""
    notification = Notification(
        account_id=account_id,
        type=type,
        title=title,
        message=message,
        meta=metadata or {},
        read=False,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)

    logger.info(f"Notification created: account_id={account_id}, type={type}, notification_id={notification.id}")
    return notification


def create_notification_for_customer(
    db: Session,
    stripe_customer_id: Optional[str],
    type: str,
    title: str,
    message: str,
    metadata: Optional[Dict] = None
) -> Optional[Notification]:
    """
    Create a notification for the account owning a Stripe customer.

    Returns:
        The notification, or None when no account has that customer id
    """
    account = None
    if stripe_customer_id:
        account = db.query(Account).filter(Account.stripe_customer_id == stripe_customer_id).first()
    if not account:
        logger.error(f"Notification skipped, account not found for customer_id={stripe_customer_id}")
        return None
    return create_notification(db, account.id, type, title, message, metadata)


def list_notifications(
    db: Session,
    account_id: int,
    unread_only: bool = False,
    limit: int = DEFAULT_LIMIT
) -> List[Notification]:
    """Notifications for an account, newest first."""
    query = db.query(Notification).filter(Notification.account_id == account_id)
    if unread_only:
        query = query.filter(Notification.read.is_(False))
    return (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
        .all()
    )


def mark_as_read(db: Session, notification_id: int, account_id: int) -> Notification:
    """
    Mark one notification read.

    Raises:
        NotFoundError: If the notification does not exist or belongs to another account
    """
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.account_id == account_id
    ).first()
    if not notification:
        raise NotFoundError("Notification not found")

    if not notification.read:
        notification.read = True
        db.commit()
        db.refresh(notification)

    return notification


def mark_all_as_read(db: Session, account_id: int) -> int:
    """Mark every unread notification of an account read. Returns the number updated."""
    updated = db.query(Notification).filter(
        Notification.account_id == account_id,
        Notification.read.is_(False)
    ).update({Notification.read: True}, synchronize_session=False)
    db.commit()

    logger.info(f"Notifications marked read: account_id={account_id}, count={updated}")
    return updated


def get_unread_count(db: Session, account_id: int) -> int:
    return db.query(Notification).filter(
        Notification.account_id == account_id,
        Notification.read.is_(False)
    ).count()
