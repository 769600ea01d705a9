from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from billing_api.db.base import Base

SUBSCRIPTION_STATUSES = (
    "active",
    "canceled",
    "past_due",
    "trialing",
    "incomplete",
    "incomplete_expired",
    "unpaid",
    "paused",
)


class Subscription(Base):
    """
    Local mirror of one Stripe subscription lifecycle.

    An account keeps every subscription it ever had; the most recently
    created one is its current subscription (see current_subscription_query).
    """
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)

    stripe_subscription_id = Column(String, unique=True, index=True, nullable=False)
    status = Column(String, nullable=False)  # one of SUBSCRIPTION_STATUSES
    price_id = Column(String, nullable=False)

    current_period_start = Column(DateTime(timezone=True), nullable=False)
    current_period_end = Column(DateTime(timezone=True), nullable=False)
    cancel_at_period_end = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    account = relationship("Account", back_populates="subscriptions")
    invoices = relationship("Invoice", back_populates="subscription")

    __table_args__ = (
        Index("idx_subscription_account_created", "account_id", "created_at"),
    )

    def __repr__(self):
        return f"<Subscription(id={self.id}, stripe_subscription_id='{self.stripe_subscription_id}', status='{self.status}')>"


def current_subscription_query(db, account_id: int):
    """
    Subscriptions of an account ordered newest first.

    The first row is the account's current subscription. Ties on created_at
    are broken by id so the ordering is total.
    """
    return (
        db.query(Subscription)
        .filter(Subscription.account_id == account_id)
        .order_by(Subscription.created_at.desc(), Subscription.id.desc())
    )
