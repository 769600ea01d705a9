from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from billing_api.db.base import Base


class Notification(Base):
    """
    In-app notification for an account holder.

    Created by the webhook handlers; afterwards only the read flag changes,
    and only from False to True.
    """
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)

    type = Column(String, nullable=False)  # "invoice_paid", "subscription_cancelled", ...
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSON, nullable=False, default=dict)
    read = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    account = relationship("Account", back_populates="notifications")

    __table_args__ = (
        Index("idx_notification_account_read", "account_id", "read"),
    )

    def __repr__(self):
        return f"<Notification(id={self.id}, type='{self.type}', read={self.read})>"
