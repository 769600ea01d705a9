from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from billing_api.db.base import Base


class Account(Base):
    """
    Account holder linked to a Stripe customer.

    Accounts created through the bare customer endpoint have no username or
    password and cannot log in until a profile is completed.
    """
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(30), unique=True, index=True, nullable=True)
    email = Column(String, unique=True, index=True, nullable=False)  # stored trimmed + lowercased
    password_hash = Column(String, nullable=True)
    stripe_customer_id = Column(String, unique=True, index=True, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    subscriptions = relationship("Subscription", back_populates="account")
    notifications = relationship("Notification", back_populates="account")

    def __repr__(self):
        return f"<Account(id={self.id}, username='{self.username}', email='{self.email}')>"
