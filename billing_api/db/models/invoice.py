from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from billing_api.db.base import Base

INVOICE_STATUSES = ("paid", "open", "void", "uncollectible", "draft")


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    subscription_id = Column(Integer, ForeignKey("subscriptions.id"), nullable=False, index=True)

    stripe_invoice_id = Column(String, unique=True, index=True, nullable=False)
    amount_paid = Column(Integer, nullable=False)  # minor currency units
    currency = Column(String(3), nullable=False, default="usd")
    status = Column(String, nullable=False)  # one of INVOICE_STATUSES
    paid_at = Column(DateTime(timezone=True), nullable=True)

    invoice_pdf = Column(String, nullable=True)
    hosted_invoice_url = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    subscription = relationship("Subscription", back_populates="invoices")

    def __repr__(self):
        return f"<Invoice(id={self.id}, stripe_invoice_id='{self.stripe_invoice_id}', status='{self.status}')>"
