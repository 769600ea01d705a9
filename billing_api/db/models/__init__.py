"""
Database models module.

This module imports all database models to ensure they are registered with SQLAlchemy's Base.metadata
before table creation.

All models must be imported here to be included in database migrations and table creation.
"""
from billing_api.db.models.account import Account
from billing_api.db.models.subscription import Subscription, SUBSCRIPTION_STATUSES, current_subscription_query
from billing_api.db.models.invoice import Invoice, INVOICE_STATUSES
from billing_api.db.models.notification import Notification

__all__ = [
    "Account",
    "Subscription",
    "SUBSCRIPTION_STATUSES",
    "current_subscription_query",
    "Invoice",
    "INVOICE_STATUSES",
    "Notification",
]
