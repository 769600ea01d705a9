"""
Script to refresh every account's current subscription from Stripe.
Run: python -m scripts.resync_subscriptions
"""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import stripe

from billing_api.db.session import SessionLocal
from billing_api.db.models.account import Account
from billing_api.db.models.subscription import Subscription, current_subscription_query
from billing_api.services.subscription_service import reconcile_subscription
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def resync_subscriptions() -> dict:
    """Run the self-heal reconciliation for each account's current subscription."""
    db = SessionLocal()
    counts = {"checked": 0, "changed": 0, "failed": 0}
    try:
        account_ids = [
            row[0] for row in
            db.query(Account.id).join(Subscription, Subscription.account_id == Account.id).distinct().all()
        ]
        logger.info(f"Found {len(account_ids)} accounts with subscriptions")

        for account_id in account_ids:
            current = current_subscription_query(db, account_id).first()
            if current is None:
                continue

            counts["checked"] += 1
            stripe_id = current.stripe_subscription_id
            try:
                _, changed = reconcile_subscription(db, current)
            except stripe.StripeError as e:
                counts["failed"] += 1
                logger.error(f"Stripe lookup failed: account_id={account_id}, subscription_id={stripe_id}, error={e}")
                continue

            if changed:
                counts["changed"] += 1

        logger.info(
            f"Resync complete: checked={counts['checked']}, changed={counts['changed']}, failed={counts['failed']}"
        )
        return counts
    finally:
        db.close()


if __name__ == "__main__":
    result = resync_subscriptions()
    sys.exit(1 if result["failed"] else 0)
