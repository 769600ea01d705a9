"""
Stripe-shaped payload builders used across the tests.
"""
from datetime import datetime, timedelta, timezone

PERIOD_START = datetime(2024, 1, 1, tzinfo=timezone.utc)
PERIOD_END = PERIOD_START + timedelta(days=30)


def stripe_subscription(stripe_id="sub_test_1", customer="cus_test_1", status="active",
                        cancel_at_period_end=False, price_id="price_basic",
                        start=PERIOD_START, end=PERIOD_END):
    """A Stripe subscription object in the item-level billing period layout."""
    return {
        "id": stripe_id,
        "object": "subscription",
        "customer": customer,
        "status": status,
        "cancel_at_period_end": cancel_at_period_end,
        "items": {
            "object": "list",
            "data": [
                {
                    "id": "si_test_1",
                    "price": {"id": price_id},
                    "current_period_start": int(start.timestamp()),
                    "current_period_end": int(end.timestamp()),
                }
            ],
        },
    }


def stripe_invoice(invoice_id="in_test_1", subscription="sub_test_1", status="paid",
                   amount_paid=1999, currency="usd", paid_at=1704153600):
    return {
        "id": invoice_id,
        "object": "invoice",
        "customer": "cus_test_1",
        "subscription": subscription,
        "status": status,
        "amount_paid": amount_paid,
        "currency": currency,
        "status_transitions": {"paid_at": paid_at},
        "invoice_pdf": f"https://pay.stripe.com/{invoice_id}.pdf",
        "hosted_invoice_url": f"https://invoice.stripe.com/{invoice_id}",
    }
