"""
Tests for POST /api/webhooks/stripe with real Stripe-Signature headers.
"""
import hashlib
import hmac
import json
import time
from unittest import mock

from fastapi.concurrency import run_in_threadpool

from factories import stripe_invoice, stripe_subscription
from billing_api.api.routes import billing_webhook
from billing_api.core.config import settings
from billing_api.db.models.invoice import Invoice
from billing_api.db.models.notification import Notification
from billing_api.schemas.events import InvoicePaidEvent
from billing_api.services import webhook_handlers

WEBHOOK_URL = "/api/webhooks/stripe"


def _signed(event: dict, secret: str = None):
    """Serialize an event and sign it the way Stripe does."""
    payload = json.dumps(event)
    timestamp = int(time.time())
    signed_payload = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(
        (secret or settings.STRIPE_WEBHOOK_SECRET).encode("utf-8"),
        signed_payload,
        hashlib.sha256,
    ).hexdigest()
    return payload, {"Stripe-Signature": f"t={timestamp},v1={signature}", "Content-Type": "application/json"}


def _event(event_type, obj):
    return {
        "id": "evt_test_1",
        "object": "event",
        "type": event_type,
        "data": {"object": obj},
    }


def test_signed_invoice_paid_is_applied(client, db_session, account, make_subscription):
    make_subscription(account)
    payload, headers = _signed(_event("invoice.paid", stripe_invoice()))

    response = client.post(WEBHOOK_URL, content=payload, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"received": True}
    assert db_session.query(Invoice).count() == 1
    assert db_session.query(Notification).count() == 1


def test_handlers_run_in_threadpool(client, account, make_subscription):
    """Handler database work is dispatched off the event loop."""
    make_subscription(account)
    payload, headers = _signed(_event("invoice.paid", stripe_invoice()))

    with mock.patch.object(billing_webhook, "run_in_threadpool", wraps=run_in_threadpool) as threadpool:
        response = client.post(WEBHOOK_URL, content=payload, headers=headers)

    assert response.status_code == 200
    threadpool.assert_called_once()
    func, event, _ = threadpool.call_args.args
    assert func is webhook_handlers.dispatch_event
    assert isinstance(event, InvoicePaidEvent)


def test_bad_signature_is_rejected(client, db_session, account, make_subscription):
    """A payload signed with another secret gets a plain-text 400 and no mutation."""
    make_subscription(account)
    payload, headers = _signed(_event("invoice.paid", stripe_invoice()), secret="whsec_wrong")

    response = client.post(WEBHOOK_URL, content=payload, headers=headers)

    assert response.status_code == 400
    assert response.headers["content-type"].startswith("text/plain")
    assert response.text.startswith("Webhook Error:")
    assert db_session.query(Invoice).count() == 0


def test_missing_signature_is_rejected(client):
    response = client.post(WEBHOOK_URL, content=json.dumps(_event("invoice.paid", stripe_invoice())))

    assert response.status_code == 400
    assert response.text == "Webhook Error: Missing Stripe-Signature header"


def test_unknown_event_type_is_acknowledged(client):
    payload, headers = _signed(_event("customer.created", {"id": "cus_test_1", "object": "customer"}))

    response = client.post(WEBHOOK_URL, content=payload, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"received": True}


def test_malformed_handled_event_is_acknowledged(client):
    """A verified event missing required fields is logged, not retried."""
    payload, headers = _signed(_event("customer.subscription.updated", {"object": "subscription"}))

    response = client.post(WEBHOOK_URL, content=payload, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"received": True}


def test_handler_failure_still_acknowledged(client, db_session, account, make_subscription):
    """Handler exceptions are rolled back and the delivery is still acknowledged."""
    make_subscription(account)
    payload, headers = _signed(_event("invoice.paid", stripe_invoice()))
    failing = mock.Mock(side_effect=RuntimeError("boom"))

    with mock.patch.dict(webhook_handlers.HANDLERS, {InvoicePaidEvent: failing}):
        response = client.post(WEBHOOK_URL, content=payload, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"received": True}
    failing.assert_called_once()
    assert db_session.query(Invoice).count() == 0


def test_subscription_lifecycle_over_http(client, db_session, account):
    """created -> updated (cancel scheduled) -> deleted, each delivered twice."""
    for event_type, obj in [
        ("customer.subscription.created", stripe_subscription()),
        ("customer.subscription.updated", stripe_subscription(cancel_at_period_end=True)),
        ("customer.subscription.deleted", stripe_subscription(status="canceled", cancel_at_period_end=True)),
    ]:
        for _ in range(2):
            payload, headers = _signed(_event(event_type, obj))
            assert client.post(WEBHOOK_URL, content=payload, headers=headers).status_code == 200

    notifications = db_session.query(Notification).all()
    assert [n.type for n in notifications] == ["subscription_cancelled"]
