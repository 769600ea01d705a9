"""
Tests for subscription reads (self-heal) and subscription management.
"""
from datetime import datetime, timedelta, timezone
from unittest import mock

import stripe
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from factories import stripe_subscription
from billing_api.db.models.account import Account
from billing_api.db.models.subscription import Subscription
from billing_api.schemas.events import SubscriptionPayload, parse_event
from billing_api.services import subscription_service
from billing_api.services.webhook_handlers import dispatch_event


def _payload(**kwargs):
    return SubscriptionPayload.model_validate(stripe_subscription(**kwargs))


# ============================================
# ✅ SELF-HEAL
# ============================================

@mock.patch("stripe.Subscription.retrieve")
def test_self_heal_updates_drifted_status(retrieve, client, db_session, account, make_subscription):
    """Local active, Stripe past_due -> response and stored row both past_due."""
    sub = make_subscription(account)
    retrieve.return_value = stripe_subscription(status="past_due")

    response = client.get("/api/subscriptions/cus_test_1")

    assert response.status_code == 200
    assert response.json()["subscription"]["status"] == "past_due"
    retrieve.assert_called_once_with("sub_test_1")

    db_session.expire_all()
    assert db_session.query(Subscription).filter(Subscription.id == sub.id).one().status == "past_due"


@mock.patch("stripe.Subscription.retrieve")
def test_self_heal_without_drift(retrieve, client, account, make_subscription):
    make_subscription(account)
    retrieve.return_value = stripe_subscription()

    response = client.get("/api/subscriptions/cus_test_1")

    assert response.status_code == 200
    data = response.json()
    assert data["subscription"]["status"] == "active"
    assert data["subscription"]["cancel_at_period_end"] is False


@mock.patch("stripe.Subscription.retrieve")
def test_self_heal_persistence_failure_is_not_fatal(retrieve, client, db_session, account, make_subscription):
    """If saving fails the response still carries Stripe's values."""
    sub = make_subscription(account)
    retrieve.return_value = stripe_subscription(status="past_due", cancel_at_period_end=True)

    with mock.patch.object(Session, "commit", side_effect=SQLAlchemyError("database is locked")):
        response = client.get("/api/subscriptions/cus_test_1")

    assert response.status_code == 200
    assert response.json()["subscription"]["status"] == "past_due"
    assert response.json()["subscription"]["cancel_at_period_end"] is True

    db_session.expire_all()
    assert db_session.query(Subscription).filter(Subscription.id == sub.id).one().status == "active"


@mock.patch("stripe.Subscription.retrieve")
def test_history_lists_current_first(retrieve, client, account, make_subscription):
    """The most recently created subscription is current; ties break on id."""
    now = datetime.now(timezone.utc)
    make_subscription(account, stripe_id="sub_old", status="canceled", created_at=now - timedelta(days=60))
    make_subscription(account, stripe_id="sub_a", created_at=now)
    make_subscription(account, stripe_id="sub_b", created_at=now)
    retrieve.return_value = stripe_subscription(stripe_id="sub_b")

    response = client.get("/api/subscriptions/cus_test_1")

    data = response.json()
    assert data["subscription"]["stripe_subscription_id"] == "sub_b"
    assert [s["stripe_subscription_id"] for s in data["subscriptions"]] == ["sub_b", "sub_a", "sub_old"]
    retrieve.assert_called_once_with("sub_b")


def test_subscriptions_unknown_customer(client):
    response = client.get("/api/subscriptions/cus_missing")

    assert response.status_code == 404
    assert response.json() == {"error": "User not found"}


def test_subscriptions_none_yet(client, account):
    response = client.get("/api/subscriptions/cus_test_1")

    assert response.status_code == 404
    assert response.json() == {"error": "No subscription found"}


# ============================================
# ✅ MANAGEMENT
# ============================================

@mock.patch("billing_api.services.stripe_service.create_subscription")
@mock.patch("billing_api.services.stripe_service.set_default_payment_method")
@mock.patch("billing_api.services.stripe_service.attach_payment_method")
def test_create_subscription(attach, set_default, create, client, db_session, account, auth_headers):
    create.return_value = {"subscription": _payload(stripe_id="sub_new", status="incomplete"), "client_secret": "pi_secret_1"}

    response = client.post(
        "/api/subscriptions/create",
        json={"customerId": "cus_test_1", "paymentMethodId": "pm_card_1", "priceId": "price_basic"},
        headers=auth_headers,
    )

    assert response.status_code == 201
    data = response.json()["subscription"]
    assert data["stripe_subscription_id"] == "sub_new"
    assert data["status"] == "incomplete"
    assert data["client_secret"] == "pi_secret_1"
    attach.assert_called_once_with("pm_card_1", "cus_test_1", ignore_already_attached=True)
    set_default.assert_called_once_with("cus_test_1", "pm_card_1")

    stored = db_session.query(Subscription).filter(Subscription.stripe_subscription_id == "sub_new").one()
    assert stored.account_id == account.id


@mock.patch("billing_api.services.stripe_service.create_subscription")
@mock.patch("billing_api.services.stripe_service.set_default_payment_method")
@mock.patch("billing_api.services.stripe_service.attach_payment_method")
def test_create_subscription_after_webhook_stored_it(attach, set_default, create, client, db_session, account, auth_headers):
    """The created webhook can land before the create call saves its row."""
    dispatch_event(
        parse_event({
            "id": "evt_race",
            "type": "customer.subscription.created",
            "data": {"object": stripe_subscription(stripe_id="sub_race", status="incomplete")},
        }),
        db_session,
    )
    stored_id = db_session.query(Subscription).one().id
    create.return_value = {"subscription": _payload(stripe_id="sub_race", status="incomplete"), "client_secret": "pi_secret_race"}

    response = client.post(
        "/api/subscriptions/create",
        json={"customerId": "cus_test_1", "paymentMethodId": "pm_card_1", "priceId": "price_basic"},
        headers=auth_headers,
    )

    assert response.status_code == 201
    data = response.json()["subscription"]
    assert data["id"] == stored_id
    assert data["client_secret"] == "pi_secret_race"
    db_session.expire_all()
    assert db_session.query(Subscription).count() == 1


@mock.patch("billing_api.services.stripe_service.create_subscription")
@mock.patch("billing_api.services.stripe_service.set_default_payment_method")
@mock.patch("billing_api.services.stripe_service.attach_payment_method")
def test_create_subscription_when_webhook_commits_mid_insert(attach, set_default, create, client, db_session, account, auth_headers, make_subscription):
    """A row committed between lookup and insert is reloaded instead of failing."""
    stored = make_subscription(account, stripe_id="sub_race", status="incomplete")
    create.return_value = {"subscription": _payload(stripe_id="sub_race", status="active"), "client_secret": "pi_secret_race"}
    real_find = subscription_service._find_by_stripe_id
    calls = []

    def find_missing_once(db, stripe_subscription_id):
        calls.append(stripe_subscription_id)
        if len(calls) == 1:
            return None
        return real_find(db, stripe_subscription_id)

    with mock.patch.object(subscription_service, "_find_by_stripe_id", side_effect=find_missing_once):
        response = client.post(
            "/api/subscriptions/create",
            json={"customerId": "cus_test_1", "paymentMethodId": "pm_card_1", "priceId": "price_basic"},
            headers=auth_headers,
        )

    assert response.status_code == 201
    assert response.json()["subscription"]["id"] == stored.id
    db_session.expire_all()
    assert db_session.query(Subscription).one().status == "active"


def test_create_subscription_requires_token(client):
    response = client.post(
        "/api/subscriptions/create",
        json={"customerId": "cus_test_1", "paymentMethodId": "pm_card_1", "priceId": "price_basic"},
    )

    assert response.status_code == 401


def test_create_subscription_for_other_customer(client, account, auth_headers):
    response = client.post(
        "/api/subscriptions/create",
        json={"customerId": "cus_someone_else", "paymentMethodId": "pm_card_1", "priceId": "price_basic"},
        headers=auth_headers,
    )

    assert response.status_code == 404


def test_create_subscription_missing_fields(client, account, auth_headers):
    response = client.post("/api/subscriptions/create", json={"customerId": "cus_test_1"}, headers=auth_headers)

    assert response.status_code == 400
    fields = {err["field"] for err in response.json()["errors"]}
    assert fields == {"paymentMethodId", "priceId"}


@mock.patch("billing_api.services.stripe_service.set_default_payment_method")
@mock.patch("billing_api.services.stripe_service.attach_payment_method")
def test_create_subscription_unknown_price(attach, set_default, client, account, auth_headers):
    """Stripe's missing-price error is turned into an explanatory message."""
    error = stripe.InvalidRequestError("No such price: 'price_missing'", "items", code="resource_missing")

    with mock.patch("billing_api.services.stripe_service.create_subscription", side_effect=error):
        response = client.post(
            "/api/subscriptions/create",
            json={"customerId": "cus_test_1", "paymentMethodId": "pm_card_1", "priceId": "price_missing"},
            headers=auth_headers,
        )

    assert response.status_code == 500
    body = response.json()
    assert 'Price ID "price_missing" does not exist' in body["error"]
    assert body["details"]["type"] == "InvalidRequestError"
    assert body["details"]["code"] == "resource_missing"


@mock.patch("billing_api.services.stripe_service.set_cancel_at_period_end")
def test_cancel_subscription(set_cancel, client, account, auth_headers, make_subscription):
    sub = make_subscription(account)
    set_cancel.return_value = _payload(cancel_at_period_end=True)

    response = client.post(f"/api/subscriptions/cancel/{sub.id}", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["subscription"]["cancel_at_period_end"] is True
    set_cancel.assert_called_once_with("sub_test_1", True)


@mock.patch("billing_api.services.stripe_service.set_cancel_at_period_end")
def test_resume_subscription(set_cancel, client, account, auth_headers, make_subscription):
    sub = make_subscription(account, cancel_at_period_end=True)
    set_cancel.return_value = _payload()

    response = client.post(f"/api/subscriptions/resume/{sub.id}", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()["subscription"]
    assert data["cancel_at_period_end"] is False
    assert data["status"] == "active"
    set_cancel.assert_called_once_with("sub_test_1", False)


@mock.patch("billing_api.services.stripe_service.set_cancel_at_period_end")
def test_cancel_other_accounts_subscription(set_cancel, client, db_session, account, auth_headers, make_subscription):
    other = Account(email="other@x.com", stripe_customer_id="cus_other")
    db_session.add(other)
    db_session.commit()
    sub = make_subscription(other, stripe_id="sub_other")

    response = client.post(f"/api/subscriptions/cancel/{sub.id}", headers=auth_headers)

    assert response.status_code == 404
    assert response.json() == {"error": "Subscription not found"}
    set_cancel.assert_not_called()


@mock.patch("billing_api.services.stripe_service.change_subscription_price")
def test_update_subscription_price(change, client, account, auth_headers, make_subscription):
    sub = make_subscription(account)
    change.return_value = _payload(price_id="price_pro")

    response = client.post(
        f"/api/subscriptions/update/{sub.id}",
        json={"priceId": "price_pro", "prorationBehavior": "always_invoice"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["subscription"]["price_id"] == "price_pro"
    change.assert_called_once_with("sub_test_1", "price_pro", "always_invoice")


def test_update_subscription_rejects_unknown_proration(client, account, auth_headers, make_subscription):
    sub = make_subscription(account)

    response = client.post(
        f"/api/subscriptions/update/{sub.id}",
        json={"priceId": "price_pro", "prorationBehavior": "sometimes"},
        headers=auth_headers,
    )

    assert response.status_code == 400


@mock.patch("stripe.Subscription.modify")
@mock.patch("stripe.Subscription.retrieve")
def test_stripe_price_change_targets_first_item(retrieve, modify):
    """The price swap replaces the existing item instead of adding one."""
    from billing_api.services import stripe_service

    retrieve.return_value = stripe_subscription()
    modify.return_value = stripe_subscription(price_id="price_pro")

    result = stripe_service.change_subscription_price("sub_test_1", "price_pro")

    modify.assert_called_once_with(
        "sub_test_1",
        items=[{"id": "si_test_1", "price": "price_pro"}],
        proration_behavior="create_prorations",
    )
    assert result.price_id == "price_pro"
