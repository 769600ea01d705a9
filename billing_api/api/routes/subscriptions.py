"""
Subscription endpoints.

GET /{customer_id} returns the subscription history and a current
subscription refreshed from Stripe (self-heal). Mutations require a bearer
token for the owning account.
"""
import logging
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from billing_api.db.session import get_db
from billing_api.db.models.account import Account
from billing_api.core.auth_dependency import get_current_account, require_customer_owner
from billing_api.schemas.subscription import (
    CreateSubscriptionRequest,
    UpdateSubscriptionRequest,
    SubscriptionListResponse,
    CreateSubscriptionResponse,
    SubscriptionChangeResponse,
    SubscriptionOut,
)
from billing_api.services import subscription_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/subscriptions", tags=["Subscriptions"])


@router.post("/create", status_code=status.HTTP_201_CREATED, response_model=CreateSubscriptionResponse)
def create_subscription(
    payload: CreateSubscriptionRequest,
    request: Request,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    require_customer_owner(payload.customer_id, account)
    # Lets the Stripe error handler explain unknown prices
    request.state.price_id = payload.price_id

    created = subscription_service.create_subscription(
        db, account, payload.payment_method_id, payload.price_id
    )
    return {"subscription": created}


@router.get("/{customer_id}", response_model=SubscriptionListResponse)
def get_subscriptions(customer_id: str, db: Session = Depends(get_db)):
    return subscription_service.get_customer_subscriptions(db, customer_id)


@router.post("/cancel/{subscription_id}", response_model=SubscriptionChangeResponse)
def cancel_subscription(
    subscription_id: int,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    subscription = subscription_service.cancel_subscription(db, subscription_id, account)
    return {
        "message": "Subscription will be canceled at period end",
        "subscription": SubscriptionOut.model_validate(subscription),
    }


@router.post("/resume/{subscription_id}", response_model=SubscriptionChangeResponse)
def resume_subscription(
    subscription_id: int,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    subscription = subscription_service.resume_subscription(db, subscription_id, account)
    return {
        "message": "Subscription has been resumed",
        "subscription": SubscriptionOut.model_validate(subscription),
    }


@router.post("/update/{subscription_id}", response_model=SubscriptionChangeResponse)
def update_subscription(
    subscription_id: int,
    payload: UpdateSubscriptionRequest,
    request: Request,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    request.state.price_id = payload.price_id

    subscription = subscription_service.change_subscription_price(
        db, subscription_id, account, payload.price_id, payload.proration_behavior
    )
    return {
        "message": "Subscription updated successfully",
        "subscription": SubscriptionOut.model_validate(subscription),
    }
