"""
Payment method endpoints.

Listing is public by customer id; changes require the caller to own the customer.
"""
import logging
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from billing_api.db.session import get_db
from billing_api.db.models.account import Account
from billing_api.core.auth_dependency import get_current_account, require_customer_owner
from billing_api.core.errors import NotFoundError
from billing_api.schemas.billing import (
    AddPaymentMethodRequest,
    SetDefaultPaymentMethodRequest,
    PaymentMethodListResponse,
    PaymentMethodActionResponse,
)
from billing_api.services import stripe_service
from billing_api.services.account_service import get_account_by_customer_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payment-methods", tags=["Payment Methods"])


@router.get("/{customer_id}", response_model=PaymentMethodListResponse)
def list_payment_methods(customer_id: str, db: Session = Depends(get_db)):
    get_account_by_customer_id(db, customer_id)

    methods = stripe_service.list_card_payment_methods(customer_id)
    default_id = stripe_service.get_default_payment_method_id(customer_id)

    return {
        "payment_methods": [{**pm, "is_default": pm["id"] == default_id} for pm in methods],
        "default_payment_method_id": default_id,
    }


@router.post("/add", response_model=PaymentMethodActionResponse)
def add_payment_method(
    payload: AddPaymentMethodRequest,
    account: Account = Depends(get_current_account)
):
    require_customer_owner(payload.customer_id, account)

    stripe_service.attach_payment_method(payload.payment_method_id, payload.customer_id)
    if payload.set_as_default:
        stripe_service.set_default_payment_method(payload.customer_id, payload.payment_method_id)

    return {
        "message": "Payment method added successfully",
        "payment_method_id": payload.payment_method_id,
    }


@router.post("/set-default", response_model=PaymentMethodActionResponse)
def set_default_payment_method(
    payload: SetDefaultPaymentMethodRequest,
    account: Account = Depends(get_current_account)
):
    require_customer_owner(payload.customer_id, account)

    stripe_service.set_default_payment_method(payload.customer_id, payload.payment_method_id)

    return {
        "message": "Default payment method updated successfully",
        "payment_method_id": payload.payment_method_id,
    }


@router.delete("/{payment_method_id}", response_model=PaymentMethodActionResponse)
def remove_payment_method(
    payment_method_id: str,
    account: Account = Depends(get_current_account)
):
    owner = stripe_service.get_payment_method_customer(payment_method_id)
    if owner is None or owner != account.stripe_customer_id:
        raise NotFoundError("Payment method not found")

    stripe_service.detach_payment_method(payment_method_id)

    return {"message": "Payment method removed successfully", "payment_method_id": payment_method_id}
