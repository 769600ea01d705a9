import logging
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from billing_api.db.session import get_db
from billing_api.db.models.account import Account
from billing_api.schemas.billing import CreateCustomerRequest, CustomerResponse
from billing_api.services import stripe_service
from billing_api.services.account_service import ensure_unique, get_account_by_customer_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/customers", tags=["Customers"])


def _customer(account: Account) -> dict:
    return {
        "id": account.id,
        "email": account.email,
        "stripe_customer_id": account.stripe_customer_id,
    }


@router.post("/create", status_code=status.HTTP_201_CREATED, response_model=CustomerResponse)
def create_customer(payload: CreateCustomerRequest, db: Session = Depends(get_db)):
    """
    Create a Stripe customer with a bare account (no username or password).
    """
    ensure_unique(db, email=payload.email, suffix="already exists")

    customer_id = stripe_service.create_customer(payload.email)
    account = Account(email=payload.email, stripe_customer_id=customer_id)
    db.add(account)
    db.commit()
    db.refresh(account)

    logger.info(f"Customer created: account_id={account.id}, customer_id={customer_id}")
    return {"user": _customer(account)}


@router.get("/{customer_id}", response_model=CustomerResponse)
def get_customer(customer_id: str, db: Session = Depends(get_db)):
    return {"user": _customer(get_account_by_customer_id(db, customer_id))}
