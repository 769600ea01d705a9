import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from billing_api.db.session import get_db
from billing_api.db.models.account import Account
from billing_api.core.security import hash_password, verify_password, create_access_token
from billing_api.core.auth_dependency import get_current_account
from billing_api.schemas.auth import (
    SignupRequest,
    LoginRequest,
    ProfileUpdateRequest,
    AuthResponse,
    UserResponse,
    ProfileResponse,
)
from billing_api.services import stripe_service
from billing_api.services.account_service import (
    ensure_unique,
    find_account_for_login,
    get_account_by_customer_id,
    serialize_account,
    update_profile,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


def _token_for(account: Account) -> str:
    return create_access_token({"sub": str(account.id)})


# ✅ SIGNUP
@router.post("/signup", status_code=status.HTTP_201_CREATED, response_model=AuthResponse)
def signup(payload: SignupRequest, db: Session = Depends(get_db)):
    ensure_unique(db, username=payload.username)
    ensure_unique(db, email=payload.email)

    customer_id = stripe_service.create_customer(payload.email)

    account = Account(
        username=payload.username,
        email=payload.email,
        password_hash=hash_password(payload.password),
        stripe_customer_id=customer_id,
    )
    db.add(account)
    db.commit()
    db.refresh(account)

    logger.info(f"Account created: account_id={account.id}, customer_id={customer_id}")

    return {
        "message": "User created successfully",
        "token": _token_for(account),
        "user": serialize_account(account),
    }


# ✅ LOGIN BY EMAIL OR USERNAME
@router.post("/login", response_model=AuthResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    account = find_account_for_login(db, payload.email_or_username)

    if not account or not verify_password(payload.password, account.password_hash):
        logger.info("Login attempt failed")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email/username or password"
        )

    return {
        "message": "Login successful",
        "token": _token_for(account),
        "user": serialize_account(account),
    }


# ✅ WHO AM I
@router.get("/me", response_model=UserResponse)
def me(account: Account = Depends(get_current_account)):
    return {"user": serialize_account(account)}


# ✅ PROFILE UPDATE
@router.put("/profile", response_model=ProfileResponse)
def profile(
    payload: ProfileUpdateRequest,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    account = update_profile(
        db,
        account,
        username=payload.username,
        email=payload.email,
        password=payload.password,
    )
    return {
        "message": "Profile updated successfully",
        "user": serialize_account(account),
    }


# ✅ LOOKUP BY STRIPE CUSTOMER
@router.get("/{customer_id}", response_model=UserResponse)
def get_user_by_customer(customer_id: str, db: Session = Depends(get_db)):
    account = get_account_by_customer_id(db, customer_id)
    return {"user": serialize_account(account)}
