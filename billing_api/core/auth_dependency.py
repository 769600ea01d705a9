from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from billing_api.core.security import decode_access_token, JWTError
from billing_api.db.session import get_db
from billing_api.db.models.account import Account

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_account_id(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> int:
    """Get the account id from the bearer token."""
    if credentials is None or not credentials.credentials:
        raise _unauthorized("No token provided")

    try:
        payload = decode_access_token(credentials.credentials)
        subject = payload.get("sub")
        if subject is None:
            raise _unauthorized("Invalid token")
        return int(subject)
    except (JWTError, ValueError):
        raise _unauthorized("Invalid or expired token")


def get_current_account(
    account_id: int = Depends(get_current_account_id),
    db: Session = Depends(get_db)
) -> Account:
    """Get the current Account object from the bearer token."""
    account = db.query(Account).filter(Account.id == account_id).first()
    if not account:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return account


def require_customer_owner(customer_id: str, account: Account) -> None:
    """Reject requests that act on a Stripe customer the caller does not own."""
    if account.stripe_customer_id != customer_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
