"""
Account lookups and serialization shared by the routes and services.
"""
import logging
from typing import Dict, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session

from billing_api.core.errors import ConflictError, NotFoundError
from billing_api.core.security import hash_password
from billing_api.db.models.account import Account

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def get_account_by_customer_id(db: Session, customer_id: str) -> Account:
    """
    Raises:
        NotFoundError: If no account is linked to the Stripe customer
    """
    account = db.query(Account).filter(Account.stripe_customer_id == customer_id).first()
    if not account:
        raise NotFoundError("User not found")
    return account


def find_account_for_login(db: Session, email_or_username: str) -> Optional[Account]:
    """
    Match the login identifier against stored emails or usernames.

    Emails are stored normalized, so the email comparison is exact against
    the normalized form. Usernames are case-sensitive.
    """
    identifier = email_or_username.strip()
    return db.query(Account).filter(
        or_(Account.email == identifier, Account.username == identifier)
    ).first()


def ensure_unique(db: Session, username: Optional[str] = None, email: Optional[str] = None,
                  exclude_id: Optional[int] = None, suffix: str = "already exists") -> None:
    """
    Raises:
        ConflictError: If another account already uses the username or email
    """
    if username is not None:
        query = db.query(Account).filter(Account.username == username)
        if exclude_id is not None:
            query = query.filter(Account.id != exclude_id)
        if query.first():
            raise ConflictError(f"Username {suffix}")
    if email is not None:
        query = db.query(Account).filter(Account.email == email)
        if exclude_id is not None:
            query = query.filter(Account.id != exclude_id)
        if query.first():
            raise ConflictError(f"Email {suffix}")


def update_profile(
    db: Session,
    account: Account,
    username: Optional[str] = None,
    email: Optional[str] = None,
    password: Optional[str] = None
) -> Account:
    """Apply any subset of username / email / password to an account."""
    if username and username != account.username:
        ensure_unique(db, username=username, exclude_id=account.id, suffix="already in use")
        account.username = username

    if email:
        email = normalize_email(email)
        if email != account.email:
            ensure_unique(db, email=email, exclude_id=account.id, suffix="already in use")
            account.email = email

    if password:
        account.password_hash = hash_password(password)

    db.commit()
    db.refresh(account)

    logger.info(f"Profile updated: account_id={account.id}")
    return account


def serialize_account(account: Account) -> Dict:
    return {
        "id": account.id,
        "username": account.username,
        "email": account.email,
        "stripe_customer_id": account.stripe_customer_id,
        "created_at": account.created_at,
    }
