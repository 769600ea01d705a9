"""
Invoice persistence and sync.

upsert_invoice is the single write path for invoices, shared by the
invoice.paid webhook handler and the on-demand provider sync.
"""
import logging
from typing import Dict, List, Optional
from sqlalchemy.orm import Session

from billing_api.core.errors import NotFoundError
from billing_api.db.models.invoice import Invoice
from billing_api.db.models.subscription import Subscription, current_subscription_query
from billing_api.schemas.events import InvoicePayload, dig, from_timestamp
from billing_api.services import stripe_service
from billing_api.services.account_service import get_account_by_customer_id

logger = logging.getLogger(__name__)


def upsert_invoice(db: Session, subscription: Subscription, payload: InvoicePayload) -> Invoice:
    """
    Insert or update an invoice keyed by its Stripe id.

    Existing invoices get status, amount, paid_at and URLs refreshed; the
    caller commits.
    """
    invoice = db.query(Invoice).filter(Invoice.stripe_invoice_id == payload.id).first()

    if invoice:
        invoice.status = payload.status
        invoice.amount_paid = payload.amount_paid
        invoice.paid_at = payload.paid_at
        invoice.invoice_pdf = payload.invoice_pdf
        invoice.hosted_invoice_url = payload.hosted_invoice_url
        logger.info(f"Invoice updated: invoice_id={payload.id}, status={payload.status}")
    else:
        invoice = Invoice(
            subscription_id=subscription.id,
            stripe_invoice_id=payload.id,
            amount_paid=payload.amount_paid,
            currency=payload.currency,
            status=payload.status,
            paid_at=payload.paid_at,
            invoice_pdf=payload.invoice_pdf,
            hosted_invoice_url=payload.hosted_invoice_url,
        )
        db.add(invoice)
        logger.info(f"Invoice stored: invoice_id={payload.id}, subscription_id={subscription.stripe_subscription_id}")

    return invoice


def list_invoice_history(db: Session, customer_id: str) -> List[Invoice]:
    """All invoices across the account's subscriptions, newest first."""
    account = get_account_by_customer_id(db, customer_id)
    return (
        db.query(Invoice)
        .join(Subscription, Invoice.subscription_id == Subscription.id)
        .filter(Subscription.account_id == account.id)
        .order_by(Invoice.created_at.desc(), Invoice.id.desc())
        .all()
    )


def get_upcoming_invoice(db: Session, customer_id: str) -> Dict:
    """
    Preview the next invoice of the current subscription.

    Raises:
        NotFoundError: If the account or its subscriptions are missing
    """
    account = get_account_by_customer_id(db, customer_id)
    subscription = current_subscription_query(db, account.id).first()
    if not subscription:
        raise NotFoundError("No subscription found")

    upcoming = stripe_service.preview_upcoming_invoice(customer_id, subscription.stripe_subscription_id)
    return {
        "amount_due": dig(upcoming, "amount_due"),
        "currency": dig(upcoming, "currency"),
        "next_payment_attempt": from_timestamp(dig(upcoming, "next_payment_attempt")),
        "period_start": from_timestamp(dig(upcoming, "period_start")),
        "period_end": from_timestamp(dig(upcoming, "period_end")),
        "subtotal": dig(upcoming, "subtotal"),
        "total": dig(upcoming, "total"),
    }


def sync_invoices_from_provider(db: Session, customer_id: str) -> Dict[str, int]:
    """
    Pull the customer's Stripe invoices and upsert them locally.

    Drafts and invoices whose subscription is unknown locally are skipped.
    """
    get_account_by_customer_id(db, customer_id)
    synced = 0
    skipped = 0

    for raw in stripe_service.list_invoices(customer_id):
        payload = InvoicePayload.model_validate(raw)
        subscription: Optional[Subscription] = None
        if payload.status != "draft" and payload.subscription:
            subscription = db.query(Subscription).filter(
                Subscription.stripe_subscription_id == payload.subscription
            ).first()

        if subscription is None:
            skipped += 1
            logger.debug(f"Invoice sync skipped: invoice_id={payload.id}, status={payload.status}")
            continue

        upsert_invoice(db, subscription, payload)
        synced += 1

    db.commit()
    logger.info(f"Invoice sync complete: customer_id={customer_id}, synced={synced}, skipped={skipped}")
    return {"synced": synced, "skipped": skipped}
