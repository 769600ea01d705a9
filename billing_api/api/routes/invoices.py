import logging
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from billing_api.db.session import get_db
from billing_api.db.models.account import Account
from billing_api.core.auth_dependency import get_current_account, require_customer_owner
from billing_api.schemas.billing import (
    InvoiceHistoryResponse,
    InvoiceOut,
    InvoiceSyncResponse,
    UpcomingInvoiceResponse,
)
from billing_api.services import invoice_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/invoices", tags=["Invoices"])


@router.get("/history/{customer_id}", response_model=InvoiceHistoryResponse)
def invoice_history(customer_id: str, db: Session = Depends(get_db)):
    invoices = invoice_service.list_invoice_history(db, customer_id)
    return {"invoices": [InvoiceOut.model_validate(inv) for inv in invoices]}


@router.get("/upcoming/{customer_id}", response_model=UpcomingInvoiceResponse)
def upcoming_invoice(customer_id: str, db: Session = Depends(get_db)):
    return {"upcoming_invoice": invoice_service.get_upcoming_invoice(db, customer_id)}


@router.post("/sync/{customer_id}", response_model=InvoiceSyncResponse)
def sync_invoices(
    customer_id: str,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    require_customer_owner(customer_id, account)
    return invoice_service.sync_invoices_from_provider(db, customer_id)
