"""
Pydantic schemas for customer, payment method and invoice endpoints.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class CreateCustomerRequest(BaseModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class CustomerOut(BaseModel):
    id: int
    email: str
    stripe_customer_id: Optional[str] = None


class CustomerResponse(BaseModel):
    user: CustomerOut


class AddPaymentMethodRequest(BaseModel):
    customer_id: str = Field(..., min_length=1, alias="customerId", description="Customer ID is required")
    payment_method_id: str = Field(..., min_length=1, alias="paymentMethodId", description="Payment method ID is required")
    set_as_default: bool = Field(False, alias="setAsDefault")

    model_config = ConfigDict(populate_by_name=True)


class SetDefaultPaymentMethodRequest(BaseModel):
    customer_id: str = Field(..., min_length=1, alias="customerId")
    payment_method_id: str = Field(..., min_length=1, alias="paymentMethodId")

    model_config = ConfigDict(populate_by_name=True)


class CardOut(BaseModel):
    brand: Optional[str] = None
    last4: Optional[str] = None
    exp_month: Optional[int] = None
    exp_year: Optional[int] = None


class PaymentMethodOut(BaseModel):
    id: str
    type: str
    card: CardOut
    is_default: bool


class PaymentMethodListResponse(BaseModel):
    payment_methods: List[PaymentMethodOut]
    default_payment_method_id: Optional[str] = None


class PaymentMethodActionResponse(BaseModel):
    message: str
    payment_method_id: Optional[str] = None


class InvoiceOut(BaseModel):
    id: int
    stripe_invoice_id: str
    amount_paid: int
    currency: str
    status: str
    paid_at: Optional[datetime] = None
    invoice_pdf: Optional[str] = None
    hosted_invoice_url: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class InvoiceHistoryResponse(BaseModel):
    invoices: List[InvoiceOut]


class UpcomingInvoiceOut(BaseModel):
    amount_due: Optional[int] = None
    currency: Optional[str] = None
    next_payment_attempt: Optional[datetime] = None
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    subtotal: Optional[int] = None
    total: Optional[int] = None


class UpcomingInvoiceResponse(BaseModel):
    upcoming_invoice: UpcomingInvoiceOut


class InvoiceSyncResponse(BaseModel):
    synced: int
    skipped: int
