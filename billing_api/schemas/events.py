"""
Typed Stripe webhook events.

A verified Stripe event is parsed into exactly one of the variants below,
keyed by its type string. Types without a handler become IgnoredEvent so
the dispatcher never has to deal with untyped payloads.

The payload models also accept objects returned by the Stripe API (for the
self-heal read path) and tolerate both the classic object layout and the
newer one where billing periods live on subscription items and the invoice
subscription lives under parent.subscription_details.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, model_validator


def dig(obj: Any, *path: Union[str, int]) -> Any:
    """Walk nested Stripe objects / dicts / lists, returning None on any miss."""
    current = obj
    for key in path:
        if current is None:
            return None
        if isinstance(key, int):
            if not isinstance(current, (list, tuple)) or len(current) <= key:
                return None
            current = current[key]
        else:
            try:
                if key not in current:
                    return None
                current = current[key]
            except TypeError:
                return None
    return current


def from_timestamp(value: Optional[int]) -> Optional[datetime]:
    """Convert a Stripe epoch-seconds timestamp to an aware UTC datetime."""
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


class SubscriptionPayload(BaseModel):
    """Provider-side view of a subscription."""
    id: str
    customer: Optional[str] = None
    status: str
    price_id: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: Optional[bool] = None
    item_id: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _flatten(cls, data: Any) -> Dict[str, Any]:
        if isinstance(data, cls):
            return data.model_dump()
        first_item = dig(data, "items", "data", 0)
        period_start = dig(data, "current_period_start") or dig(first_item, "current_period_start")
        period_end = dig(data, "current_period_end") or dig(first_item, "current_period_end")
        return {
            "id": dig(data, "id"),
            "customer": dig(data, "customer"),
            "status": dig(data, "status"),
            "price_id": dig(first_item, "price", "id"),
            "current_period_start": from_timestamp(period_start),
            "current_period_end": from_timestamp(period_end),
            "cancel_at_period_end": dig(data, "cancel_at_period_end"),
            "item_id": dig(first_item, "id"),
        }


class InvoicePayload(BaseModel):
    """Provider-side view of an invoice."""
    id: str
    customer: Optional[str] = None
    subscription: Optional[str] = None
    amount_paid: int = 0
    currency: str = "usd"
    status: str
    paid_at: Optional[datetime] = None
    invoice_pdf: Optional[str] = None
    hosted_invoice_url: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _flatten(cls, data: Any) -> Dict[str, Any]:
        if isinstance(data, cls):
            return data.model_dump()
        subscription = dig(data, "subscription")
        if isinstance(subscription, str) or subscription is None:
            subscription_id = subscription
        else:
            subscription_id = dig(subscription, "id")
        if subscription_id is None:
            subscription_id = dig(data, "parent", "subscription_details", "subscription")
        return {
            "id": dig(data, "id"),
            "customer": dig(data, "customer"),
            "subscription": subscription_id,
            "amount_paid": dig(data, "amount_paid") or 0,
            "currency": dig(data, "currency") or "usd",
            "status": dig(data, "status"),
            "paid_at": from_timestamp(dig(data, "status_transitions", "paid_at")),
            "invoice_pdf": dig(data, "invoice_pdf"),
            "hosted_invoice_url": dig(data, "hosted_invoice_url"),
        }


class _Event(BaseModel):
    id: Optional[str] = None


class InvoicePaidEvent(_Event):
    type: Literal["invoice.paid"] = "invoice.paid"
    invoice: InvoicePayload


class InvoicePaymentFailedEvent(_Event):
    type: Literal["invoice.payment_failed"] = "invoice.payment_failed"
    invoice: InvoicePayload


class SubscriptionCreatedEvent(_Event):
    type: Literal["customer.subscription.created"] = "customer.subscription.created"
    subscription: SubscriptionPayload


class SubscriptionUpdatedEvent(_Event):
    type: Literal["customer.subscription.updated"] = "customer.subscription.updated"
    subscription: SubscriptionPayload


class SubscriptionDeletedEvent(_Event):
    type: Literal["customer.subscription.deleted"] = "customer.subscription.deleted"
    subscription: SubscriptionPayload


class IgnoredEvent(_Event):
    """Any verified event type that has no handler."""
    type: str


ProviderEvent = Union[
    InvoicePaidEvent,
    InvoicePaymentFailedEvent,
    SubscriptionCreatedEvent,
    SubscriptionUpdatedEvent,
    SubscriptionDeletedEvent,
    IgnoredEvent,
]

# event type -> (variant, name of the payload field)
EVENT_TYPES = {
    "invoice.paid": (InvoicePaidEvent, "invoice"),
    "invoice.payment_failed": (InvoicePaymentFailedEvent, "invoice"),
    "customer.subscription.created": (SubscriptionCreatedEvent, "subscription"),
    "customer.subscription.updated": (SubscriptionUpdatedEvent, "subscription"),
    "customer.subscription.deleted": (SubscriptionDeletedEvent, "subscription"),
}


def parse_event(event: Any) -> ProviderEvent:
    """
    Parse a verified Stripe event into its typed variant.

    Raises:
        pydantic.ValidationError: If a handled event type carries a payload
            that is missing required fields
    """
    event_type = dig(event, "type")
    event_id = dig(event, "id")
    entry = EVENT_TYPES.get(event_type)
    if entry is None:
        return IgnoredEvent(id=event_id, type=str(event_type))

    model, field = entry
    return model.model_validate({"id": event_id, field: dig(event, "data", "object")})
