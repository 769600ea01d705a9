"""
Pydantic schemas for subscription endpoints.
"""
from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class CreateSubscriptionRequest(BaseModel):
    customer_id: str = Field(..., min_length=1, alias="customerId")
    payment_method_id: str = Field(..., min_length=1, alias="paymentMethodId")
    price_id: str = Field(..., min_length=1, alias="priceId")

    model_config = ConfigDict(populate_by_name=True, json_schema_extra={
        "example": {
            "customer_id": "cus_Q1w2e3r4",
            "payment_method_id": "pm_1Nq2w3e4",
            "price_id": "price_1Sd0Of"
        }
    })


class UpdateSubscriptionRequest(BaseModel):
    price_id: str = Field(..., min_length=1, alias="priceId", description="Price ID is required")
    proration_behavior: Literal["create_prorations", "none", "always_invoice"] = Field(
        "create_prorations", alias="prorationBehavior"
    )

    model_config = ConfigDict(populate_by_name=True)


class SubscriptionOut(BaseModel):
    id: int
    stripe_subscription_id: str
    status: str
    price_id: str
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SubscriptionListResponse(BaseModel):
    subscriptions: List[SubscriptionOut]
    subscription: SubscriptionOut


class CreatedSubscription(BaseModel):
    id: int
    stripe_subscription_id: str
    status: str
    client_secret: Optional[str] = None


class CreateSubscriptionResponse(BaseModel):
    subscription: CreatedSubscription


class SubscriptionChangeResponse(BaseModel):
    message: str
    subscription: SubscriptionOut
