"""
Error types and the exception handlers that turn them into HTTP responses.

Services raise NotFoundError / ConflictError and let Stripe errors propagate;
the handlers registered here decide the status code and response body.
"""
import logging
from typing import Optional

import stripe
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from billing_api.core.config import settings

logger = logging.getLogger(__name__)

# Columns with unique constraints, in the order they are reported
UNIQUE_FIELDS = (
    "username",
    "email",
    "stripe_customer_id",
    "stripe_subscription_id",
    "stripe_invoice_id",
)


class BillingError(Exception):
    """Base class for errors raised by the service layer."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(BillingError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(BillingError):
    """A uniqueness rule was violated before reaching the database."""

    status_code = status.HTTP_400_BAD_REQUEST


def conflicting_field(exc: IntegrityError) -> Optional[str]:
    """Best-effort name of the unique column an IntegrityError refers to."""
    detail = str(exc.orig).lower()
    for field in UNIQUE_FIELDS:
        if field in detail:
            return field
    return None


def provider_error_message(exc: stripe.StripeError, price_id: Optional[str] = None) -> str:
    """Human readable message for a Stripe error."""
    message = exc.user_message or str(exc)
    if isinstance(exc, stripe.InvalidRequestError) and price_id:
        if exc.code == "resource_missing" or "No such price" in message:
            return f'Price ID "{price_id}" does not exist in Stripe. Create the price in the Stripe Dashboard first.'
    return message


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({"field": ".".join(loc) or None, "message": err.get("msg")})
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"errors": errors})


async def billing_error_handler(request: Request, exc: BillingError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def stripe_error_handler(request: Request, exc: stripe.StripeError):
    logger.error(
        f"Stripe error on {request.method} {request.url.path}: "
        f"type={type(exc).__name__}, code={exc.code}, message={exc.user_message or exc}"
    )
    price_id = getattr(request.state, "price_id", None)
    content = {"error": provider_error_message(exc, price_id)}
    if not settings.IS_PRODUCTION:
        content["details"] = {
            "type": type(exc).__name__,
            "code": exc.code,
            "http_status": exc.http_status,
        }
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


async def integrity_error_handler(request: Request, exc: IntegrityError):
    field = conflicting_field(exc)
    logger.warning(f"Integrity error on {request.url.path}: field={field}")
    if field:
        label = field.replace("_", " ").capitalize()
        message = f"{label} already exists"
    else:
        message = "Record conflicts with an existing one"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(BillingError, billing_error_handler)
    app.add_exception_handler(stripe.StripeError, stripe_error_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
