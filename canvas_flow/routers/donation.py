"""Donation checkout endpoint backed by Stripe Checkout."""

from __future__ import annotations

import logging
import math
from typing import Any, Dict

import stripe
from fastapi import APIRouter, HTTPException, Request, status

from ..config import get_stripe_settings
from ..logging_utils import log_error
from ..schemas import DonationRequest, DonationResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["donation"])

INVALID_AMOUNT_MESSAGE = "Invalid amount"
CHECKOUT_FAILED_MESSAGE = "Failed to create checkout session"


def _valid_amount(amount: Any) -> bool:
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        return False
    return math.isfinite(amount) and amount > 0


def _origin(request: Request) -> str:
    origin = request.headers.get("origin")
    if origin:
        return origin.rstrip("/")
    return str(request.base_url).rstrip("/")


def _checkout_failed() -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=CHECKOUT_FAILED_MESSAGE)


@router.post("/stripe")
async def create_donation_session(payload: DonationRequest, request: Request) -> Dict[str, str]:
    """Create a one-off donation Checkout session and return its id."""

    if not _valid_amount(payload.amount):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_AMOUNT_MESSAGE)

    settings = get_stripe_settings()
    if not settings.secret_key:
        log_error(logger, "POST /api/stripe", "STRIPE_SECRET_KEY is not configured")
        raise _checkout_failed()
    if settings.secret_key.startswith("pk_"):
        log_error(logger, "POST /api/stripe", "STRIPE_SECRET_KEY holds a publishable key; a secret key is required")
        raise _checkout_failed()

    stripe.api_key = settings.secret_key
    origin = _origin(request)
    try:
        checkout_session = stripe.checkout.Session.create(
            mode="payment",
            submit_type="donate",
            payment_method_types=["card"],
            line_items=[
                {
                    "price_data": {
                        "currency": settings.currency,
                        "product_data": {
                            "name": settings.product_name,
                            "description": settings.product_description,
                        },
                        "unit_amount": int(round(payload.amount)),
                    },
                    "quantity": 1,
                }
            ],
            success_url=f"{origin}{settings.success_path}",
            cancel_url=f"{origin}{settings.cancel_path}",
        )
    except stripe.StripeError as exc:
        log_error(logger, "POST /api/stripe", exc, amount=payload.amount)
        raise _checkout_failed() from exc

    logger.info("Created donation checkout session (amount=%s, currency=%s)", payload.amount, settings.currency)
    return DonationResponse(session_id=checkout_session.id).model_dump(by_alias=True)
