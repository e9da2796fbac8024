# payment_service.py
from __future__ import annotations

import logging

import stripe

from config import Config

log = logging.getLogger(__name__)


class PaymentError(ValueError):
    pass


class PaymentConfigError(PaymentError):
    pass


def to_cents(amount) -> int:
    return int(round(float(amount) * 100))


def create_payment_intent(amount, invoice_number: str, client_email: str = "", client_name: str = "",
                          secret_key: str | None = None, currency: str | None = None) -> dict:
    """
    Card-only PaymentIntent for an invoice total.
    Returns {"client_secret", "payment_intent_id"}.
    """
    try:
        value = float(amount)
    except (TypeError, ValueError):
        raise PaymentError("Invalid amount") from None
    if value <= 0:
        raise PaymentError("Invalid amount")

    secret_key = secret_key if secret_key is not None else Config.STRIPE_SECRET_KEY
    if not secret_key:
        raise PaymentConfigError("STRIPE_SECRET_KEY is not configured")

    stripe.api_key = secret_key
    intent = stripe.PaymentIntent.create(
        amount=to_cents(value),
        currency=currency or Config.STRIPE_CURRENCY,
        payment_method_types=["card"],
        metadata={
            "invoiceNumber": invoice_number or "",
            "clientEmail": client_email or "",
            "clientName": client_name or "",
        },
    )
    log.info("Created payment intent %s for %s", intent.id, invoice_number)
    return {"client_secret": intent.client_secret, "payment_intent_id": intent.id}
