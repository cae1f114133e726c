from __future__ import annotations

import json
import logging
from typing import Any

import stripe

from interviewer.core.config import get_settings
from interviewer.domain.models.credit_package import CreditPackage


logger = logging.getLogger(__name__)


class PaymentsNotConfiguredError(Exception):
    pass


class PaymentProviderError(Exception):
    pass


class WebhookVerificationError(Exception):
    pass


def _api_key() -> str:
    key = get_settings().stripe_secret_key
    if not key:
        raise PaymentsNotConfiguredError("Stripe secret key is not configured")
    return key


def create_checkout_session(
    package: CreditPackage,
    *,
    user_id: str,
    success_url: str,
    cancel_url: str,
    customer_email: str | None = None,
) -> dict[str, str]:
    api_key = _api_key()
    params: dict[str, Any] = {
        "mode": "payment",
        "payment_method_types": ["card"],
        "line_items": [
            {
                "price_data": {
                    "currency": get_settings().stripe_currency,
                    "product_data": {
                        "name": package.name,
                        "description": package.description or f"Purchase {package.credits} credits",
                    },
                    "unit_amount": package.price_cents,
                },
                "quantity": 1,
            }
        ],
        "success_url": f"{success_url}?session_id={{CHECKOUT_SESSION_ID}}",
        "cancel_url": cancel_url,
        "metadata": {
            "user_id": user_id,
            "package_id": package.id,
            "credits": str(package.credits),
            "package_name": package.name,
        },
    }
    if customer_email:
        params["customer_email"] = customer_email
    try:
        session = stripe.checkout.Session.create(api_key=api_key, **params)
    except stripe.StripeError as exc:
        logger.error("Stripe checkout session creation failed: %s", exc)
        raise PaymentProviderError("Failed to create checkout session") from exc
    return {"id": session.id, "url": session.url}


def retrieve_checkout_session(session_id: str) -> dict[str, Any] | None:
    api_key = _api_key()
    try:
        session = stripe.checkout.Session.retrieve(session_id, api_key=api_key)
    except stripe.InvalidRequestError:
        return None
    except stripe.StripeError as exc:
        logger.error("Stripe checkout session lookup failed: %s", exc)
        raise PaymentProviderError("Failed to retrieve checkout session") from exc
    metadata = session.metadata
    return {
        "id": session.id,
        "payment_status": session.payment_status,
        "status": session.status,
        "amount_total": session.amount_total,
        "currency": session.currency,
        "metadata": {k: metadata[k] for k in metadata.keys()} if metadata else {},
    }


def find_checkout_session_id(payment_intent_id: str) -> str | None:
    api_key = _api_key()
    try:
        sessions = stripe.checkout.Session.list(payment_intent=payment_intent_id, limit=1, api_key=api_key)
    except stripe.StripeError as exc:
        logger.error("Stripe lookup for payment intent %s failed: %s", payment_intent_id, exc)
        raise PaymentProviderError("Failed to look up checkout session") from exc
    return sessions.data[0].id if sessions.data else None


def verify_webhook(payload: bytes | str, signature: str) -> dict[str, Any]:
    """Check the Stripe-Signature header and decode the event body."""
    secret = get_settings().stripe_webhook_secret
    if not secret:
        raise PaymentsNotConfiguredError("Stripe webhook secret is not configured")
    try:
        stripe.Webhook.construct_event(payload=payload, sig_header=signature, secret=secret)
        # Plain dict for the handlers; the body is already known to be valid JSON.
        event = json.loads(payload)
    except stripe.SignatureVerificationError as exc:
        raise WebhookVerificationError(str(exc)) from exc
    except ValueError as exc:
        # Covers undecodable bytes as well as malformed JSON.
        raise WebhookVerificationError("Invalid webhook payload") from exc
    if not isinstance(event, dict) or "type" not in event:
        raise WebhookVerificationError("Invalid webhook payload")
    return event
