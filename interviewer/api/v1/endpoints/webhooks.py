from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from interviewer.infrastructure.db import get_db
from interviewer.services import payments, purchases

router = APIRouter(prefix="/webhooks", tags=["webhooks"])
logger = logging.getLogger(__name__)

CONFIRM_EVENTS = {"checkout.session.completed", "checkout.session.async_payment_succeeded"}
FAIL_EVENTS = {
    "checkout.session.expired": "expired",
    "checkout.session.async_payment_failed": "failed",
}


def handle_stripe_event(db: Session, event: dict[str, Any]) -> str | None:
    """Apply a verified Stripe event to the ledger; returns the outcome if any."""
    event_type = event.get("type")
    obj = (event.get("data") or {}).get("object") or {}
    object_id = obj.get("id")
    logger.info("Stripe event %s (%s) for %s", event.get("id"), event_type, object_id)
    if not object_id:
        logger.warning("Stripe event %s carries no object id", event.get("id"))
        return None

    if event_type in CONFIRM_EVENTS:
        if obj.get("payment_status") != "paid":
            logger.info("Checkout session %s not paid yet (%s)", object_id, obj.get("payment_status"))
            return None
        return purchases.confirm(db, object_id).outcome.value

    if event_type in FAIL_EVENTS:
        return purchases.mark_failed(db, object_id, FAIL_EVENTS[event_type]).outcome.value

    if event_type == "payment_intent.payment_failed":
        session_id = payments.find_checkout_session_id(object_id)
        if session_id is None:
            logger.info("No checkout session for failed payment intent %s", object_id)
            return None
        return purchases.mark_failed(db, session_id, "failed").outcome.value

    logger.info("Unhandled Stripe event type %s", event_type)
    return None


@router.post("/stripe")
async def stripe_webhook(request: Request, db: Session = Depends(get_db)):
    signature = request.headers.get("stripe-signature")
    if not signature:
        raise HTTPException(status_code=400, detail="Missing stripe-signature header")
    payload = await request.body()
    try:
        event = payments.verify_webhook(payload, signature)
    except payments.PaymentsNotConfiguredError:
        raise HTTPException(status_code=503, detail="Stripe webhook secret is not configured")
    except payments.WebhookVerificationError as exc:
        logger.warning("Stripe webhook rejected: %s", exc)
        raise HTTPException(status_code=400, detail="Webhook signature verification failed")

    try:
        await run_in_threadpool(handle_stripe_event, db, event)
    except payments.PaymentProviderError:
        raise HTTPException(status_code=502, detail="Payment provider lookup failed")
    return {"received": True}
