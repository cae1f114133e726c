from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from interviewer.core.config import get_settings
from interviewer.core.security import get_current_user_id, get_token_claims
from interviewer.infrastructure.db import get_db
from interviewer.schemas.credits import (
    BalanceResponse,
    InitializeRequest,
    InitializeResponse,
    PackageOut,
    PurchaseRequest,
    PurchaseResponse,
    RequiredCreditsResponse,
    StatsResponse,
    TransactionOut,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from interviewer.services import credits, payments, purchases

router = APIRouter(prefix="/credits", tags=["credits"])


def _balance_out(balance: credits.Balance) -> BalanceResponse:
    return BalanceResponse(
        available_credits=balance.available_credits,
        total_credits_earned=balance.total_credits_earned,
        total_credits_used=balance.total_credits_used,
    )


@router.get("/balance", response_model=BalanceResponse)
def credits_balance(db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    return _balance_out(credits.get_balance(db, user_id))


@router.post("/initialize", response_model=InitializeResponse)
def initialize_credits(
    payload: InitializeRequest | None = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    payload = payload or InitializeRequest()
    result = credits.initialize_account(db, user_id, description=payload.description)
    if not result.initialized:
        return InitializeResponse(
            message="Credits already initialized for this user",
            initialized=False,
            balance=_balance_out(result.balance),
        )
    return InitializeResponse(
        message="Credits initialized successfully",
        initialized=True,
        credits_added=result.credits_added,
        description=payload.description,
        balance=_balance_out(result.balance),
    )


@router.get("/transactions", response_model=list[TransactionOut])
def credit_transactions(
    limit: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    rows = credits.list_transactions(db, user_id, limit)
    return [
        TransactionOut(
            id=t.id,
            type=t.type,
            credits=t.credits,
            description=t.description,
            package_id=t.package_id,
            reference=t.reference,
            created_at=t.created_at,
        )
        for t in rows
    ]


@router.get("/stats", response_model=StatsResponse)
def credit_stats(db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    stats = credits.get_credit_stats(db, user_id)
    return StatsResponse(
        total_earned=stats.total_earned,
        total_used=stats.total_used,
        available=stats.available,
        average_per_interview=stats.average_per_interview,
    )


@router.get("/packages", response_model=list[PackageOut])
def credit_packages(db: Session = Depends(get_db)):
    return [
        PackageOut(
            id=p.id,
            name=p.name,
            description=p.description,
            credits=p.credits,
            price_cents=p.price_cents,
            price_dollars=f"{p.price_cents / 100:.2f}",
            price_per_credit=f"{p.price_cents / p.credits / 100:.2f}",
        )
        for p in credits.list_packages(db)
    ]


@router.get("/required", response_model=RequiredCreditsResponse)
def required_credits(
    duration_minutes: float = Query(gt=0, le=240),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    required = credits.compute_required_credits(duration_minutes)
    available = credits.get_balance(db, user_id).available_credits
    return RequiredCreditsResponse(
        duration_minutes=duration_minutes,
        required_credits=required,
        available_credits=available,
        sufficient=available >= required,
    )


@router.post("/purchase", response_model=PurchaseResponse)
def purchase_credits(
    payload: PurchaseRequest,
    db: Session = Depends(get_db),
    claims: dict = Depends(get_token_claims),
):
    user_id = claims["sub"]
    package = credits.get_package(db, payload.package_id)
    if package is None:
        raise HTTPException(status_code=404, detail="Invalid credit package")

    app_url = get_settings().app_url.rstrip("/")
    try:
        session = payments.create_checkout_session(
            package,
            user_id=user_id,
            success_url=f"{app_url}/credits/success",
            cancel_url=f"{app_url}/credits/cancel",
            customer_email=claims.get("email"),
        )
    except payments.PaymentsNotConfiguredError:
        raise HTTPException(status_code=503, detail="Payments are not configured")
    except payments.PaymentProviderError:
        raise HTTPException(status_code=502, detail="Failed to create checkout session")

    # The pending row must exist before the user reaches checkout.
    purchases.initiate(db, user_id, package.id, session["id"])
    return PurchaseResponse(checkout_url=session["url"], session_id=session["id"])


@router.post("/verify-payment", response_model=VerifyPaymentResponse)
def verify_payment(
    payload: VerifyPaymentRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    try:
        session = payments.retrieve_checkout_session(payload.session_id)
    except payments.PaymentsNotConfiguredError:
        raise HTTPException(status_code=503, detail="Payments are not configured")
    except payments.PaymentProviderError:
        raise HTTPException(status_code=502, detail="Failed to verify payment")
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    if session["metadata"].get("user_id") != user_id:
        raise HTTPException(status_code=403, detail="Unauthorized access to session")

    credits_added = 0
    txn = purchases.get_purchase(db, user_id, payload.session_id)
    if txn is not None and session["payment_status"] == "paid" and purchases.purchase_status(txn) == "pending":
        # The webhook may not have arrived yet; confirming is idempotent.
        result = purchases.confirm(db, payload.session_id)
        if result.outcome is credits.Outcome.applied:
            credits_added = result.credits
        txn = purchases.get_purchase(db, user_id, payload.session_id)

    return VerifyPaymentResponse(
        session_id=session["id"],
        payment_status=session["payment_status"],
        status=session["status"],
        amount_total=session["amount_total"],
        currency=session["currency"],
        purchase_status=purchases.purchase_status(txn) if txn is not None else "unknown",
        credits_added=credits_added,
        metadata=session["metadata"],
    )
