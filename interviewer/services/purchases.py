"""Purchase reconciliation: pending checkout -> completed | failed.

The ``purchase_pending`` row written before the user is sent to checkout is
the claim check for the payment. Webhooks and payment polling rewrite it with
a conditional update, so a payment session is credited at most once no matter
how often, or how concurrently, it is confirmed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.orm import Session

from interviewer.domain.models.credit_package import CreditPackage
from interviewer.domain.models.credit_transaction import CreditTransaction
from interviewer.services.credits import (
    Outcome,
    PackageNotFoundError,
    TxType,
    append_transaction,
    deposit,
    ensure_account,
    get_package,
    ledger_transaction,
)


UTC = timezone.utc

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    outcome: Outcome
    transaction_id: str | None = None
    user_id: str | None = None
    credits: int = 0
    balance: int | None = None


def _find(db: Session, external_session_ref: str) -> CreditTransaction | None:
    return (
        db.query(CreditTransaction)
        .filter(CreditTransaction.external_reference == external_session_ref)
        .populate_existing()
        .first()
    )


def _skipped(txn: CreditTransaction | None, external_session_ref: str) -> ReconcileResult:
    if txn is None:
        logger.error("No pending purchase found for payment session %s", external_session_ref)
        return ReconcileResult(outcome=Outcome.not_found)
    logger.info("Payment session %s already processed (%s)", external_session_ref, txn.type)
    return ReconcileResult(outcome=Outcome.already_processed, transaction_id=txn.id, user_id=txn.user_id)


def initiate(db: Session, user_id: str, package_id: str, external_session_ref: str) -> CreditTransaction:
    package = get_package(db, package_id)
    if package is None:
        raise PackageNotFoundError(package_id)
    with ledger_transaction(db, "initiate_purchase"):
        txn = append_transaction(
            db,
            user_id,
            TxType.purchase_pending,
            0,
            description="Credit purchase pending payment",
            package_id=package.id,
            external_reference=external_session_ref,
            details={"stripe_session_id": external_session_ref, "status": "pending"},
        )
    logger.info("Purchase of %s pending for user %s (session %s)", package.id, user_id, external_session_ref)
    return txn


def confirm(db: Session, external_session_ref: str) -> ReconcileResult:
    with ledger_transaction(db, "confirm_purchase"):
        txn = _find(db, external_session_ref)
        if txn is None or txn.type != TxType.purchase_pending.value:
            return _skipped(txn, external_session_ref)

        package = db.get(CreditPackage, txn.package_id) if txn.package_id else None
        if package is None:
            # A pending row always names its package; a missing one is a catalog bug.
            logger.error("Package %s for payment session %s is missing", txn.package_id, external_session_ref)
            return ReconcileResult(outcome=Outcome.not_found, transaction_id=txn.id, user_id=txn.user_id)

        claimed = db.execute(
            update(CreditTransaction)
            .where(
                CreditTransaction.id == txn.id,
                CreditTransaction.type == TxType.purchase_pending.value,
            )
            .values(
                {
                    CreditTransaction.type: TxType.purchase.value,
                    CreditTransaction.credits: package.credits,
                    CreditTransaction.description: f"Purchased {package.name} via Stripe",
                    CreditTransaction.details: {"stripe_session_id": external_session_ref, "status": "completed"},
                    CreditTransaction.updated_at: datetime.now(UTC),
                }
            )
            .returning(CreditTransaction.user_id)
        ).first()
        if claimed is None:
            logger.info("Payment session %s was confirmed concurrently", external_session_ref)
            return ReconcileResult(outcome=Outcome.already_processed, transaction_id=txn.id, user_id=txn.user_id)

        user_id = claimed[0]
        ensure_account(db, user_id)
        balance = deposit(db, user_id, package.credits)

    logger.info(
        "Added %s credits to user %s for payment session %s",
        package.credits,
        user_id,
        external_session_ref,
    )
    return ReconcileResult(
        outcome=Outcome.applied,
        transaction_id=txn.id,
        user_id=user_id,
        credits=package.credits,
        balance=balance,
    )


def mark_failed(db: Session, external_session_ref: str, reason: str) -> ReconcileResult:
    with ledger_transaction(db, "fail_purchase"):
        claimed = db.execute(
            update(CreditTransaction)
            .where(
                CreditTransaction.external_reference == external_session_ref,
                CreditTransaction.type == TxType.purchase_pending.value,
            )
            .values(
                {
                    CreditTransaction.type: TxType.purchase_failed.value,
                    CreditTransaction.description: f"Credit purchase {reason}",
                    CreditTransaction.details: {
                        "stripe_session_id": external_session_ref,
                        "status": "failed",
                        "reason": reason,
                    },
                    CreditTransaction.updated_at: datetime.now(UTC),
                }
            )
            .returning(CreditTransaction.id, CreditTransaction.user_id)
        ).first()
        if claimed is None:
            return _skipped(_find(db, external_session_ref), external_session_ref)

    logger.info("Payment session %s marked failed: %s", external_session_ref, reason)
    return ReconcileResult(outcome=Outcome.applied, transaction_id=claimed[0], user_id=claimed[1])


def get_purchase(db: Session, user_id: str, external_session_ref: str) -> CreditTransaction | None:
    txn = _find(db, external_session_ref)
    if txn is None or txn.user_id != user_id:
        return None
    return txn


def purchase_status(txn: CreditTransaction) -> str:
    return {
        TxType.purchase_pending.value: "pending",
        TxType.purchase.value: "completed",
        TxType.purchase_failed.value: "failed",
    }.get(txn.type, "unknown")
