"""Credit ledger: balances, usage gating and two-phase usage settlement.

Every balance mutation is a single database transaction made of conditional
updates, so the materialized ``user_credits`` row and the
``credit_transactions`` log never disagree, and concurrent requests for the
same user cannot overdraw the account.
"""

from __future__ import annotations

import functools
import logging
import math
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterator, TypeVar

from sqlalchemy import update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from interviewer.core.config import get_settings
from interviewer.domain.models.credit_account import CreditAccount
from interviewer.domain.models.credit_package import CreditPackage
from interviewer.domain.models.credit_transaction import CreditTransaction


UTC = timezone.utc
TxType = CreditTransaction.Type
F = TypeVar("F", bound=Callable[..., Any])

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    pass


class InsufficientCreditsError(LedgerError):
    def __init__(self, required: int, available: int):
        self.required = int(required)
        self.available = int(available)
        super().__init__(f"Insufficient credits. Required: {self.required}, available: {self.available}.")


class LedgerStorageError(LedgerError):
    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Ledger operation '{operation}' failed")


class PackageNotFoundError(LedgerError):
    pass


class ReservationExistsError(LedgerError):
    pass


class Outcome(str, Enum):
    applied = "applied"
    already_processed = "already_processed"
    not_found = "not_found"


@dataclass
class Balance:
    user_id: str
    available_credits: int = 0
    total_credits_earned: int = 0
    total_credits_used: int = 0


@dataclass
class DebitResult:
    balance: int
    charged: int
    transaction_id: str


@dataclass
class InitializeResult:
    initialized: bool
    balance: Balance
    credits_added: int = 0
    transaction_id: str | None = None


@dataclass
class SettleResult:
    outcome: Outcome
    reserved: int = 0
    charged: int = 0
    refunded: int = 0
    shortfall: int = 0
    balance: int | None = None


@dataclass
class CreditStats:
    total_earned: int
    total_used: int
    available: int
    average_per_interview: int


@contextmanager
def ledger_transaction(db: Session, operation: str) -> Iterator[None]:
    """Commit on success; roll back and classify anything that goes wrong."""
    try:
        yield
        db.commit()
    except LedgerError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Ledger operation %s failed", operation)
        raise LedgerStorageError(operation) from exc


def storage_guarded(fn: F) -> F:
    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except SQLAlchemyError as exc:
            logger.exception("Ledger read %s failed", fn.__name__)
            raise LedgerStorageError(fn.__name__) from exc

    return wrapper  # type: ignore[return-value]


def ensure_account(db: Session, user_id: str) -> None:
    insert = sqlite_insert if db.get_bind().dialect.name == "sqlite" else pg_insert
    now = datetime.now(UTC)
    db.execute(
        insert(CreditAccount)
        .values(
            user_id=user_id,
            available_credits=0,
            total_credits_earned=0,
            total_credits_used=0,
            created_at=now,
            updated_at=now,
        )
        .on_conflict_do_nothing(index_elements=["user_id"])
    )


def _available(db: Session, user_id: str) -> int:
    row = db.query(CreditAccount.available_credits).filter(CreditAccount.user_id == user_id).first()
    return int(row[0]) if row else 0


def _locked_available(db: Session, user_id: str) -> int:
    available = (
        db.query(CreditAccount.available_credits)
        .filter(CreditAccount.user_id == user_id)
        .with_for_update()
        .scalar()
    )
    return int(available or 0)


def _withdraw(db: Session, user_id: str, amount: int) -> int:
    row = db.execute(
        update(CreditAccount)
        .where(CreditAccount.user_id == user_id, CreditAccount.available_credits >= amount)
        .values(
            available_credits=CreditAccount.available_credits - amount,
            total_credits_used=CreditAccount.total_credits_used + amount,
            updated_at=datetime.now(UTC),
        )
        .returning(CreditAccount.available_credits)
    ).first()
    if row is None:
        raise InsufficientCreditsError(required=amount, available=_available(db, user_id))
    return int(row[0])


def deposit(db: Session, user_id: str, amount: int) -> int:
    """Credit an existing account; callers own the surrounding transaction."""
    row = db.execute(
        update(CreditAccount)
        .where(CreditAccount.user_id == user_id)
        .values(
            available_credits=CreditAccount.available_credits + amount,
            total_credits_earned=CreditAccount.total_credits_earned + amount,
            updated_at=datetime.now(UTC),
        )
        .returning(CreditAccount.available_credits)
    ).first()
    return int(row[0])


def append_transaction(
    db: Session,
    user_id: str,
    tx_type: TxType,
    credits: int,
    *,
    description: str | None = None,
    reference: str | None = None,
    package_id: str | None = None,
    external_reference: str | None = None,
    details: dict[str, Any] | None = None,
) -> CreditTransaction:
    txn = CreditTransaction(
        user_id=user_id,
        type=tx_type.value,
        credits=int(credits),
        description=description,
        reference=reference,
        package_id=package_id,
        external_reference=external_reference,
        details=details,
    )
    db.add(txn)
    db.flush()
    return txn


def _validate_amount(amount: int, what: str = "amount") -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"{what} must be an integer")
    if amount < 0:
        raise ValueError(f"{what} must not be negative")
    return amount


# Reads


@storage_guarded
def get_balance(db: Session, user_id: str) -> Balance:
    acct = (
        db.query(CreditAccount)
        .filter(CreditAccount.user_id == user_id)
        .populate_existing()
        .first()
    )
    if acct is None:
        return Balance(user_id=user_id)
    return Balance(
        user_id=user_id,
        available_credits=int(acct.available_credits),
        total_credits_earned=int(acct.total_credits_earned),
        total_credits_used=int(acct.total_credits_used),
    )


def check_sufficient(db: Session, user_id: str, required: int) -> bool:
    if isinstance(required, bool) or not isinstance(required, int) or required <= 0:
        raise ValueError("required must be a positive integer")
    return get_balance(db, user_id).available_credits >= required


def compute_required_credits(duration_minutes: float) -> int:
    if duration_minutes < 0:
        raise ValueError("duration_minutes must not be negative")
    s = get_settings()
    credits = math.ceil(duration_minutes / s.interview_minutes_per_credit)
    return max(s.interview_min_credits, min(s.interview_max_credits, credits))


@storage_guarded
def list_transactions(db: Session, user_id: str, limit: int | None = None) -> list[CreditTransaction]:
    s = get_settings()
    if limit is None:
        limit = s.transactions_default_limit
    limit = max(1, min(int(limit), s.transactions_max_limit))
    return (
        db.query(CreditTransaction)
        .filter(CreditTransaction.user_id == user_id)
        .order_by(CreditTransaction.created_at.desc())
        .limit(limit)
        .populate_existing()
        .all()
    )


@storage_guarded
def get_credit_stats(db: Session, user_id: str) -> CreditStats:
    balance = get_balance(db, user_id)
    recent = list_transactions(db, user_id, limit=100)
    # One interview can leave a settled hold, an overage debit and a refund.
    usage: dict[str, int] = {}
    for t in recent:
        if t.type in (TxType.debit.value, TxType.refund.value):
            key = t.reference or t.id
            usage[key] = usage.get(key, 0) - t.credits
    charges = [c for c in usage.values() if c > 0]
    average = math.floor(sum(charges) / len(charges) + 0.5) if charges else 0
    return CreditStats(
        total_earned=balance.total_credits_earned,
        total_used=balance.total_credits_used,
        available=balance.available_credits,
        average_per_interview=int(average),
    )


@storage_guarded
def list_packages(db: Session) -> list[CreditPackage]:
    return (
        db.query(CreditPackage)
        .filter(CreditPackage.is_active.is_(True))
        .order_by(CreditPackage.credits.asc())
        .all()
    )


@storage_guarded
def get_package(db: Session, package_id: str) -> CreditPackage | None:
    return (
        db.query(CreditPackage)
        .filter(CreditPackage.id == package_id, CreditPackage.is_active.is_(True))
        .first()
    )


# Writes


def initialize_account(
    db: Session,
    user_id: str,
    bonus_credits: int | None = None,
    description: str = "Welcome bonus",
) -> InitializeResult:
    """Grant the welcome bonus unless the account already holds credits."""
    bonus = get_settings().signup_bonus_credits if bonus_credits is None else bonus_credits
    _validate_amount(bonus, "bonus_credits")
    if bonus == 0:
        raise ValueError("bonus_credits must be positive")

    txn_id = None
    with ledger_transaction(db, "initialize_account"):
        ensure_account(db, user_id)
        row = db.execute(
            update(CreditAccount)
            .where(CreditAccount.user_id == user_id, CreditAccount.available_credits <= 0)
            .values(
                available_credits=CreditAccount.available_credits + bonus,
                total_credits_earned=CreditAccount.total_credits_earned + bonus,
                updated_at=datetime.now(UTC),
            )
            .returning(CreditAccount.available_credits)
        ).first()
        if row is not None:
            txn_id = append_transaction(db, user_id, TxType.grant, bonus, description=description).id

    if txn_id is None:
        logger.info("Credits already initialized for user %s", user_id)
        return InitializeResult(initialized=False, balance=get_balance(db, user_id))
    logger.info("Granted %s credits to user %s (%s)", bonus, user_id, description)
    return InitializeResult(
        initialized=True,
        balance=get_balance(db, user_id),
        credits_added=bonus,
        transaction_id=txn_id,
    )


def _charge(
    db: Session,
    user_id: str,
    amount: int,
    tx_type: TxType,
    *,
    reference: str | None,
    description: str | None,
    details: dict[str, Any] | None,
) -> DebitResult:
    _validate_amount(amount)
    with ledger_transaction(db, tx_type.value):
        ensure_account(db, user_id)
        balance = _withdraw(db, user_id, amount) if amount else _available(db, user_id)
        try:
            txn = append_transaction(
                db,
                user_id,
                tx_type,
                -amount,
                description=description,
                reference=reference,
                details=details,
            )
        except IntegrityError as exc:
            # uq_credit_transactions_open_reservation: one open hold per reference
            if tx_type is TxType.reservation:
                raise ReservationExistsError(f"Reservation already open for {reference}") from exc
            raise
        txn_id = txn.id
    return DebitResult(balance=balance, charged=amount, transaction_id=txn_id)


def debit(
    db: Session,
    user_id: str,
    amount: int,
    *,
    reference: str | None = None,
    description: str | None = None,
    details: dict[str, Any] | None = None,
) -> DebitResult:
    """Charge ``amount`` credits; zero records the usage without charging."""
    return _charge(
        db,
        user_id,
        amount,
        TxType.debit,
        reference=reference,
        description=description or "Interview usage",
        details=details,
    )


def reserve(
    db: Session,
    user_id: str,
    amount: int,
    *,
    reference: str,
    description: str | None = None,
) -> DebitResult:
    """Hold ``amount`` credits for a usage session until it is settled."""
    if not reference:
        raise ValueError("reference is required")
    return _charge(
        db,
        user_id,
        amount,
        TxType.reservation,
        reference=reference,
        description=description or "Interview credits reserved",
        details={"status": "reserved"},
    )


def settle(db: Session, user_id: str, reference: str, actual_amount: int) -> SettleResult:
    """Book the true cost of a reserved session.

    Unused credits come back as a ``refund`` entry. Usage above the
    reservation is charged as far as the balance allows; anything left over is
    recorded as a shortfall on the extra ``debit`` entry.
    """
    _validate_amount(actual_amount, "actual_amount")
    now = datetime.now(UTC)

    with ledger_transaction(db, "settle"):
        rows = db.execute(
            update(CreditTransaction)
            .where(
                CreditTransaction.user_id == user_id,
                CreditTransaction.reference == reference,
                CreditTransaction.type == TxType.reservation.value,
            )
            .values(
                {
                    CreditTransaction.type: TxType.debit.value,
                    CreditTransaction.details: {"status": "settled", "actual_credits": actual_amount},
                    CreditTransaction.updated_at: now,
                }
            )
            .returning(CreditTransaction.id, CreditTransaction.credits)
        ).all()

        if not rows:
            settled = (
                db.query(CreditTransaction.id)
                .filter(
                    CreditTransaction.user_id == user_id,
                    CreditTransaction.reference == reference,
                    CreditTransaction.type == TxType.debit.value,
                )
                .first()
            )
            outcome = Outcome.already_processed if settled is not None else Outcome.not_found
            logger.info("Settlement for %s skipped: %s", reference, outcome.value)
            return SettleResult(outcome=outcome)

        reserved = sum(-int(r.credits) for r in rows)
        refunded = 0
        extra = 0
        shortfall = 0
        delta = actual_amount - reserved

        if delta < 0:
            refunded = -delta
            deposit(db, user_id, refunded)
            append_transaction(
                db,
                user_id,
                TxType.refund,
                refunded,
                description="Unused interview credits returned",
                reference=reference,
            )
        elif delta > 0:
            while True:
                extra = min(delta, _locked_available(db, user_id))
                if not extra:
                    break
                try:
                    _withdraw(db, user_id, extra)
                    break
                except InsufficientCreditsError:
                    # Balance moved since the read; charge what is left now.
                    continue
            shortfall = delta - extra
            append_transaction(
                db,
                user_id,
                TxType.debit,
                -extra,
                description="Interview usage above reservation",
                reference=reference,
                details={"overage_credits": delta, "shortfall_credits": shortfall},
            )
            if shortfall:
                logger.warning(
                    "Settlement for %s left %s credits uncovered for user %s",
                    reference,
                    shortfall,
                    user_id,
                )

        balance = _available(db, user_id)

    return SettleResult(
        outcome=Outcome.applied,
        reserved=reserved,
        charged=reserved - refunded + extra,
        refunded=refunded,
        shortfall=shortfall,
        balance=balance,
    )
