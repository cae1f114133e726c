from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from interviewer.infrastructure.db import Base


UTC = timezone.utc


class CreditTransaction(Base):
    """Ledger entry. Only pending purchases and reservations are ever rewritten."""

    __tablename__ = "credit_transactions"

    class Type(str, PyEnum):
        grant = "grant"
        purchase_pending = "purchase_pending"
        purchase = "purchase"
        purchase_failed = "purchase_failed"
        debit = "debit"
        reservation = "reservation"
        refund = "refund"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description: Mapped[str | None] = mapped_column(String(512), nullable=True)
    package_id: Mapped[str | None] = mapped_column(String(64), ForeignKey("credit_packages.id"), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(128), nullable=True)
    external_reference: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    details: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_credit_transactions_user_created", "user_id", "created_at"),
        Index("ix_credit_transactions_type_external", "type", "external_reference"),
        Index("ix_credit_transactions_user_reference", "user_id", "reference"),
        Index(
            "uq_credit_transactions_open_reservation",
            "user_id",
            "reference",
            unique=True,
            sqlite_where=text("type = 'reservation'"),
            postgresql_where=text("type = 'reservation'"),
        ),
    )
