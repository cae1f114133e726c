from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from interviewer.infrastructure.db import Base


UTC = timezone.utc


class CreditAccount(Base):
    """Materialized balance of a user's credit ledger."""

    __tablename__ = "user_credits"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    available_credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_credits_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_credits_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC), nullable=False)

    __table_args__ = (
        CheckConstraint("available_credits >= 0", name="ck_user_credits_available_non_negative"),
    )
