from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class BalanceResponse(BaseModel):
    available_credits: int
    total_credits_earned: int
    total_credits_used: int


class InitializeRequest(BaseModel):
    description: str = Field(default="Welcome bonus", max_length=512)


class InitializeResponse(BaseModel):
    message: str
    initialized: bool
    credits_added: int = 0
    description: str | None = None
    balance: BalanceResponse


class TransactionOut(BaseModel):
    id: str
    type: str
    credits: int
    description: str | None = None
    package_id: str | None = None
    reference: str | None = None
    created_at: datetime


class StatsResponse(BaseModel):
    total_earned: int
    total_used: int
    available: int
    average_per_interview: int


class PackageOut(BaseModel):
    id: str
    name: str
    description: str | None = None
    credits: int
    price_cents: int
    price_dollars: str
    price_per_credit: str


class RequiredCreditsResponse(BaseModel):
    duration_minutes: float
    required_credits: int
    available_credits: int
    sufficient: bool


class PurchaseRequest(BaseModel):
    package_id: str = Field(min_length=1, max_length=64)


class PurchaseResponse(BaseModel):
    success: bool = True
    checkout_url: str
    session_id: str


class VerifyPaymentRequest(BaseModel):
    session_id: str = Field(min_length=1, max_length=255)


class VerifyPaymentResponse(BaseModel):
    session_id: str
    payment_status: str | None = None
    status: str | None = None
    amount_total: int | None = None
    currency: str | None = None
    purchase_status: str
    credits_added: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)
