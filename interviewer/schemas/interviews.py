from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


InterviewType = Literal["technical", "behavioral", "problem-solving", "mixed"]


class SessionStartRequest(BaseModel):
    role: str = Field(default="software-engineer", max_length=128)
    level: str = Field(default="mid-level", max_length=64)
    type: InterviewType = "mixed"
    custom_requirements: str | None = Field(default=None, max_length=2000)
    duration_minutes: float = Field(gt=0, le=240)


class SessionStartResponse(BaseModel):
    session_id: str
    reserved_credits: int
    available_credits: int
    realtime: dict[str, Any] | None = None


class SessionCompleteRequest(BaseModel):
    duration_minutes: float = Field(ge=0, le=240)


class SessionCompleteResponse(BaseModel):
    session_id: str
    outcome: str
    reserved_credits: int = 0
    charged_credits: int = 0
    refunded_credits: int = 0
    uncovered_credits: int = 0
    available_credits: int | None = None


class AnalyzeContext(BaseModel):
    role: str | None = None
    level: str | None = None
    type: str | None = None
    focus_area: str | None = None
    current_question: str | None = None


class AnalyzeRequest(BaseModel):
    user_response: str = Field(min_length=1, max_length=20000)
    context: AnalyzeContext = Field(default_factory=AnalyzeContext)


class AnalyzeResponse(BaseModel):
    score: int
    feedback: str
    category: str
    confidence: float
    keywords: list[str]
    suggestions: list[str]
