from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from interviewer.core.security import get_current_user_id
from interviewer.infrastructure.db import get_db
from interviewer.schemas.interviews import (
    AnalyzeRequest,
    AnalyzeResponse,
    SessionCompleteRequest,
    SessionCompleteResponse,
    SessionStartRequest,
    SessionStartResponse,
)
from interviewer.services import credits, realtime, scoring

router = APIRouter(prefix="/interviews", tags=["interviews"])
logger = logging.getLogger(__name__)


def _need_credits(required: int, available: int) -> HTTPException:
    return HTTPException(
        status_code=402,
        detail=(
            f"Insufficient credits. You need {required} credits for this interview "
            f"but have {available}. Purchase more credits to continue."
        ),
    )


@router.post("/sessions", response_model=SessionStartResponse, status_code=201)
def start_session(
    payload: SessionStartRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    required = credits.compute_required_credits(payload.duration_minutes)
    if not credits.check_sufficient(db, user_id, required):
        raise _need_credits(required, credits.get_balance(db, user_id).available_credits)

    session_id = str(uuid.uuid4())
    try:
        reservation = credits.reserve(
            db,
            user_id,
            required,
            reference=session_id,
            description=f"{payload.type} interview for {payload.role} ({payload.duration_minutes:g} min)",
        )
    except credits.InsufficientCreditsError as exc:
        raise _need_credits(exc.required, exc.available)

    try:
        session = realtime.create_realtime_session(
            role=payload.role,
            level=payload.level,
            interview_type=payload.type,
            custom_requirements=payload.custom_requirements,
        )
    except realtime.RealtimeSessionError:
        credits.settle(db, user_id, session_id, 0)
        raise HTTPException(status_code=502, detail="Failed to create realtime session")

    logger.info("Interview session %s started for user %s (%s credits held)", session_id, user_id, required)
    return SessionStartResponse(
        session_id=session_id,
        reserved_credits=required,
        available_credits=reservation.balance,
        realtime=session,
    )


@router.post("/sessions/{session_id}/complete", response_model=SessionCompleteResponse)
def complete_session(
    session_id: str,
    payload: SessionCompleteRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    actual = credits.compute_required_credits(payload.duration_minutes)
    result = credits.settle(db, user_id, session_id, actual)
    if result.outcome is credits.Outcome.not_found:
        raise HTTPException(status_code=404, detail="Interview session not found")
    return SessionCompleteResponse(
        session_id=session_id,
        outcome=result.outcome.value,
        reserved_credits=result.reserved,
        charged_credits=result.charged,
        refunded_credits=result.refunded,
        uncovered_credits=result.shortfall,
        available_credits=result.balance,
    )


@router.post("/analyze-response", response_model=AnalyzeResponse)
def analyze_response(payload: AnalyzeRequest, user_id: str = Depends(get_current_user_id)):
    try:
        analysis = scoring.analyze_response(
            payload.user_response,
            interview_type=payload.context.type,
            level=payload.context.level,
        )
    except ValueError:
        raise HTTPException(status_code=400, detail="Empty response provided")
    return AnalyzeResponse(
        score=analysis.score,
        feedback=analysis.feedback,
        category=analysis.category,
        confidence=analysis.confidence,
        keywords=analysis.keywords,
        suggestions=analysis.suggestions,
    )
