from __future__ import annotations

import logging
from typing import Any

import httpx

from interviewer.core.config import get_settings


logger = logging.getLogger(__name__)


class RealtimeSessionError(Exception):
    pass


def build_instructions(role: str, level: str, interview_type: str, custom_requirements: str | None = None) -> str:
    lines = [
        f"You are an expert interviewer conducting a {interview_type} interview for a {level} {role} position.",
        "",
        "Your role is to:",
        "- Start the conversation immediately with a warm greeting and introduction",
        "- Conduct a natural, conversational interview",
        f"- Ask relevant questions based on the role ({role}) and level ({level})",
        "- Ask follow-up questions to explore the candidate's experience and skills",
        "- Be professional, friendly, and encouraging",
        "",
        "Focus on:",
        f"- Technical skills relevant to {role}",
        "- Problem-solving abilities",
        "- Communication skills",
        f"- Experience level appropriate for a {level} position",
    ]
    if custom_requirements:
        lines.append(f"- Specific requirements: {custom_requirements}")
    lines += [
        "",
        "This is a real-time voice conversation. Speak naturally in English,",
        "ask one question at a time and wait for the candidate's response.",
    ]
    return "\n".join(lines)


def create_realtime_session(
    *,
    role: str,
    level: str,
    interview_type: str,
    custom_requirements: str | None = None,
) -> dict[str, Any] | None:
    """Request an ephemeral realtime session; ``None`` when no API key is set."""
    settings = get_settings()
    if not settings.openai_api_key:
        return None

    payload = {
        "model": settings.openai_realtime_model,
        "voice": settings.openai_realtime_voice,
        "input_audio_format": "pcm16",
        "output_audio_format": "pcm16",
        "instructions": build_instructions(role, level, interview_type, custom_requirements),
    }
    headers = {
        "Authorization": f"Bearer {settings.openai_api_key}",
        "Content-Type": "application/json",
    }
    url = f"{settings.openai_base_url.rstrip('/')}/realtime/sessions"
    try:
        with httpx.Client(timeout=15.0) as client:
            resp = client.post(url, json=payload, headers=headers)
    except httpx.HTTPError as exc:
        logger.error("Realtime session request failed: %s", exc)
        raise RealtimeSessionError("Realtime session request failed") from exc
    if resp.status_code >= 400:
        logger.error("Realtime session request returned %s: %s", resp.status_code, resp.text[:500])
        raise RealtimeSessionError(f"Realtime session request returned {resp.status_code}")
    return resp.json()
