"""
Remote-first, local-fallback understanding of reminder transcripts.

The AI analysis is best effort and untrusted: anything it returns is parsed
defensively here and mapped onto a PartialTaskRecord, and every way it can go
wrong ends up as a ParseFailure so the caller can fall back to the local
heuristic parser with a single branch.
"""
import asyncio
import json
import logging
from datetime import date, timedelta
from typing import Literal, Optional, Union

from pydantic import BaseModel

from models import (
    AIAnalysisResult,
    PartialTaskRecord,
    CATEGORY_MEDICINE,
    CATEGORY_MEAL,
    CATEGORY_GENERAL,
    FREQUENCY_ONCE,
    FREQUENCY_DAILY,
    FREQUENCY_WEEKLY,
    FREQUENCY_MONTHLY,
)
from speech_parser import extract_time, normalize, parse_task_from_speech

logger = logging.getLogger(__name__)

# Accepted key names per canonical field, checked in order
FIELD_KEYS = {
    "title": ("title", "titulo", "título", "tarea"),
    "date": ("date", "fecha"),
    "time": ("time", "hora"),
    "category": ("category", "categoria", "categoría"),
    "frequency": ("frequency", "frecuencia"),
}

CATEGORY_VALUES = {
    "medicine": CATEGORY_MEDICINE,
    "medicina": CATEGORY_MEDICINE,
    "medicamento": CATEGORY_MEDICINE,
    "meal": CATEGORY_MEAL,
    "comida": CATEGORY_MEAL,
    "general": CATEGORY_GENERAL,
}

FREQUENCY_VALUES = {
    "once": FREQUENCY_ONCE,
    "una vez": FREQUENCY_ONCE,
    "daily": FREQUENCY_DAILY,
    "diario": FREQUENCY_DAILY,
    "diaria": FREQUENCY_DAILY,
    "weekly": FREQUENCY_WEEKLY,
    "semanal": FREQUENCY_WEEKLY,
    "monthly": FREQUENCY_MONTHLY,
    "mensual": FREQUENCY_MONTHLY,
}

RELATIVE_DAYS = {"hoy": 0, "today": 0, "mañana": 1, "tomorrow": 1}

REASON_NOT_CONFIGURED = "remote analysis not configured"
REASON_TIMEOUT = "remote analysis timed out"
REASON_NO_INTENT = "no reminder intent"
REASON_REMOTE_ERROR = "remote analysis failed"


class ParseSuccess(BaseModel):
    record: PartialTaskRecord
    source: Literal["remote", "local"]

class ParseFailure(BaseModel):
    reason: str

ParseOutcome = Union[ParseSuccess, ParseFailure]


def strip_code_fence(text: str) -> str:
    """Remove a surrounding ```json ... ``` block if the model added one."""
    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = "\n".join(lines)
    return text


def _first_value(payload: dict, field: str) -> str:
    for key in FIELD_KEYS[field]:
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def _normalize_time(value: str) -> str:
    if not value:
        return ""
    time = extract_time(normalize(value))
    if not time:
        return ""
    hour, minute = (int(part) for part in time.split(":"))
    if hour > 23 or minute > 59:
        return ""
    return time


def _normalize_date(value: str, today: date) -> str:
    if not value:
        return ""
    relative = RELATIVE_DAYS.get(normalize(value))
    if relative is not None:
        return (today + timedelta(days=relative)).strftime("%Y-%m-%d")
    try:
        # Accepts plain dates and the date part of ISO datetimes
        return date.fromisoformat(value[:10]).strftime("%Y-%m-%d")
    except ValueError:
        return ""


def interpret_analysis(result: AIAnalysisResult, today: Optional[date] = None) -> ParseOutcome:
    """Map an AI analysis payload onto a task record, or explain why it can't be used."""
    if not result.success:
        return ParseFailure(reason=f"remote analysis unavailable ({result.source})")

    try:
        payload = json.loads(strip_code_fence(result.text))
    except json.JSONDecodeError:
        logger.warning("Remote analysis returned non-JSON payload: %r", result.text[:200])
        return ParseFailure(reason="payload is not JSON")

    if not isinstance(payload, dict):
        return ParseFailure(reason="payload is not a JSON object")

    today = today or date.today()
    record = PartialTaskRecord(
        title=_first_value(payload, "title"),
        time=_normalize_time(_first_value(payload, "time")),
        date=_normalize_date(_first_value(payload, "date"), today),
        category=CATEGORY_VALUES.get(_first_value(payload, "category").lower(), CATEGORY_GENERAL),
        frequency=FREQUENCY_VALUES.get(_first_value(payload, "frequency").lower(), FREQUENCY_ONCE),
    )
    if not record.is_usable():
        logger.info("Remote analysis payload is missing a title or a date/time: %s", payload)
        return ParseFailure(reason="payload lacks a title and a date or time")

    return ParseSuccess(record=record, source="remote")


async def attempt_remote(
    transcript: str,
    ai_service,
    today: Optional[date] = None,
    timeout: Optional[float] = None,
) -> ParseOutcome:
    """First stage: ask the AI service, bounded by a timeout."""
    if ai_service is None or not ai_service.enabled:
        return ParseFailure(reason=REASON_NOT_CONFIGURED)

    if timeout is None:
        timeout = ai_service.timeout
    try:
        result = await asyncio.wait_for(
            ai_service.enhance_task_understanding(transcript, today=today),
            timeout,
        )
    except asyncio.TimeoutError:
        logger.warning("Remote analysis timed out after %ss", timeout)
        return ParseFailure(reason=REASON_TIMEOUT)
    except Exception as e:
        logger.warning("Remote analysis raised %s: %s", type(e).__name__, e)
        return ParseFailure(reason=REASON_REMOTE_ERROR)

    return interpret_analysis(result, today)


def understand_locally(transcript: str, today: Optional[date] = None) -> ParseOutcome:
    """Second stage: the heuristic parser."""
    record = parse_task_from_speech(transcript, today)
    if record is None:
        return ParseFailure(reason=REASON_NO_INTENT)
    return ParseSuccess(record=record, source="local")


async def understand_transcript(
    transcript: str,
    ai_service,
    today: Optional[date] = None,
    timeout: Optional[float] = None,
) -> ParseOutcome:
    outcome = await attempt_remote(transcript, ai_service, today, timeout)
    if isinstance(outcome, ParseSuccess):
        return outcome

    logger.debug("Using local parser: %s", outcome.reason)
    return understand_locally(transcript, today)
