"""
Local heuristic parser for spoken reminder requests.

Turns a transcript like "recuérdame tomar mi medicina a las 9pm" into a
PartialTaskRecord. Used whenever the remote AI analysis is unavailable or
returns something unusable.
"""
import logging
import re
from datetime import date, timedelta
from typing import Optional

from models import (
    PartialTaskRecord,
    CATEGORY_MEDICINE,
    CATEGORY_MEAL,
    CATEGORY_GENERAL,
    FREQUENCY_ONCE,
)

logger = logging.getLogger(__name__)

# Order matters for title extraction: the first phrase followed by whitespace wins.
TRIGGER_PHRASES = (
    "recordatorio para",
    "recuérdame",
    "recuerdame",
    "recordarme",
    "recordar",
    "recordatorio",
)

TOMORROW_MARKERS = ("mañana", "tomorrow")

MEDICINE_KEYWORDS = ("medicin", "medicamento", "pastilla", "píldora", "pildora")
MEAL_KEYWORDS = (
    "comer",
    "comida",
    "almuerzo",
    "almorzar",
    "desayuno",
    "desayunar",
    "cena",
    "merienda",
    "merendar",
)

DEFAULT_TITLES = {
    CATEGORY_MEDICINE: "Tomar medicina",
    CATEGORY_MEAL: "Hora de comer",
    CATEGORY_GENERAL: "Nuevo recordatorio",
}

# Hour, optional ":MM" or " MM", optional am/pm marker
_TIME_CORE = r"(?<!\d)(\d{1,2})(?:[:\s](\d{2}))?(?!\d)\s*(a\.\s?m\.|p\.\s?m\.|[ap]m\b)?"

TIME_RE = re.compile(_TIME_CORE, re.IGNORECASE)
TITLE_TIME_SUFFIX_RE = re.compile(
    r"(?:^|\s+)(?:(?:a\s+las?|at)\s+)?" + _TIME_CORE + r"[\s.,;:!?]*$",
    re.IGNORECASE,
)
INTENT_RE = re.compile("|".join(re.escape(p) for p in TRIGGER_PHRASES), re.IGNORECASE)
TITLE_SPLIT_RES = [
    re.compile(r"\b" + re.escape(p) + r"\s+", re.IGNORECASE) for p in TRIGGER_PHRASES
]

_TITLE_STRIP_CHARS = " \t\n.,;:!?¡¿"


def normalize(transcript: str) -> str:
    """Lowercase copy of the transcript with collapsed whitespace, for matching only."""
    return " ".join(transcript.lower().split())


def detect_intent(normalized: str) -> bool:
    return INTENT_RE.search(normalized) is not None


def extract_time(normalized: str) -> str:
    """
    Return the first time expression as HH:MM (24h), or "" if there is none.
    A pm marker adds 12 hours unless the hour is already 12.
    Without a marker the digits are taken as 24h.
    """
    match = TIME_RE.search(normalized)
    if not match:
        return ""

    hour = int(match.group(1))
    minute = match.group(2) or "00"
    marker = (match.group(3) or "").lower().replace(".", "").replace(" ", "")

    if marker == "pm" and hour < 12:
        hour += 12

    return f"{hour:02d}:{minute}"


def extract_date(normalized: str, today: Optional[date] = None) -> str:
    today = today or date.today()
    if any(marker in normalized for marker in TOMORROW_MARKERS):
        return (today + timedelta(days=1)).strftime("%Y-%m-%d")
    return today.strftime("%Y-%m-%d")


def extract_category(normalized: str) -> str:
    # Medicine is checked first so it wins when both appear
    if any(keyword in normalized for keyword in MEDICINE_KEYWORDS):
        return CATEGORY_MEDICINE
    if any(keyword in normalized for keyword in MEAL_KEYWORDS):
        return CATEGORY_MEAL
    return CATEGORY_GENERAL


def extract_title(transcript: str, category: str) -> str:
    """
    Take everything after the first trigger phrase, keeping the speaker's
    capitalization, and drop a trailing time expression like "a las 9pm".
    Falls back to a canned title for the category.
    """
    title = ""
    for pattern in TITLE_SPLIT_RES:
        parts = pattern.split(transcript, maxsplit=1)
        if len(parts) > 1:
            title = TITLE_TIME_SUFFIX_RE.sub("", parts[1])
            title = title.strip(_TITLE_STRIP_CHARS)
            break

    return title or DEFAULT_TITLES[category]


def parse_task_from_speech(transcript: str, today: Optional[date] = None) -> Optional[PartialTaskRecord]:
    """
    Parse a transcript into a task record.
    Returns None when the utterance is not a reminder request.
    Locally parsed tasks are always one-off; recurrence is never inferred.
    """
    normalized = normalize(transcript)
    if not detect_intent(normalized):
        logger.debug("No reminder intent in transcript: %r", transcript)
        return None

    category = extract_category(normalized)
    return PartialTaskRecord(
        title=extract_title(transcript, category),
        time=extract_time(normalized),
        date=extract_date(normalized, today),
        category=category,
        frequency=FREQUENCY_ONCE,
    )
