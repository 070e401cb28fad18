"""
Tests for speech_parser.py - intent detection, field extraction and task assembly.
"""
import pytest
import sys
import os
from datetime import date

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from speech_parser import (
    normalize,
    detect_intent,
    extract_time,
    extract_date,
    extract_category,
    extract_title,
    parse_task_from_speech,
)

TODAY = date(2025, 3, 14)


class TestIntentDetection:
    """Only reminder requests produce a task."""

    @pytest.mark.parametrize("text", [
        "recuérdame llamar a mi hija",
        "Recordatorio para la cita del médico",
        "quiero recordar regar las plantas",
        "por favor recordarme la pastilla",
        "recuerdame sacar la basura",
    ])
    def test_trigger_phrases_detected(self, text):
        assert detect_intent(normalize(text)) is True

    @pytest.mark.parametrize("text", [
        "hola, ¿cómo estás?",
        "qué tiempo hace hoy",
        "",
    ])
    def test_other_utterances_not_detected(self, text):
        assert detect_intent(normalize(text)) is False

    def test_no_intent_returns_none(self):
        """Greeting produces no record."""
        assert parse_task_from_speech("hola, ¿cómo estás?", TODAY) is None

    def test_empty_transcript_returns_none(self):
        assert parse_task_from_speech("", TODAY) is None


class TestTimeExtraction:
    """Times become HH:MM in 24h format."""

    @pytest.mark.parametrize("hour", range(1, 12))
    def test_pm_adds_twelve(self, hour):
        assert extract_time(f"a las {hour}pm") == f"{hour + 12:02d}:00"

    def test_pm_with_minutes(self):
        assert extract_time("a las 3:45 pm") == "15:45"

    def test_dotted_pm_marker(self):
        assert extract_time("a las 7 p.m.") == "19:00"

    def test_twelve_pm_stays_twelve(self):
        assert extract_time("a las 12pm") == "12:00"

    def test_am_is_not_shifted(self):
        assert extract_time("a las 8 am") == "08:00"

    def test_no_marker_is_literal_24h(self):
        assert extract_time("a las 18:30") == "18:30"
        assert extract_time("a las 9") == "09:00"

    def test_minutes_separated_by_space(self):
        assert extract_time("a las 9 30") == "09:30"

    def test_leftmost_match_wins(self):
        assert extract_time("a las 8 y luego a las 10") == "08:00"

    def test_no_time_is_empty_not_midnight(self):
        assert extract_time("recuérdame llamar a maría") == ""

    def test_am_inside_word_is_not_a_marker(self):
        """'amigos' must not be read as an am marker."""
        assert extract_time("a las 9 amigos") == "09:00"


class TestDateExtraction:

    def test_defaults_to_today(self):
        assert extract_date("recuérdame llamar", TODAY) == "2025-03-14"

    def test_tomorrow_marker(self):
        assert extract_date("recuérdame mañana llamar", TODAY) == "2025-03-15"

    def test_english_tomorrow_marker(self):
        assert extract_date("remind me tomorrow", TODAY) == "2025-03-15"

    def test_tomorrow_across_month_end(self):
        assert extract_date("mañana", date(2025, 1, 31)) == "2025-02-01"

    def test_uses_current_date_when_not_given(self):
        assert extract_date("recuérdame llamar") == date.today().strftime("%Y-%m-%d")


class TestCategoryExtraction:

    @pytest.mark.parametrize("text", ["tomar la medicina", "la pastilla azul", "mi medicamento", "una píldora"])
    def test_medicine(self, text):
        assert extract_category(text) == "medicine"

    @pytest.mark.parametrize("text", ["almorzar", "la comida", "preparar la cena", "desayuno", "merienda"])
    def test_meal(self, text):
        assert extract_category(text) == "meal"

    def test_general_default(self):
        assert extract_category("llamar a maría") == "general"

    def test_medicine_wins_over_meal(self):
        assert extract_category("tomar la pastilla antes de comer") == "medicine"


class TestTitleExtraction:

    def test_keeps_original_capitalization(self):
        title = extract_title("Recuérdame llamar a María a las 5pm", "general")
        assert title == "llamar a María"

    def test_strips_trailing_time(self):
        assert extract_title("recordatorio para almorzar a las 12:30", "meal") == "almorzar"

    def test_strips_trailing_punctuation(self):
        assert extract_title("recuérdame regar las plantas.", "general") == "regar las plantas"

    def test_uppercase_trigger_still_splits(self):
        """Casing of the trigger phrase doesn't matter."""
        assert extract_title("RECUÉRDAME llamar al médico", "general") == "llamar al médico"

    def test_only_time_after_trigger_uses_default(self):
        assert extract_title("recuérdame a las 9pm", "medicine") == "Tomar medicina"

    @pytest.mark.parametrize("category,expected", [
        ("medicine", "Tomar medicina"),
        ("meal", "Hora de comer"),
        ("general", "Nuevo recordatorio"),
    ])
    def test_default_titles(self, category, expected):
        assert extract_title("un recordatorio", category) == expected

    def test_recordatorio_para_preferred_over_recordatorio(self):
        assert extract_title("pon un recordatorio para ir al banco", "general") == "ir al banco"


class TestParseTaskFromSpeech:
    """End-to-end local parsing."""

    def test_medicine_example(self):
        record = parse_task_from_speech("recuérdame tomar mi medicina a las 9pm", TODAY)

        assert record.title == "tomar mi medicina"
        assert record.time == "21:00"
        assert record.date == "2025-03-14"
        assert record.category == "medicine"
        assert record.frequency == "once"

    def test_meal_example(self):
        record = parse_task_from_speech("recordatorio para almorzar a las 12:30", TODAY)

        assert record.title == "almorzar"
        assert record.time == "12:30"
        assert record.date == "2025-03-14"
        assert record.category == "meal"
        assert record.frequency == "once"

    def test_tomorrow_example(self):
        record = parse_task_from_speech("recuérdame mañana llamar a Pedro a las 10", TODAY)

        assert record.date == "2025-03-15"
        assert record.time == "10:00"
        assert record.title == "mañana llamar a Pedro"

    def test_frequency_never_inferred(self):
        record = parse_task_from_speech("recuérdame tomar la pastilla todos los días a las 8", TODAY)
        assert record.frequency == "once"

    def test_missing_time_is_empty(self):
        record = parse_task_from_speech("recuérdame llamar a María", TODAY)
        assert record.time == ""
        assert record.is_usable()
        assert not record.is_complete()

    def test_title_never_empty(self):
        record = parse_task_from_speech("recordatorio", TODAY)
        assert record.title == "Nuevo recordatorio"

    def test_idempotent(self):
        text = "recuérdame tomar mi medicina a las 9pm"
        assert parse_task_from_speech(text, TODAY) == parse_task_from_speech(text, TODAY)
