"""
Tests for ai_service.py - configuration, prompts sent to Claude and fallbacks.
"""
import asyncio
import pytest
import sys
import os
from datetime import date

import anthropic
import httpx

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models import AssistantDocument
from ai_service import (
    AIService,
    build_assistant_context,
    FALLBACK_CONFIRMATION,
    FALLBACK_NO_AI,
    FALLBACK_CONTEXT_ERROR,
)


def connection_error():
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    return anthropic.APIConnectionError(request=request)


def document(doc_id, name, content):
    return AssistantDocument(id=doc_id, name=name, file_type="txt", content=content,
                             created_at="2025-03-14T09:00:00")


class TestConfiguration:

    def test_no_key_disables(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        assert not AIService().enabled

    def test_placeholder_key_disables(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "your-api-key-here")
        assert not AIService().enabled

    def test_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
        monkeypatch.setenv("ANTHROPIC_MODEL", "claude-haiku-4-5")
        monkeypatch.setenv("AI_TIMEOUT_SECONDS", "3")

        service = AIService()

        assert service.enabled
        assert isinstance(service.client, anthropic.AsyncAnthropic)
        assert service.model == "claude-haiku-4-5"
        assert service.timeout == 3.0

    def test_default_model(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_MODEL", raising=False)
        assert AIService(api_key="").model == "claude-sonnet-4-5"


class TestEnhanceTaskUnderstanding:

    def test_sends_transcript_and_date(self, fake_ai):
        service, messages = fake_ai('{"title": "Pastilla"}')

        result = asyncio.run(service.enhance_task_understanding("recuérdame la pastilla", date(2025, 3, 14)))

        assert result.text == '{"title": "Pastilla"}'
        assert result.success is True
        assert result.source == "remote"
        call = messages.calls[0]
        assert call["model"] == "test-model"
        assert call["messages"] == [{"role": "user", "content": "recuérdame la pastilla"}]
        assert "La fecha de hoy es: 2025-03-14" in call["system"]

    def test_disabled_echoes_transcript(self, offline_ai):
        result = asyncio.run(offline_ai.enhance_task_understanding("recuérdame algo"))

        assert result.text == "recuérdame algo"
        assert result.success is False
        assert result.source == "fallback"

    def test_api_error_echoes_transcript(self, fake_ai):
        service, _ = fake_ai(connection_error())

        result = asyncio.run(service.enhance_task_understanding("recuérdame algo"))

        assert result.success is False
        assert result.text == "recuérdame algo"


class TestNaturalResponse:

    def test_remote_response(self, fake_ai):
        service, messages = fake_ai("¡Listo! Te avisaré a las nueve.")

        result = asyncio.run(service.generate_natural_response("pastilla a las 9"))

        assert result.text == "¡Listo! Te avisaré a las nueve."
        assert result.source == "remote"
        assert "pastilla a las 9" in messages.calls[0]["messages"][0]["content"]
        assert messages.calls[0]["max_tokens"] == 100

    @pytest.mark.parametrize("reply", [None, "error"])
    def test_fallback_is_still_a_success(self, fake_ai, offline_ai, reply):
        service = offline_ai if reply is None else fake_ai(connection_error())[0]

        result = asyncio.run(service.generate_natural_response("pastilla a las 9"))

        assert result.text == FALLBACK_CONFIRMATION
        assert result.success is True
        assert result.source == "fallback"


class TestGenerateWithContext:

    def test_uses_given_settings(self, fake_ai):
        service, messages = fake_ai("Toma Enalapril.")

        result = asyncio.run(service.generate_with_context(
            "¿Qué tomo?", "Eres amable.", model="claude-haiku-4-5", temperature=0.1, max_tokens=50,
        ))

        assert result.text == "Toma Enalapril."
        call = messages.calls[0]
        assert call["model"] == "claude-haiku-4-5"
        assert call["temperature"] == 0.1
        assert call["max_tokens"] == 50
        assert "Eres amable." in call["system"]

    def test_disabled(self, offline_ai):
        result = asyncio.run(offline_ai.generate_with_context("¿Qué tomo?", ""))
        assert (result.text, result.success) == (FALLBACK_NO_AI, False)

    def test_api_error(self, fake_ai):
        service, _ = fake_ai(connection_error())

        result = asyncio.run(service.generate_with_context("¿Qué tomo?", ""))

        assert (result.text, result.success, result.source) == (FALLBACK_CONTEXT_ERROR, False, "fallback")


class TestBuildAssistantContext:

    def test_instructions_only(self):
        assert build_assistant_context("Sé breve.", []) == "Sé breve."

    def test_documents_appended(self):
        context = build_assistant_context("Sé breve.", [
            document(1, "Medicinas", "Enalapril por la mañana"),
            document(2, "Vacío", ""),
            document(3, "Comidas", "Sin sal"),
        ])

        assert context == (
            "Sé breve.\n\nDatos proporcionados para referencia:\n\n"
            "--- Documento: Medicinas ---\nEnalapril por la mañana\n\n"
            "--- Documento: Comidas ---\nSin sal\n\n"
        )
