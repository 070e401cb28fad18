import logging
import os
from datetime import date
from typing import Optional

import anthropic

from models import AIAnalysisResult, AssistantDocument, DEFAULT_MODEL
from prompts import (
    TASK_EXTRACTION_PROMPT,
    NATURAL_RESPONSE_PROMPT,
    NATURAL_RESPONSE_REQUEST,
    CONTEXT_ASSISTANT_PROMPT,
)

logger = logging.getLogger(__name__)

FALLBACK_CONFIRMATION = "Entendido. He creado tu recordatorio."
FALLBACK_NO_AI = "No puedo responder a esa pregunta sin acceso a la IA."
FALLBACK_CONTEXT_ERROR = "Lo siento, no puedo responder a esa pregunta en este momento."

PLACEHOLDER_API_KEY = "your-api-key-here"


class AIService:
    """
    Text analysis backed by Claude.

    Every public method returns an AIAnalysisResult and never raises for API
    problems: when the key is missing or the call fails, a fallback result is
    returned instead and the caller decides what to do with it.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        client=None,
    ):
        if api_key is None:
            api_key = os.getenv("ANTHROPIC_API_KEY", "").strip()
        self.model = model or os.getenv("ANTHROPIC_MODEL", DEFAULT_MODEL).strip()
        if timeout is None:
            timeout = float(os.getenv("AI_TIMEOUT_SECONDS", "10"))
        self.timeout = timeout

        if client is None and api_key and api_key != PLACEHOLDER_API_KEY:
            client = anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout, max_retries=0)
        self.client = client

    @property
    def enabled(self) -> bool:
        return self.client is not None

    async def _complete(
        self,
        system: str,
        user: str,
        model: Optional[str] = None,
        temperature: float = 0.2,
        max_tokens: int = 256,
    ) -> str:
        response = await self.client.messages.create(
            model=model or self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system,
            messages=[{"role": "user", "content": user}],
        )
        return "".join(getattr(block, "text", "") for block in response.content).strip()

    async def enhance_task_understanding(self, transcript: str, today: Optional[date] = None) -> AIAnalysisResult:
        """Ask for a JSON task extraction of a spoken transcript."""
        if not self.enabled:
            return AIAnalysisResult(text=transcript, success=False, source="fallback")

        today = today or date.today()
        system_prompt = TASK_EXTRACTION_PROMPT.format(today=today.strftime("%Y-%m-%d"))
        try:
            text = await self._complete(system_prompt, transcript)
        except anthropic.APIError as e:
            logger.warning("Task analysis failed: %s", e)
            return AIAnalysisResult(text=transcript, success=False, source="fallback")

        logger.debug("Task analysis response: %s", text)
        return AIAnalysisResult(text=text, success=True, source="remote")

    async def generate_natural_response(self, context: str) -> AIAnalysisResult:
        """Short, warm confirmation that a reminder was created."""
        if not self.enabled:
            return AIAnalysisResult(text=FALLBACK_CONFIRMATION, success=True, source="fallback")

        try:
            text = await self._complete(
                NATURAL_RESPONSE_PROMPT,
                NATURAL_RESPONSE_REQUEST.format(context=context),
                temperature=0.7,
                max_tokens=100,
            )
        except anthropic.APIError as e:
            logger.warning("Natural response generation failed: %s", e)
            return AIAnalysisResult(text=FALLBACK_CONFIRMATION, success=True, source="fallback")

        return AIAnalysisResult(text=text, success=True, source="remote")

    async def generate_with_context(
        self,
        query: str,
        context: str,
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 500,
    ) -> AIAnalysisResult:
        """Answer a question grounded on assistant instructions and documents."""
        if not self.enabled:
            return AIAnalysisResult(text=FALLBACK_NO_AI, success=False, source="fallback")

        try:
            text = await self._complete(
                CONTEXT_ASSISTANT_PROMPT.format(context=context),
                query,
                model=model,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except anthropic.APIError as e:
            logger.warning("Context answer failed: %s", e)
            return AIAnalysisResult(text=FALLBACK_CONTEXT_ERROR, success=False, source="fallback")

        return AIAnalysisResult(text=text, success=True, source="remote")


def build_assistant_context(instructions: str, documents: list[AssistantDocument]) -> str:
    """Assistant instructions followed by one block per document that has content."""
    context = instructions or ""
    with_content = [doc for doc in documents if doc.content]
    if with_content:
        context += "\n\nDatos proporcionados para referencia:\n\n"
        for doc in with_content:
            context += f"--- Documento: {doc.name} ---\n{doc.content}\n\n"
    return context
