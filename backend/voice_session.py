"""
Voice reminder sessions.

A VoiceSession owns one listening session. Each transcript update goes
through remote analysis first and the local parser second; the newest
usable record is published to the caller through `on_record`. Nothing is
stored until the caller confirms, at which point the record is validated and
handed to a task sink.
"""
import asyncio
import logging
import os
from datetime import date
from enum import Enum
from typing import AsyncIterable, Callable, Optional, Protocol

from models import PartialTaskRecord, Task, TaskCreate
from task_understanding import ParseFailure, attempt_remote, understand_locally

logger = logging.getLogger(__name__)

WELCOME_PROMPT = "¿Qué necesitas recordar y cuándo?"
INCOMPLETE_PROMPT = "No he podido entender completamente. Por favor, intenta nuevamente."
VALIDATION_PROMPT = "No he podido crear el recordatorio. Falta información importante."
CREATED_PROMPT = "He creado un recordatorio para {title} a las {spoken_time}."

DEFAULT_LANG = "es-ES"


class SessionState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    REMOTE_ATTEMPT = "remote_attempt"
    LOCAL_FALLBACK = "local_fallback"
    ASSEMBLED = "assembled"


class Speaker(Protocol):
    """Fire-and-forget speech playback."""

    def speak(self, text: str, lang: str) -> None:
        ...


class VoiceSessionError(Exception):
    """A confirm failure the user should hear about and retry."""

    code = "voice_session_error"

    def __init__(self, prompt: str):
        super().__init__(prompt)
        self.prompt = prompt

class IncompleteRecordError(VoiceSessionError):
    code = "incomplete_record"

class PersistenceValidationError(VoiceSessionError):
    code = "validation_failed"


class VoiceSession:
    def __init__(
        self,
        ai_service,
        on_record: Callable[[PartialTaskRecord, str], None],
        speaker: Speaker,
        lang: Optional[str] = None,
        today: Optional[date] = None,
        remote_timeout: Optional[float] = None,
    ):
        self.ai_service = ai_service
        self.on_record = on_record
        self.speaker = speaker
        self.lang = lang or os.getenv("SPEECH_LANG", DEFAULT_LANG)
        self.today = today
        self.remote_timeout = remote_timeout

        self.state = SessionState.IDLE
        self.transcript = ""
        self.record: Optional[PartialTaskRecord] = None
        self.source: Optional[str] = None
        self._version = 0
        self._published_version = 0
        self._pending: set[asyncio.Task] = set()

    @property
    def is_listening(self) -> bool:
        return self.state is not SessionState.IDLE

    def start(self) -> None:
        """Begin listening with a clean slate and greet the user."""
        if self.is_listening:
            return
        self.transcript = ""
        self.record = None
        self.source = None
        self._published_version = self._version
        self.state = SessionState.LISTENING
        self.speaker.speak(WELCOME_PROMPT, self.lang)

    def stop(self) -> None:
        """Stop listening and drop any analysis still in flight."""
        for task in self._pending:
            task.cancel()
        self._pending.clear()
        self.state = SessionState.IDLE

    async def update(self, transcript: str) -> Optional[PartialTaskRecord]:
        """
        Process one transcript update and return the record it published.

        Updates are numbered; a result for an update older than the newest
        one already published is discarded, so a slow remote answer can never
        overwrite a fresher record.
        """
        if not self.is_listening:
            raise RuntimeError("Voice session is not listening")

        self._version += 1
        version = self._version
        self.transcript = transcript
        self.state = SessionState.REMOTE_ATTEMPT

        outcome = await attempt_remote(transcript, self.ai_service, self.today, self.remote_timeout)
        if isinstance(outcome, ParseFailure):
            logger.debug("Update %d falling back to local parser: %s", version, outcome.reason)
            self.state = SessionState.LOCAL_FALLBACK
            outcome = understand_locally(transcript, self.today)

        if not self.is_listening:
            return None

        if isinstance(outcome, ParseFailure):
            # Not a reminder request (yet); keep listening
            self.state = SessionState.ASSEMBLED if self.record else SessionState.LISTENING
            return None

        if version < self._published_version:
            logger.debug("Discarding stale result for update %d (published %d)", version, self._published_version)
            return None

        self._published_version = version
        self.record = outcome.record
        self.source = outcome.source
        self.state = SessionState.ASSEMBLED
        self.on_record(outcome.record, outcome.source)
        return outcome.record

    def submit(self, transcript: str) -> asyncio.Task:
        """Schedule an update without waiting for it; newer updates may overtake it."""
        task = asyncio.create_task(self.update(transcript))
        self._pending.add(task)
        task.add_done_callback(self._update_done)
        return task

    def _update_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Transcript update failed", exc_info=task.exception())

    async def drain(self) -> None:
        """Wait until every submitted update has settled."""
        while self._pending:
            await asyncio.wait(set(self._pending))

    async def listen(self, transcripts: AsyncIterable[str]) -> None:
        """
        Consume a speech capture stream until it ends or the session is stopped.
        Only the latest transcript matters; each one replaces the previous.
        """
        self.start()
        async for transcript in transcripts:
            if not self.is_listening:
                break
            self.submit(transcript)
        await self.drain()

    def confirm(self, sink: Callable[[TaskCreate], Task]) -> Task:
        """
        Validate the current record and hand it to the sink.
        The session stops after a successful confirm.
        """
        record = self.record
        if record is None or not record.is_complete():
            self.speaker.speak(INCOMPLETE_PROMPT, self.lang)
            raise IncompleteRecordError(INCOMPLETE_PROMPT)

        try:
            task = sink(TaskCreate(**record.model_dump()))
        except ValueError as e:  # pydantic.ValidationError, or a storage constraint from create_task_db
            logger.warning("Task rejected on confirm: %s", e)
            self.speaker.speak(VALIDATION_PROMPT, self.lang)
            raise PersistenceValidationError(VALIDATION_PROMPT) from e

        self.speaker.speak(
            CREATED_PROMPT.format(title=task.title, spoken_time=task.time.replace(":", " y ")),
            self.lang,
        )
        self.stop()
        return task
