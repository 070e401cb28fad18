from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.websockets import WebSocketState
import asyncio
import logging
import os
from dotenv import load_dotenv

from models import (
    Task,
    TaskCreate,
    TaskUpdate,
    AIAnalysisResult,
    AnalyzeRequest,
    RespondRequest,
    AssistantConfig,
    AssistantConfigUpdate,
    AssistantTestRequest,
    AssistantDocument,
    DocumentCreate,
    VoiceParseRequest,
)
from database import (
    init_db,
    get_tasks as get_tasks_db,
    get_task as get_task_db,
    create_task_db,
    update_task_db,
    delete_task_db,
    get_upcoming_tasks,
    get_assistant_config,
    save_assistant_config,
    get_documents,
    get_document,
    get_documents_by_ids,
    create_document_db,
    delete_document_db,
    touch_documents,
)
from ai_service import AIService, build_assistant_context
from task_understanding import ParseSuccess, understand_transcript
from voice_session import VoiceSession, VoiceSessionError

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Startup
    init_db()
    yield
    # Shutdown (nothing to do)

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ai_service = AIService()


@app.get("/api/tasks")
def get_tasks() -> list[Task]:
    return get_tasks_db()


# Registered before /api/tasks/{task_id} so "upcoming" is not taken as an id
@app.get("/api/tasks/upcoming")
def get_upcoming() -> list[Task]:
    return get_upcoming_tasks()


@app.get("/api/tasks/{task_id}")
def get_task(task_id: int) -> Task:
    task = get_task_db(task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@app.post("/api/tasks", status_code=201)
def create_task(task_data: TaskCreate) -> Task:
    try:
        return create_task_db(task_data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.patch("/api/tasks/{task_id}")
def update_task(task_id: int, task_data: TaskUpdate) -> Task:
    result = update_task_db(task_id, **task_data.model_dump(exclude_unset=True))
    if not result:
        raise HTTPException(status_code=404, detail="Task not found")
    return result


@app.delete("/api/tasks/{task_id}")
def delete_task(task_id: int) -> dict:
    if not delete_task_db(task_id):
        raise HTTPException(status_code=404, detail="Task not found")
    return {"status": "deleted"}


@app.post("/api/ai/analyze")
async def analyze_text(request: AnalyzeRequest) -> AIAnalysisResult:
    """Run the raw AI task analysis; the client decides how to use it."""
    if not request.text.strip():
        raise HTTPException(status_code=400, detail="Se requiere un texto para analizar")
    return await ai_service.enhance_task_understanding(request.text)


@app.post("/api/ai/respond")
async def generate_response(request: RespondRequest) -> AIAnalysisResult:
    if not request.context.strip():
        raise HTTPException(status_code=400, detail="Se requiere un contexto para generar una respuesta")
    return await ai_service.generate_natural_response(request.context)


@app.get("/api/assistant/config")
def get_config() -> AssistantConfig:
    return get_assistant_config()


@app.put("/api/assistant/config")
def update_config(config_data: AssistantConfigUpdate) -> AssistantConfig:
    return save_assistant_config(config_data)


@app.post("/api/assistant/test")
async def test_assistant(request: AssistantTestRequest) -> dict:
    """Answer a query with the configured instructions and active documents as context."""
    if not request.query.strip():
        raise HTTPException(status_code=400, detail="Se requiere una consulta para probar el asistente")

    config = get_assistant_config()
    documents = get_documents_by_ids(config.active_documents)
    context = build_assistant_context(config.instructions, documents)

    result = await ai_service.generate_with_context(
        request.query,
        context,
        model=config.model,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
    )

    touch_documents(doc.id for doc in documents)

    return {"response": result.text, "success": result.success, "source": result.source}


@app.get("/api/documents")
def list_documents() -> list[AssistantDocument]:
    return get_documents()


@app.get("/api/documents/{document_id}")
def read_document(document_id: int) -> AssistantDocument:
    document = get_document(document_id)
    if not document:
        raise HTTPException(status_code=404, detail="Document not found")
    return document


@app.post("/api/documents", status_code=201)
def create_document(document: DocumentCreate) -> AssistantDocument:
    return create_document_db(document)


@app.delete("/api/documents/{document_id}")
def delete_document(document_id: int) -> dict:
    if not delete_document_db(document_id):
        raise HTTPException(status_code=404, detail="Document not found")
    return {"status": "deleted"}


@app.post("/api/voice/parse")
async def parse_voice(request: VoiceParseRequest) -> dict:
    """One-shot understanding of a finished transcript."""
    outcome = await understand_transcript(request.transcript, ai_service)
    if isinstance(outcome, ParseSuccess):
        return {"task": outcome.record.model_dump(), "source": outcome.source}
    return {"task": None, "source": None, "reason": outcome.reason}


class WebSocketSpeaker:
    """Playback happens in the browser; we only queue what it should say."""

    def __init__(self, outbox: asyncio.Queue):
        self.outbox = outbox

    def speak(self, text: str, lang: str) -> None:
        self.outbox.put_nowait({"type": "speak", "text": text, "lang": lang})


async def _send_outbox(websocket: WebSocket, outbox: asyncio.Queue) -> None:
    # Keeps consuming after a failed send so outbox.join() always returns
    connected = True
    while True:
        message = await outbox.get()
        try:
            if connected:
                await websocket.send_json(message)
        except Exception as e:
            connected = False
            logger.warning("Voice session send failed, dropping further messages: %s", e)
        finally:
            outbox.task_done()


@app.websocket("/api/voice/session")
async def voice_session(websocket: WebSocket):
    """
    Live voice session.

    Client messages: {"type": "transcript", "text": ...}, {"type": "confirm"}, {"type": "cancel"}.
    Server messages: "speak", "task" (latest parsed record), "created" and "error".
    """
    await websocket.accept()
    outbox: asyncio.Queue = asyncio.Queue()

    def publish(record, source):
        outbox.put_nowait({"type": "task", "task": record.model_dump(), "source": source})

    session = VoiceSession(ai_service, on_record=publish, speaker=WebSocketSpeaker(outbox))
    sender = asyncio.create_task(_send_outbox(websocket, outbox))
    session.start()

    try:
        while session.is_listening:
            try:
                message = await websocket.receive_json()
            except ValueError:
                message = None
            kind = message.get("type") if isinstance(message, dict) else None

            if kind == "transcript":
                session.submit(str(message.get("text", "")))
            elif kind == "confirm":
                await session.drain()
                try:
                    task = session.confirm(create_task_db)
                except VoiceSessionError as e:
                    outbox.put_nowait({"type": "error", "code": e.code, "message": e.prompt})
                else:
                    outbox.put_nowait({"type": "created", "task": task.model_dump()})
            elif kind == "cancel":
                session.stop()
            else:
                outbox.put_nowait({"type": "error", "code": "unknown_message", "message": f"Unknown message type: {kind}"})

        await outbox.join()
        if websocket.client_state is WebSocketState.CONNECTED:
            await websocket.close()
    except WebSocketDisconnect:
        logger.info("Voice session client disconnected")
    finally:
        session.stop()
        sender.cancel()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
