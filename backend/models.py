from pydantic import BaseModel, Field
from typing import Literal, Optional

TaskCategory = Literal["medicine", "meal", "general"]
TaskFrequency = Literal["once", "daily", "weekly", "monthly"]
DocumentType = Literal["pdf", "docx", "txt"]

CATEGORY_MEDICINE = "medicine"
CATEGORY_MEAL = "meal"
CATEGORY_GENERAL = "general"

FREQUENCY_ONCE = "once"
FREQUENCY_DAILY = "daily"
FREQUENCY_WEEKLY = "weekly"
FREQUENCY_MONTHLY = "monthly"

DEFAULT_MODEL = "claude-sonnet-4-5"

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"
DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


class Task(BaseModel):
    id: int
    title: str
    time: str  # HH:MM, 24h
    date: str  # YYYY-MM-DD
    frequency: TaskFrequency = "once"
    category: TaskCategory
    user_id: int = 1
    completed: bool = False
    created_at: str  # ISO format datetime string

class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1)
    time: str = Field(..., pattern=TIME_PATTERN)
    date: str = Field(..., pattern=DATE_PATTERN)
    frequency: TaskFrequency = "once"
    category: TaskCategory
    user_id: int = 1
    completed: bool = False

class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    date: Optional[str] = Field(default=None, pattern=DATE_PATTERN)
    frequency: Optional[TaskFrequency] = None
    category: Optional[TaskCategory] = None
    completed: Optional[bool] = None

class PartialTaskRecord(BaseModel):
    """Task fields extracted from speech. Empty strings mean "not understood"."""
    title: str = ""
    time: str = ""
    date: str = ""
    category: TaskCategory = "general"
    frequency: TaskFrequency = "once"

    def is_usable(self) -> bool:
        return bool(self.title) and bool(self.date or self.time)

    def is_complete(self) -> bool:
        return bool(self.title and self.date and self.time)

class AIAnalysisResult(BaseModel):
    text: str
    success: bool
    source: Literal["remote", "fallback"]

class AssistantConfig(BaseModel):
    id: int
    user_id: int = 1
    name: str
    instructions: str
    model: str
    temperature: float = 0.7
    max_tokens: int = 500
    active_documents: list[int] = Field(default_factory=list)
    created_at: str
    updated_at: str

class AssistantConfigUpdate(BaseModel):
    name: str = Field(..., min_length=1)
    instructions: str = ""
    model: str = Field(..., min_length=1)
    temperature: float = Field(default=0.7, ge=0, le=1)
    max_tokens: int = Field(default=500, gt=0)
    active_documents: list[int] = Field(default_factory=list)

class AssistantDocument(BaseModel):
    id: int
    user_id: int = 1
    name: str
    description: Optional[str] = None
    file_type: DocumentType
    content: str = ""
    created_at: str
    last_used: Optional[str] = None

class DocumentCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    file_type: DocumentType = "txt"
    content: str = Field(..., min_length=1)

class AnalyzeRequest(BaseModel):
    text: str = ""

class RespondRequest(BaseModel):
    context: str = ""

class AssistantTestRequest(BaseModel):
    query: str = ""

class VoiceParseRequest(BaseModel):
    transcript: str
