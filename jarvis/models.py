from __future__ import annotations

import random
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


# --------------------------------------------------------------------------- #
# Agent and execution enums
# --------------------------------------------------------------------------- #

class AgentType(str, Enum):
    """Which component an execution record belongs to."""
    ORCHESTRATOR = "ORCHESTRATOR"
    TASK = "TASK"
    CALENDAR = "CALENDAR"
    EMAIL = "EMAIL"
    DOCUMENT = "DOCUMENT"
    RESEARCH = "RESEARCH"


class ExecutionStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (ExecutionStatus.COMPLETED, ExecutionStatus.FAILED)


# --------------------------------------------------------------------------- #
# Request side: preferences, context, command
# --------------------------------------------------------------------------- #

class Preferences(BaseModel):
    """Personality dials and completion settings supplied per request."""

    formality_level: int = Field(7, ge=0, le=10)
    humor_level: int = Field(6, ge=0, le=10)
    british_accent: bool = True
    temperature: float = 0.7
    max_tokens: int = 1000


class Context(BaseModel):
    """
    Per-request caller context. Never persisted by the core.

    `rng` is the random source used for humor insertion; pass a seeded
    `random.Random` to make responses reproducible.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    user_id: str
    preferences: Optional[Preferences] = None
    rng: random.Random = Field(default_factory=random.Random, exclude=True, repr=False)


class Command(BaseModel):
    """A classified user utterance."""
    model_config = ConfigDict(frozen=True)

    text: str
    intent: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)


# --------------------------------------------------------------------------- #
# Response side
# --------------------------------------------------------------------------- #

class ResponseType(str, Enum):
    """Tells the caller which structured viewer to render."""
    TEXT = "text"
    LINK = "link"
    TASK_LIST = "task_list"
    CALENDAR_VIEW = "calendar_view"
    EMAIL_VIEW = "email_view"
    DOCUMENT_VIEW = "document_view"
    OTHER = "other"


class ResponseData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: str
    raw_content: Optional[Any] = Field(default=None, alias="rawContent")


class Personality(BaseModel):
    """Advisory decoration; never required for correctness."""
    greeting: Optional[str] = None
    acknowledgment: Optional[str] = None
    completion: Optional[str] = None
    humor: Optional[str] = None


class Response(BaseModel):
    """Exactly one of these is produced per command."""

    status: Literal["success", "error"]
    type: ResponseType = ResponseType.TEXT
    data: ResponseData
    personality: Optional[Personality] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the public JSON contract field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# --------------------------------------------------------------------------- #
# Persisted audit and credential records
# --------------------------------------------------------------------------- #

class ExecutionRecord(BaseModel):
    """Audit entry for one command's lifecycle."""

    id: str = Field(default_factory=new_id)
    user_id: str
    agent_type: AgentType
    command: str
    intent: Optional[str] = None
    parameters: Optional[str] = None  # JSON text
    result: Optional[str] = None  # JSON text
    status: ExecutionStatus = ExecutionStatus.PENDING
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)


class ApiKeyRecord(BaseModel):
    """One encrypted API key per (user_id, service_name)."""

    id: str = Field(default_factory=new_id)
    user_id: str
    service_name: str
    encrypted_key: str
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class UserPreferences(BaseModel):
    """Stored per-user preferences, read when a request carries none."""

    user_id: str
    formality_level: int = 7
    humor_level: int = 6
    british_accent: bool = True
    temperature: float = 0.7
    max_tokens: int = 1000

    def to_preferences(self) -> Preferences:
        return Preferences(
            formality_level=self.formality_level,
            humor_level=self.humor_level,
            british_accent=self.british_accent,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )


# --------------------------------------------------------------------------- #
# Domain entities (owned by the data store)
# --------------------------------------------------------------------------- #

class Priority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"

    @property
    def rank(self) -> int:
        return list(Priority).index(self)


class TaskStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Task(BaseModel):
    id: str = Field(default_factory=new_id)
    user_id: str
    title: str
    description: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    due_date: Optional[datetime] = None
    estimated_time: Optional[int] = None  # minutes
    actual_time: Optional[int] = None  # minutes
    reminder_time: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    parent_id: Optional[str] = None
    is_archived: bool = False
    archived_at: Optional[datetime] = None

    # Raw AI augmentation output, materialized only on explicit request
    ai_breakdown: Optional[str] = None
    ai_estimate: Optional[int] = None
    ai_followups: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    # Populated on reads, never stored
    subtasks: List["Task"] = Field(default_factory=list)


class CalendarEvent(BaseModel):
    id: str = Field(default_factory=new_id)
    user_id: str
    title: str
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    location: Optional[str] = None
    attendees: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)


class TimeSlot(BaseModel):
    start: datetime
    end: datetime

    @property
    def duration_mins(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)


class EmailStatus(str, Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    FAILED = "FAILED"


class Email(BaseModel):
    id: str = Field(default_factory=new_id)
    user_id: str
    subject: str
    body: str
    recipients: List[str]
    cc: List[str] = Field(default_factory=list)
    bcc: List[str] = Field(default_factory=list)
    status: EmailStatus = EmailStatus.DRAFT
    sent_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)


class DocumentType(str, Enum):
    REPORT = "REPORT"
    NOTE = "NOTE"
    SUMMARY = "SUMMARY"


class Document(BaseModel):
    id: str = Field(default_factory=new_id)
    user_id: str
    title: str
    content: str
    type: DocumentType = DocumentType.REPORT
    summary: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class SearchResult(BaseModel):
    """One ranked hit from the web search function."""
    url: str
    name: str = ""
    snippet: str = ""
    host_name: str = ""
    rank: int = 0
    date: Optional[str] = None


class WebSearch(BaseModel):
    id: str = Field(default_factory=new_id)
    user_id: str
    query: str
    results: List[Dict[str, Any]] = Field(default_factory=list)
    urls: List[str] = Field(default_factory=list)
    summary: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
