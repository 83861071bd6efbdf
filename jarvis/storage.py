"""
Data store collaborator for the command core.

`DataStore` is the keyed CRUD surface the specialists, the execution tracker
and the credential vault talk to. `SupabaseDataStore` is the production
implementation (one table per entity). Ownership checks are the callers'
job; the store filters by user id where a query is per-user.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic_core import to_jsonable_python
from supabase import Client

from .models import (
    ApiKeyRecord,
    CalendarEvent,
    Document,
    Email,
    ExecutionRecord,
    Task,
    UserPreferences,
    WebSearch,
)


# --------------------------------------------------------------------------- #
# Interface
# --------------------------------------------------------------------------- #

class DataStore(ABC):
    """Per-entity CRUD used by the command core."""

    # Tasks

    @abstractmethod
    def insert_task(self, task: Task) -> Task: ...

    @abstractmethod
    def get_task(self, task_id: str) -> Optional[Task]: ...

    @abstractmethod
    def update_task(self, task_id: str, changes: Dict[str, Any]) -> Task: ...

    @abstractmethod
    def list_tasks(
        self,
        user_id: str,
        archived: Optional[bool] = False,
        top_level_only: bool = True,
    ) -> List[Task]:
        """List a user's tasks. `archived=None` returns both archived and active."""

    @abstractmethod
    def list_subtasks(self, parent_id: str) -> List[Task]: ...

    # Calendar events

    @abstractmethod
    def insert_event(self, event: CalendarEvent) -> CalendarEvent: ...

    @abstractmethod
    def list_events_overlapping(
        self, user_id: str, start: datetime, end: datetime
    ) -> List[CalendarEvent]:
        """Events with start_time < end and end_time > start, ordered by start."""

    @abstractmethod
    def list_events_starting(
        self,
        user_id: str,
        start: datetime,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[CalendarEvent]:
        """Events with start <= start_time (< end when given), ordered by start."""

    # Emails

    @abstractmethod
    def insert_email(self, email: Email) -> Email: ...

    @abstractmethod
    def get_email(self, email_id: str) -> Optional[Email]: ...

    @abstractmethod
    def update_email(self, email_id: str, changes: Dict[str, Any]) -> Email: ...

    @abstractmethod
    def list_emails(self, user_id: str, limit: int = 20) -> List[Email]:
        """Newest first."""

    # Documents

    @abstractmethod
    def insert_document(self, document: Document) -> Document: ...

    @abstractmethod
    def get_document(self, document_id: str) -> Optional[Document]: ...

    @abstractmethod
    def update_document(self, document_id: str, changes: Dict[str, Any]) -> Document: ...

    # Web searches

    @abstractmethod
    def insert_web_search(self, search: WebSearch) -> WebSearch: ...

    @abstractmethod
    def list_web_searches(self, user_id: str, limit: int = 20) -> List[WebSearch]: ...

    # API keys

    @abstractmethod
    def get_api_key(self, user_id: str, service_name: str) -> Optional[ApiKeyRecord]: ...

    @abstractmethod
    def insert_api_key(self, record: ApiKeyRecord) -> ApiKeyRecord: ...

    @abstractmethod
    def update_api_key(self, record_id: str, changes: Dict[str, Any]) -> ApiKeyRecord: ...

    @abstractmethod
    def list_api_keys(self, user_id: str) -> List[ApiKeyRecord]: ...

    # Preferences

    @abstractmethod
    def get_user_preferences(self, user_id: str) -> Optional[UserPreferences]: ...

    # Execution records

    @abstractmethod
    def insert_execution(self, record: ExecutionRecord) -> ExecutionRecord: ...

    @abstractmethod
    def update_execution(self, execution_id: str, changes: Dict[str, Any]) -> ExecutionRecord: ...

    @abstractmethod
    def get_execution(self, execution_id: str) -> Optional[ExecutionRecord]: ...

    @abstractmethod
    def list_executions(self, user_id: str, limit: int = 50) -> List[ExecutionRecord]:
        """Newest first."""


# --------------------------------------------------------------------------- #
# Supabase implementation
# --------------------------------------------------------------------------- #

TASKS_TABLE = "tasks"
EVENTS_TABLE = "calendar_events"
EMAILS_TABLE = "emails"
DOCUMENTS_TABLE = "documents"
WEB_SEARCHES_TABLE = "web_searches"
API_KEYS_TABLE = "api_keys"
PREFERENCES_TABLE = "user_preferences"
EXECUTIONS_TABLE = "agent_executions"


def _row(model) -> Dict[str, Any]:
    """Convert a model to a Supabase row."""
    if isinstance(model, Task):
        return model.model_dump(mode="json", exclude={"subtasks"})
    return model.model_dump(mode="json")


def _changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    """Make an update dict JSON-safe (datetimes, enums)."""
    return to_jsonable_python(changes)


class SupabaseDataStore(DataStore):
    """Table-per-entity store on top of the Supabase client."""

    def __init__(self, client: Optional[Client] = None):
        """
        Initialize the store.

        Args:
            client: Supabase client (defaults to the cached service-role client)
        """
        if client is None:
            from .supabase_client import get_db
            client = get_db()
        self.db = client

    # ----------------------------------------------------------------------- #
    # Helpers
    # ----------------------------------------------------------------------- #

    def _insert(self, table: str, model):
        result = self.db.table(table).insert(_row(model)).execute()
        return type(model).model_validate(result.data[0])

    def _get(self, table: str, record_id: str, model_cls):
        result = self.db.table(table).select("*").eq("id", record_id).execute()
        if not result.data:
            return None
        return model_cls.model_validate(result.data[0])

    def _update(self, table: str, record_id: str, changes: Dict[str, Any], model_cls):
        result = self.db.table(table).update(_changes(changes)).eq("id", record_id).execute()
        if not result.data:
            raise LookupError(f"{table} row {record_id} not found")
        return model_cls.model_validate(result.data[0])

    # ----------------------------------------------------------------------- #
    # Tasks
    # ----------------------------------------------------------------------- #

    def insert_task(self, task: Task) -> Task:
        return self._insert(TASKS_TABLE, task)

    def get_task(self, task_id: str) -> Optional[Task]:
        return self._get(TASKS_TABLE, task_id, Task)

    def update_task(self, task_id: str, changes: Dict[str, Any]) -> Task:
        return self._update(TASKS_TABLE, task_id, changes, Task)

    def list_tasks(
        self,
        user_id: str,
        archived: Optional[bool] = False,
        top_level_only: bool = True,
    ) -> List[Task]:
        query = self.db.table(TASKS_TABLE).select("*").eq("user_id", user_id)
        if archived is not None:
            query = query.eq("is_archived", archived)
        if top_level_only:
            query = query.is_("parent_id", "null")
        result = query.execute()
        return [Task.model_validate(row) for row in result.data]

    def list_subtasks(self, parent_id: str) -> List[Task]:
        result = self.db.table(TASKS_TABLE).select("*").eq("parent_id", parent_id).execute()
        return [Task.model_validate(row) for row in result.data]

    # ----------------------------------------------------------------------- #
    # Calendar events
    # ----------------------------------------------------------------------- #

    def insert_event(self, event: CalendarEvent) -> CalendarEvent:
        return self._insert(EVENTS_TABLE, event)

    def list_events_overlapping(
        self, user_id: str, start: datetime, end: datetime
    ) -> List[CalendarEvent]:
        result = (
            self.db.table(EVENTS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .lt("start_time", end.isoformat())
            .gt("end_time", start.isoformat())
            .order("start_time")
            .execute()
        )
        return [CalendarEvent.model_validate(row) for row in result.data]

    def list_events_starting(
        self,
        user_id: str,
        start: datetime,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[CalendarEvent]:
        query = (
            self.db.table(EVENTS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .gte("start_time", start.isoformat())
        )
        if end is not None:
            query = query.lt("start_time", end.isoformat())
        query = query.order("start_time")
        if limit is not None:
            query = query.limit(limit)
        result = query.execute()
        return [CalendarEvent.model_validate(row) for row in result.data]

    # ----------------------------------------------------------------------- #
    # Emails
    # ----------------------------------------------------------------------- #

    def insert_email(self, email: Email) -> Email:
        return self._insert(EMAILS_TABLE, email)

    def get_email(self, email_id: str) -> Optional[Email]:
        return self._get(EMAILS_TABLE, email_id, Email)

    def update_email(self, email_id: str, changes: Dict[str, Any]) -> Email:
        return self._update(EMAILS_TABLE, email_id, changes, Email)

    def list_emails(self, user_id: str, limit: int = 20) -> List[Email]:
        result = (
            self.db.table(EMAILS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [Email.model_validate(row) for row in result.data]

    # ----------------------------------------------------------------------- #
    # Documents
    # ----------------------------------------------------------------------- #

    def insert_document(self, document: Document) -> Document:
        return self._insert(DOCUMENTS_TABLE, document)

    def get_document(self, document_id: str) -> Optional[Document]:
        return self._get(DOCUMENTS_TABLE, document_id, Document)

    def update_document(self, document_id: str, changes: Dict[str, Any]) -> Document:
        return self._update(DOCUMENTS_TABLE, document_id, changes, Document)

    # ----------------------------------------------------------------------- #
    # Web searches
    # ----------------------------------------------------------------------- #

    def insert_web_search(self, search: WebSearch) -> WebSearch:
        return self._insert(WEB_SEARCHES_TABLE, search)

    def list_web_searches(self, user_id: str, limit: int = 20) -> List[WebSearch]:
        result = (
            self.db.table(WEB_SEARCHES_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [WebSearch.model_validate(row) for row in result.data]

    # ----------------------------------------------------------------------- #
    # API keys
    # ----------------------------------------------------------------------- #

    def get_api_key(self, user_id: str, service_name: str) -> Optional[ApiKeyRecord]:
        result = (
            self.db.table(API_KEYS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .eq("service_name", service_name)
            .execute()
        )
        if not result.data:
            return None
        return ApiKeyRecord.model_validate(result.data[0])

    def insert_api_key(self, record: ApiKeyRecord) -> ApiKeyRecord:
        return self._insert(API_KEYS_TABLE, record)

    def update_api_key(self, record_id: str, changes: Dict[str, Any]) -> ApiKeyRecord:
        return self._update(API_KEYS_TABLE, record_id, changes, ApiKeyRecord)

    def list_api_keys(self, user_id: str) -> List[ApiKeyRecord]:
        result = self.db.table(API_KEYS_TABLE).select("*").eq("user_id", user_id).execute()
        return [ApiKeyRecord.model_validate(row) for row in result.data]

    # ----------------------------------------------------------------------- #
    # Preferences
    # ----------------------------------------------------------------------- #

    def get_user_preferences(self, user_id: str) -> Optional[UserPreferences]:
        result = self.db.table(PREFERENCES_TABLE).select("*").eq("user_id", user_id).execute()
        if not result.data:
            return None
        return UserPreferences.model_validate(result.data[0])

    # ----------------------------------------------------------------------- #
    # Execution records
    # ----------------------------------------------------------------------- #

    def insert_execution(self, record: ExecutionRecord) -> ExecutionRecord:
        return self._insert(EXECUTIONS_TABLE, record)

    def update_execution(self, execution_id: str, changes: Dict[str, Any]) -> ExecutionRecord:
        return self._update(EXECUTIONS_TABLE, execution_id, changes, ExecutionRecord)

    def get_execution(self, execution_id: str) -> Optional[ExecutionRecord]:
        return self._get(EXECUTIONS_TABLE, execution_id, ExecutionRecord)

    def list_executions(self, user_id: str, limit: int = 50) -> List[ExecutionRecord]:
        result = (
            self.db.table(EXECUTIONS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [ExecutionRecord.model_validate(row) for row in result.data]
