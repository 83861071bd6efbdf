"""Shared fixtures: an in-memory data store, a scripted completion service and wiring."""

from __future__ import annotations

import base64
import json
import random
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from jarvis.agents import CalendarAgent, DocumentAgent, EmailAgent, ResearchAgent, TaskAgent
from jarvis.config import Settings
from jarvis.exceptions import ExternalServiceError
from jarvis.integrations.web import WebPageFetcher
from jarvis.llm import ChatMessage, CompletionService
from jarvis.manager import AgentManager, build_manager
from jarvis.models import (
    ApiKeyRecord,
    CalendarEvent,
    Context,
    Document,
    Email,
    ExecutionRecord,
    Preferences,
    SearchResult,
    Task,
    UserPreferences,
    WebSearch,
)
from jarvis.orchestrator import AgentRegistry, IntentGroup, Orchestrator
from jarvis.personality import PersonalityEngine
from jarvis.storage import DataStore
from jarvis.tracker import ExecutionTracker
from jarvis.vault import CredentialVault

USER_ID = "user-1"
OTHER_USER_ID = "user-2"
MASTER_KEY = bytes(range(32))
MASTER_KEY_B64 = base64.urlsafe_b64encode(MASTER_KEY).decode("ascii")


# ---------------------------------------------------------------------------
# In-memory data store
# ---------------------------------------------------------------------------

class InMemoryDataStore(DataStore):
    """Dict-backed DataStore with the same semantics as the Supabase one."""

    def __init__(self):
        self.tasks: Dict[str, Task] = {}
        self.events: Dict[str, CalendarEvent] = {}
        self.emails: Dict[str, Email] = {}
        self.documents: Dict[str, Document] = {}
        self.web_searches: Dict[str, WebSearch] = {}
        self.api_keys: Dict[str, ApiKeyRecord] = {}
        self.preferences: Dict[str, UserPreferences] = {}
        self.executions: Dict[str, ExecutionRecord] = {}

    # helpers

    @staticmethod
    def _put(table: Dict[str, Any], model):
        stored = model.model_copy(deep=True)
        if isinstance(stored, Task):
            stored = stored.model_copy(update={"subtasks": []})
        table[stored.id] = stored
        return stored.model_copy(deep=True)

    @staticmethod
    def _get(table: Dict[str, Any], record_id: str):
        found = table.get(record_id)
        return found.model_copy(deep=True) if found else None

    @staticmethod
    def _update(table: Dict[str, Any], record_id: str, changes: Dict[str, Any]):
        if record_id not in table:
            raise LookupError(f"row {record_id} not found")
        current = table[record_id]
        updated = type(current).model_validate({**current.model_dump(), **changes})
        table[record_id] = updated
        return updated.model_copy(deep=True)

    # tasks

    def insert_task(self, task: Task) -> Task:
        return self._put(self.tasks, task)

    def get_task(self, task_id: str) -> Optional[Task]:
        return self._get(self.tasks, task_id)

    def update_task(self, task_id: str, changes: Dict[str, Any]) -> Task:
        return self._update(self.tasks, task_id, changes)

    def list_tasks(self, user_id: str, archived: Optional[bool] = False, top_level_only: bool = True) -> List[Task]:
        return [
            t.model_copy(deep=True) for t in self.tasks.values()
            if t.user_id == user_id
            and (archived is None or t.is_archived == archived)
            and (not top_level_only or t.parent_id is None)
        ]

    def list_subtasks(self, parent_id: str) -> List[Task]:
        return [t.model_copy(deep=True) for t in self.tasks.values() if t.parent_id == parent_id]

    # events

    def insert_event(self, event: CalendarEvent) -> CalendarEvent:
        return self._put(self.events, event)

    def list_events_overlapping(self, user_id: str, start: datetime, end: datetime) -> List[CalendarEvent]:
        found = [
            e for e in self.events.values()
            if e.user_id == user_id and e.start_time < end and e.end_time > start
        ]
        return sorted(found, key=lambda e: e.start_time)

    def list_events_starting(self, user_id, start, end=None, limit=None) -> List[CalendarEvent]:
        found = [
            e for e in self.events.values()
            if e.user_id == user_id and e.start_time >= start and (end is None or e.start_time < end)
        ]
        found.sort(key=lambda e: e.start_time)
        return found[:limit] if limit is not None else found

    # emails

    def insert_email(self, email: Email) -> Email:
        return self._put(self.emails, email)

    def get_email(self, email_id: str) -> Optional[Email]:
        return self._get(self.emails, email_id)

    def update_email(self, email_id: str, changes: Dict[str, Any]) -> Email:
        return self._update(self.emails, email_id, changes)

    def list_emails(self, user_id: str, limit: int = 20) -> List[Email]:
        found = sorted(
            (e for e in self.emails.values() if e.user_id == user_id),
            key=lambda e: e.created_at,
            reverse=True,
        )
        return found[:limit]

    # documents

    def insert_document(self, document: Document) -> Document:
        return self._put(self.documents, document)

    def get_document(self, document_id: str) -> Optional[Document]:
        return self._get(self.documents, document_id)

    def update_document(self, document_id: str, changes: Dict[str, Any]) -> Document:
        return self._update(self.documents, document_id, changes)

    # web searches

    def insert_web_search(self, search: WebSearch) -> WebSearch:
        return self._put(self.web_searches, search)

    def list_web_searches(self, user_id: str, limit: int = 20) -> List[WebSearch]:
        found = sorted(
            (s for s in self.web_searches.values() if s.user_id == user_id),
            key=lambda s: s.created_at,
            reverse=True,
        )
        return found[:limit]

    # api keys

    def get_api_key(self, user_id: str, service_name: str) -> Optional[ApiKeyRecord]:
        for record in self.api_keys.values():
            if record.user_id == user_id and record.service_name == service_name:
                return record.model_copy(deep=True)
        return None

    def insert_api_key(self, record: ApiKeyRecord) -> ApiKeyRecord:
        return self._put(self.api_keys, record)

    def update_api_key(self, record_id: str, changes: Dict[str, Any]) -> ApiKeyRecord:
        return self._update(self.api_keys, record_id, changes)

    def list_api_keys(self, user_id: str) -> List[ApiKeyRecord]:
        return [r.model_copy(deep=True) for r in self.api_keys.values() if r.user_id == user_id]

    # preferences

    def get_user_preferences(self, user_id: str) -> Optional[UserPreferences]:
        return self.preferences.get(user_id)

    # executions

    def insert_execution(self, record: ExecutionRecord) -> ExecutionRecord:
        return self._put(self.executions, record)

    def update_execution(self, execution_id: str, changes: Dict[str, Any]) -> ExecutionRecord:
        return self._update(self.executions, execution_id, changes)

    def get_execution(self, execution_id: str) -> Optional[ExecutionRecord]:
        return self._get(self.executions, execution_id)

    def list_executions(self, user_id: str, limit: int = 50) -> List[ExecutionRecord]:
        found = sorted(
            (r for r in self.executions.values() if r.user_id == user_id),
            key=lambda r: r.created_at,
            reverse=True,
        )
        return found[:limit]


# ---------------------------------------------------------------------------
# Scripted completion service
# ---------------------------------------------------------------------------

BREAKDOWN_REPLY = json.dumps([
    {"title": "Check the fridge", "description": "See what is missing"},
    {"title": "Go to the shop", "description": None},
])
FOLLOWUP_REPLY = "```json\n" + json.dumps([
    {"title": "Put milk away", "description": "Top shelf"},
]) + "\n```"
ESTIMATE_REPLY = "About 30 minutes"


def augmentation_responder(messages: List[ChatMessage]) -> str:
    """Answer the three task augmentation prompts by their wording."""
    system = messages[0]["content"]
    user = messages[-1]["content"]
    if "time estimation" in system:
        return ESTIMATE_REPLY
    if "follow-up" in user:
        return FOLLOWUP_REPLY
    if "Break down" in user:
        return BREAKDOWN_REPLY
    return "A scripted reply."


class FakeCompletionService(CompletionService):
    """Records calls and answers from a responder function."""

    def __init__(
        self,
        responder: Optional[Callable[[List[ChatMessage]], str]] = None,
        search_results: Optional[List[SearchResult]] = None,
        error: Optional[Exception] = None,
    ):
        self.responder = responder or augmentation_responder
        self.search_results = search_results or []
        self.error = error
        self.calls: List[Dict[str, Any]] = []
        self.invocations: List[tuple] = []

    async def complete(self, messages, temperature=0.7, max_tokens=1000, api_key=None) -> str:
        self.calls.append({
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "api_key": api_key,
        })
        if self.error is not None:
            raise self.error
        return self.responder(messages)

    async def invoke(self, name: str, args: Dict[str, Any]) -> List[SearchResult]:
        self.invocations.append((name, args))
        if name != "web_search":
            raise ExternalServiceError(name, f"Unknown function: {name}")
        if self.error is not None:
            raise self.error
        return list(self.search_results)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

PAGE_HTML = """
<html><head><title>Example Domain</title></head>
<body>
<nav>Skip to content</nav>
<h1>Example Domain</h1>
<p>This domain is for use in illustrative examples in documents.</p>
<p>You may use this domain in literature without prior coordination.</p>
<footer>All rights reserved.</footer>
</body></html>
"""


def page_handler(request: httpx.Request) -> httpx.Response:
    if request.url.host == "broken.example.com":
        return httpx.Response(500, text="boom")
    return httpx.Response(200, text=PAGE_HTML, headers={"content-type": "text/html; charset=utf-8"})


@pytest.fixture
def store() -> InMemoryDataStore:
    return InMemoryDataStore()


@pytest.fixture
def llm() -> FakeCompletionService:
    return FakeCompletionService(search_results=[
        SearchResult(url="https://docs.python.org/3/library/asyncio.html", name="asyncio", snippet="Asynchronous I/O", host_name="docs.python.org", rank=1),
        SearchResult(url="https://realpython.com/async-io-python/", name="Async IO in Python", snippet="A walkthrough", host_name="realpython.com", rank=2),
    ])


@pytest.fixture
def fetcher() -> WebPageFetcher:
    return WebPageFetcher(timeout=5, transport=httpx.MockTransport(page_handler))


@pytest.fixture
def personality(store) -> PersonalityEngine:
    return PersonalityEngine(store, clock=lambda: datetime(2025, 1, 6, 9, 30))


@pytest.fixture
def context() -> Context:
    """Formal, humorless caller so response text is deterministic."""
    return Context(
        user_id=USER_ID,
        preferences=Preferences(formality_level=8, humor_level=0),
        rng=random.Random(1234),
    )


@pytest.fixture
def casual_context() -> Context:
    return Context(
        user_id=USER_ID,
        preferences=Preferences(formality_level=3, humor_level=0),
        rng=random.Random(1234),
    )


@pytest.fixture
def other_context() -> Context:
    return Context(
        user_id=OTHER_USER_ID,
        preferences=Preferences(formality_level=8, humor_level=0),
        rng=random.Random(99),
    )


@pytest.fixture
def vault(store) -> CredentialVault:
    return CredentialVault(store, MASTER_KEY)


@pytest.fixture
def task_agent(store, personality, llm) -> TaskAgent:
    return TaskAgent(store, personality, llm, augmentation_timeout=1.0)


@pytest.fixture
def calendar_agent(store, personality) -> CalendarAgent:
    return CalendarAgent(store, personality, default_event_minutes=45)


@pytest.fixture
def email_agent(store, personality) -> EmailAgent:
    return EmailAgent(store, personality)


@pytest.fixture
def document_agent(store, personality) -> DocumentAgent:
    return DocumentAgent(store, personality)


@pytest.fixture
def research_agent(store, personality, llm, fetcher, vault) -> ResearchAgent:
    return ResearchAgent(store, personality, llm, fetcher, vault)


@pytest.fixture
def tracker(store) -> ExecutionTracker:
    return ExecutionTracker(store)


@pytest.fixture
def orchestrator(task_agent, calendar_agent, email_agent, document_agent, research_agent, tracker, personality) -> Orchestrator:
    registry = AgentRegistry({
        IntentGroup.TASK: task_agent,
        IntentGroup.CALENDAR: calendar_agent,
        IntentGroup.EMAIL: email_agent,
        IntentGroup.DOCUMENT: document_agent,
        IntentGroup.RESEARCH: research_agent,
    })
    return Orchestrator(registry, tracker, personality)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        jarvis_master_key=MASTER_KEY_B64,
        openai_api_key="sk-test",
        supabase_url="https://example.supabase.co",
        supabase_service_role_key="service-role",
        exa_api_key="exa-test",
        augmentation_timeout=1.0,
    )


@pytest.fixture
def manager(settings, store, llm, fetcher) -> AgentManager:
    return build_manager(settings=settings, store=store, llm=llm, fetcher=fetcher)
