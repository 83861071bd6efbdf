"""
Intent classification for user commands.

Classification is an ordered decision list: intents are tried in declaration
order, each with its own patterns, and the first intent with a matching
pattern wins. A second, intent-specific pass pulls slot values out of the
text. Slots that are not found are left out; completeness is checked by the
specialist that handles the intent.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, List, Optional, Pattern, Tuple

from .models import Command

logger = logging.getLogger(__name__)


def _compile(*patterns: str) -> List[Pattern[str]]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


# --------------------------------------------------------------------------- #
# Intent decision list (order matters: earlier entries win)
# --------------------------------------------------------------------------- #

INTENT_PATTERNS: List[Tuple[str, List[Pattern[str]]]] = [
    ("create_subtasks", _compile(
        r"\bcreate\s+(?:the\s+)?sub-?tasks\b",
        r"\bbreak\s+(?:down\s+)?(?:the\s+|this\s+)?task\b",
        r"\bmateriali[sz]e\s+(?:the\s+)?sub-?tasks\b",
    )),
    ("create_followups", _compile(
        r"\bcreate\s+(?:the\s+)?follow[\s-]?ups?\b",
        r"\bfollow[\s-]?up\s+tasks\b",
    )),
    ("list_archived_tasks", _compile(
        r"\barchived\s+tasks\b",
        r"\b(?:show|list|view)\s+(?:my\s+)?archive\b",
    )),
    # Only a leading verb or "archive (the) task" counts; "create a task to
    # archive X" is a create_task
    ("archive_task", _compile(
        r"^\s*(?:please\s+)?archive\b.*\btask\b",
        r"\barchive\s+(?:the\s+|this\s+|my\s+)?task\b",
        r"\bmove\s+(?:the\s+|this\s+|my\s+)?task\b.*\bto\s+(?:the\s+)?archive\b",
    )),
    ("unarchive_task", _compile(
        r"^\s*(?:please\s+)?(?:unarchive\b|restore\b.*\btask\b)",
        r"\b(?:unarchive|restore)\s+(?:the\s+|this\s+|my\s+)?task\b",
    )),
    ("create_task", _compile(
        r"create.*task",
        r"add.*task",
        r"new.*task",
        r"\btodo\b",
        r"remind.*me",
    )),
    ("list_tasks", _compile(
        r"show.*tasks",
        r"list.*tasks",
        r"my.*tasks",
        r"what.*tasks",
        r"tasks.*list",
    )),
    ("update_task", _compile(
        r"update.*task",
        r"complete.*task",
        r"mark.*task",
        r"task.*done",
    )),
    ("find_slots", _compile(
        r"find.*time",
        r"available.*slots",
        r"free\s+slots",
        r"when.*free",
        r"schedule.*time",
    )),
    ("create_event", _compile(
        r"create.*event",
        r"schedule.*event",
        r"add.*event",
        r"new.*event",
        r"meeting",
        r"appointment",
    )),
    ("list_events", _compile(
        r"show.*events",
        r"list.*events",
        r"my.*events",
        r"calendar",
        r"schedule",
    )),
    ("draft_email", _compile(
        r"draft.*email",
        r"write.*email",
        r"compose.*email",
        r"new.*email",
    )),
    ("send_email", _compile(
        r"send.*email",
        r"email.*send",
        r"dispatch.*email",
    )),
    ("summarize_inbox", _compile(
        r"summari[sz]e.*inbox",
        r"inbox.*summary",
        r"emails.*summary",
        r"what.*emails",
    )),
    ("create_document", _compile(
        r"create.*document",
        r"write.*document",
        r"new.*document",
        r"generate.*report",
    )),
    ("summarize_document", _compile(
        r"summari[sz]e.*document",
        r"document.*summary",
        r"analy[sz]e.*document",
    )),
    ("summarize_web_page", _compile(
        r"summari[sz]e.*(?:web\s*page|page|website|site|url|https?://)",
    )),
    ("scrape_url", _compile(
        r"scrape",
        r"extract.*from",
        r"analy[sz]e.*website",
        r"read.*page",
    )),
    ("web_search", _compile(
        r"search.*web",
        r"^\s*search\b",
        r"look.*up",
        r"find.*information",
        r"research",
        r"google",
    )),
    ("ask_llm", _compile(
        r"^\s*ask\b",
        r"\bask\s+(?:the\s+)?(?:llm|ai|gpt|model)\b",
    )),
]


# --------------------------------------------------------------------------- #
# Slot patterns
# --------------------------------------------------------------------------- #

UUID_RE = re.compile(r"\b([0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12})\b", re.IGNORECASE)
URL_RE = re.compile(r"(https?://[^\s<>\"']+)", re.IGNORECASE)
EMAIL_RE = re.compile(r"(?:to|for)\s+([a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})", re.IGNORECASE)

_PRIORITY_WORDS = r"(?:urgent|high|medium|low)"
_DAY_WORDS = r"(?:today|tonight|tomorrow|next\s+week|(?:next\s+)?(?:monday|tuesday|wednesday|thursday|friday|saturday|sunday)|\d{4}-\d{2}-\d{2})"
_CLOCK = r"\d{1,2}(?::\d{2})?\s*(?:am|pm)|\d{1,2}:\d{2}|noon|midday"

_TASK_TRAILER = rf"(?:\s+(?:for|due|by)\b|\s+(?:with\s+)?{_PRIORITY_WORDS}\s+priority\b|\s+priority\b|\s*[.!?]?\s*$)"
# A day phrase only ends the title when nothing but the trailer follows it
_TASK_DAY = rf"{_DAY_WORDS}(?:\s+at\s+(?:{_CLOCK}))?"
_TASK_STOP = rf"(?=\s+{_TASK_DAY}{_TASK_TRAILER}|{_TASK_TRAILER})"

TASK_TITLE_RE = re.compile(
    rf"(?:create|add|new)\s+(?:a\s+)?(?:task|todo)\b[:\s]*(?:to\s+)?(.+?){_TASK_STOP}",
    re.IGNORECASE,
)
REMIND_TITLE_RE = re.compile(rf"remind\s+me\s+to\s+(.+?){_TASK_STOP}", re.IGNORECASE)
TRAILING_DAY_RE = re.compile(rf"\s+({_TASK_DAY}){_TASK_TRAILER}", re.IGNORECASE)
DUE_RE = re.compile(
    rf"\b(?:due|by)\s+(.+?)(?=\s+(?:with\s+)?{_PRIORITY_WORDS}\s+priority\b|\s+priority\b|[.!?]|$)",
    re.IGNORECASE,
)
PRIORITY_RE = re.compile(
    rf"\b({_PRIORITY_WORDS})\s+priority\b|\bpriority\s*[:=]?\s*({_PRIORITY_WORDS})\b|\b(urgent)\b",
    re.IGNORECASE,
)

STATUS_KEYWORDS: List[Tuple[Pattern[str], str]] = [
    (re.compile(r"\bin[\s-]progress\b|\bstart(?:ed)?\b", re.IGNORECASE), "IN_PROGRESS"),
    (re.compile(r"\bcancel(?:l?ed)?\b", re.IGNORECASE), "CANCELLED"),
    (re.compile(r"\bpending\b|\breopen\b", re.IGNORECASE), "PENDING"),
    (re.compile(r"\bcomplete(?:d)?\b|\bdone\b|\bfinish(?:ed)?\b", re.IGNORECASE), "COMPLETED"),
]

DATE_TIME_RE = re.compile(
    rf"\b({_DAY_WORDS}(?:\s+at\s+(?:{_CLOCK}))?|at\s+(?:{_CLOCK})(?:\s+(?:on\s+)?{_DAY_WORDS})?)\b",
    re.IGNORECASE,
)
EVENT_TITLE_RE = re.compile(
    rf"(?:create|schedule|add|book|new)\s+(?:an?\s+)?(?:event|meeting|appointment)\b\s*(?:called|titled|named)?[:\s]*(.+?)"
    rf"(?=\s+(?:at|on|in)\b|\s+{_DAY_WORDS}\b|\s*[.!?]?\s*$)",
    re.IGNORECASE,
)
LOCATION_RE = re.compile(
    rf"\b(?:in|at)\s+(?!(?:{_CLOCK})\b)(?!{_DAY_WORDS}\b)((?:the\s+)?[a-z][^.!?,]*?)"
    rf"(?=\s+(?:on|at)\b|\s+{_DAY_WORDS}\b|[.!?,]|$)",
    re.IGNORECASE,
)

SUBJECT_RE = re.compile(
    r"(?:subject|about)\s*[:\s]\s*(.+?)(?=\s+(?:saying|content|body)\b|\s*$)",
    re.IGNORECASE,
)
BODY_RE = re.compile(r"\b(?:saying|body|content)\s*[:\s]\s*(.+)$", re.IGNORECASE | re.DOTALL)

DOCUMENT_TITLE_RE = re.compile(
    r"(?:create|write|new|generate)\s+(?:an?\s+|the\s+)?(?:document|report|doc)\b\s*(?:called|titled|named|about|on)?[:\s]*(.+?)"
    r"(?=\s+(?:with\s+content|content|saying)\b|\s*$)",
    re.IGNORECASE,
)

QUERY_RE = re.compile(
    r"(?:search\s+(?:the\s+web\s+|online\s+)?(?:for\s+)?|look\s+up\s+|find\s+information\s+(?:on|about)\s+|research\s+|google\s+)(.+)",
    re.IGNORECASE,
)
PROMPT_RE = re.compile(r"\bask\s+(?:the\s+)?(?:llm|ai|gpt|model)?\s*[:,]?\s*(.+)$", re.IGNORECASE | re.DOTALL)


def _clean(value: str) -> str:
    return value.strip().strip("\"'").strip()


def _first_group(match: Optional[re.Match]) -> Optional[str]:
    if not match:
        return None
    for group in match.groups():
        if group:
            return _clean(group)
    return None


# --------------------------------------------------------------------------- #
# Per-intent slot extraction
# --------------------------------------------------------------------------- #

def _extract_task_id(text: str, params: Dict[str, Any]) -> None:
    task_id = _first_group(UUID_RE.search(text))
    if task_id:
        params["task_id"] = task_id


def _extract_create_task(text: str, params: Dict[str, Any]) -> None:
    match = TASK_TITLE_RE.search(text) or REMIND_TITLE_RE.search(text)
    title = _first_group(match)
    if title:
        params["title"] = title

    due = _first_group(DUE_RE.search(text))
    if not due and match:
        # "remind me to call mom tomorrow"
        due = _first_group(TRAILING_DAY_RE.match(text, match.end(1)))
    if due:
        params["due_date"] = due

    priority = _first_group(PRIORITY_RE.search(text))
    if priority:
        params["priority"] = priority.upper()


def _extract_update_task(text: str, params: Dict[str, Any]) -> None:
    _extract_task_id(text, params)
    for pattern, status in STATUS_KEYWORDS:
        if pattern.search(text):
            params["status"] = status
            break


def _extract_date_time(text: str, params: Dict[str, Any]) -> None:
    date_time = _first_group(DATE_TIME_RE.search(text))
    if date_time:
        params["date_time"] = date_time


def _extract_create_event(text: str, params: Dict[str, Any]) -> None:
    title = _first_group(EVENT_TITLE_RE.search(text))
    # "schedule a meeting tomorrow at 3pm" has no title, only a date phrase
    if title and not DATE_TIME_RE.fullmatch(re.sub(r"^on\s+", "", title, flags=re.IGNORECASE)):
        params["title"] = title
    _extract_date_time(text, params)
    location = _first_group(LOCATION_RE.search(text))
    if location:
        params["location"] = location


def _extract_draft_email(text: str, params: Dict[str, Any]) -> None:
    recipient = _first_group(EMAIL_RE.search(text))
    if recipient:
        params["recipient"] = recipient
    subject = _first_group(SUBJECT_RE.search(text))
    if subject:
        params["subject"] = subject
    body = _first_group(BODY_RE.search(text))
    if body:
        params["body"] = body


def _extract_email_id(text: str, params: Dict[str, Any]) -> None:
    email_id = _first_group(UUID_RE.search(text))
    if email_id:
        params["email_id"] = email_id


def _extract_create_document(text: str, params: Dict[str, Any]) -> None:
    title = _first_group(DOCUMENT_TITLE_RE.search(text))
    if title:
        params["title"] = title
    content = _first_group(BODY_RE.search(text))
    if content:
        params["content"] = content


def _extract_document_id(text: str, params: Dict[str, Any]) -> None:
    document_id = _first_group(UUID_RE.search(text))
    if document_id:
        params["document_id"] = document_id


def _extract_url(text: str, params: Dict[str, Any]) -> None:
    url = _first_group(URL_RE.search(text))
    if url:
        params["url"] = url.rstrip(".,;:!?)")


def _extract_query(text: str, params: Dict[str, Any]) -> None:
    query = _first_group(QUERY_RE.search(text))
    if query:
        params["query"] = query.rstrip("?.! ")


def _extract_prompt(text: str, params: Dict[str, Any]) -> None:
    prompt = _first_group(PROMPT_RE.search(text))
    if prompt:
        params["prompt"] = prompt


SLOT_EXTRACTORS: Dict[str, Callable[[str, Dict[str, Any]], None]] = {
    "create_subtasks": _extract_task_id,
    "create_followups": _extract_task_id,
    "archive_task": _extract_task_id,
    "unarchive_task": _extract_task_id,
    "create_task": _extract_create_task,
    "update_task": _extract_update_task,
    "find_slots": _extract_date_time,
    "create_event": _extract_create_event,
    "draft_email": _extract_draft_email,
    "send_email": _extract_email_id,
    "create_document": _extract_create_document,
    "summarize_document": _extract_document_id,
    "summarize_web_page": _extract_url,
    "scrape_url": _extract_url,
    "web_search": _extract_query,
    "ask_llm": _extract_prompt,
}


# --------------------------------------------------------------------------- #
# Classifier
# --------------------------------------------------------------------------- #

class IntentClassifier:
    """Deterministic pattern-based intent classifier."""

    def __init__(self, intent_patterns: Optional[List[Tuple[str, List[Pattern[str]]]]] = None):
        self.intent_patterns = intent_patterns or INTENT_PATTERNS

    @property
    def intents(self) -> List[str]:
        return [intent for intent, _ in self.intent_patterns]

    def detect_intent(self, text: str) -> Optional[str]:
        """Return the first intent whose patterns match, or None."""
        normalized = text.strip()
        for intent, patterns in self.intent_patterns:
            if any(p.search(normalized) for p in patterns):
                return intent
        return None

    def extract_parameters(self, text: str, intent: Optional[str]) -> Dict[str, Any]:
        """Best-effort slot extraction; never raises on missing slots."""
        params: Dict[str, Any] = {}
        if not intent:
            return params
        extractor = SLOT_EXTRACTORS.get(intent)
        if extractor:
            extractor(text, params)
        return params

    def classify(self, text: str) -> Command:
        """
        Classify raw command text.

        Args:
            text: The user's utterance

        Returns:
            Command with intent (None when nothing matched) and parameters
        """
        intent = self.detect_intent(text)
        params = self.extract_parameters(text, intent)
        logger.debug(f"Classified {text!r} as {intent or 'general'} with {params}")
        return Command(text=text, intent=intent, parameters=params)
