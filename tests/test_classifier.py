"""
Tests for the pattern-based intent classifier.
"""

import re

import pytest

from jarvis.classifier import INTENT_PATTERNS, IntentClassifier

TASK_ID = "123e4567-e89b-12d3-a456-426614174000"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def classifier():
    return IntentClassifier()


# ---------------------------------------------------------------------------
# Intent detection
# ---------------------------------------------------------------------------

class TestIntentDetection:
    """First matching intent in declaration order wins."""

    @pytest.mark.parametrize("text,intent", [
        ("create task buy milk", "create_task"),
        ("remind me to call mum", "create_task"),
        ("show my tasks", "list_tasks"),
        (f"mark task {TASK_ID} as done", "update_task"),
        (f"archive task {TASK_ID}", "archive_task"),
        (f"unarchive {TASK_ID}", "unarchive_task"),
        ("show archived tasks", "list_archived_tasks"),
        ("create a task to archive the old photos", "create_task"),
        ("add a task to restore the old bike", "create_task"),
        ("move task to the archive", "archive_task"),
        (f"create subtasks for {TASK_ID}", "create_subtasks"),
        (f"create follow-ups for {TASK_ID}", "create_followups"),
        ("find time for a call on friday", "find_slots"),
        ("schedule meeting with Bob tomorrow at 3pm", "create_event"),
        ("what's on my calendar", "list_events"),
        ("draft email to bob@example.com", "draft_email"),
        (f"send email {TASK_ID}", "send_email"),
        ("summarize my inbox", "summarize_inbox"),
        ("create document called Roadmap", "create_document"),
        (f"summarize document {TASK_ID}", "summarize_document"),
        ("summarize https://example.com/post", "summarize_web_page"),
        ("scrape https://example.com", "scrape_url"),
        ("search the web for python asyncio", "web_search"),
        ("ask the llm what is a monad", "ask_llm"),
    ])
    def test_detects_intent(self, classifier, text, intent):
        assert classifier.detect_intent(text) == intent

    def test_no_match_returns_none(self, classifier):
        """Small talk has no intent."""
        command = classifier.classify("hello there")
        assert command.intent is None
        assert command.parameters == {}

    def test_matching_is_case_insensitive(self, classifier):
        assert classifier.detect_intent("CREATE A NEW TASK") == "create_task"

    def test_earlier_intent_wins(self, classifier):
        """'schedule' alone is a calendar listing, but a meeting is an event."""
        assert classifier.detect_intent("show my schedule") == "list_events"
        assert classifier.detect_intent("schedule a meeting") == "create_event"

    def test_custom_decision_list(self):
        classifier = IntentClassifier([
            ("greet", [re.compile(r"\bhello\b", re.IGNORECASE)]),
        ])
        assert classifier.intents == ["greet"]
        assert classifier.detect_intent("Hello there") == "greet"
        assert classifier.detect_intent("create task x") is None

    def test_default_list_order(self):
        intents = [intent for intent, _ in INTENT_PATTERNS]
        assert intents.index("create_subtasks") < intents.index("create_task")
        assert intents.index("archive_task") < intents.index("create_task")
        assert intents.index("find_slots") < intents.index("create_event") < intents.index("list_events")
        assert intents[-1] == "ask_llm"


# ---------------------------------------------------------------------------
# Slot extraction
# ---------------------------------------------------------------------------

class TestSlotExtraction:
    """Best-effort parameters for each intent."""

    def test_create_task_slots(self, classifier):
        command = classifier.classify("create task buy milk due tomorrow high priority")
        assert command.intent == "create_task"
        assert command.parameters == {
            "title": "buy milk",
            "due_date": "tomorrow",
            "priority": "HIGH",
        }

    def test_create_task_without_optional_slots(self, classifier):
        command = classifier.classify("add task water the plants")
        assert command.parameters == {"title": "water the plants"}

    def test_create_task_title_mentioning_archive(self, classifier):
        command = classifier.classify("create a task to archive the old photos")
        assert command.intent == "create_task"
        assert command.parameters == {"title": "archive the old photos"}

    def test_create_task_leading_to_is_dropped(self, classifier):
        command = classifier.classify("add a task to water the plants")
        assert command.parameters == {"title": "water the plants"}

    def test_reminder_trailing_day_becomes_due_date(self, classifier):
        command = classifier.classify("remind me to call mom tomorrow")
        assert command.intent == "create_task"
        assert command.parameters == {"title": "call mom", "due_date": "tomorrow"}

    def test_day_word_inside_title_is_kept(self, classifier):
        command = classifier.classify("create task review monday notes")
        assert command.parameters == {"title": "review monday notes"}

    def test_update_task_status(self, classifier):
        command = classifier.classify(f"mark task {TASK_ID} as done")
        assert command.intent == "update_task"
        assert command.parameters == {"task_id": TASK_ID, "status": "COMPLETED"}

    def test_update_task_in_progress(self, classifier):
        command = classifier.classify(f"update task {TASK_ID} to in progress")
        assert command.parameters["status"] == "IN_PROGRESS"

    def test_create_event_slots(self, classifier):
        command = classifier.classify("schedule meeting with Bob tomorrow at 3pm")
        assert command.intent == "create_event"
        assert command.parameters["title"] == "with Bob"
        assert command.parameters["date_time"] == "tomorrow at 3pm"
        assert "location" not in command.parameters

    def test_event_without_title(self, classifier):
        """A bare date phrase is not taken as the title."""
        command = classifier.classify("schedule a meeting tomorrow at 3pm")
        assert command.intent == "create_event"
        assert command.parameters == {"date_time": "tomorrow at 3pm"}

    def test_draft_email_slots(self, classifier):
        command = classifier.classify("draft email to bob@example.com subject: Lunch saying see you at noon")
        assert command.intent == "draft_email"
        assert command.parameters["recipient"] == "bob@example.com"
        assert command.parameters["subject"] == "Lunch"
        assert command.parameters["body"] == "see you at noon"

    def test_search_query(self, classifier):
        command = classifier.classify("search the web for python asyncio")
        assert command.parameters == {"query": "python asyncio"}

    def test_url_trailing_punctuation_dropped(self, classifier):
        command = classifier.classify("scrape https://example.com/page.")
        assert command.parameters == {"url": "https://example.com/page"}

    def test_llm_prompt(self, classifier):
        command = classifier.classify("ask the llm what is a monad")
        assert command.parameters == {"prompt": "what is a monad"}

    def test_missing_slots_are_left_out(self, classifier):
        command = classifier.classify("archive task please")
        assert command.intent == "archive_task"
        assert command.parameters == {}
