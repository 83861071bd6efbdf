"""
Personality engine.

Turns the two preference dials into wording: formality >= 7 selects the
formal phrasing, humor >= 6 appends a remark with probability 0.3. All
randomness comes from the caller's `Context.rng`.
"""
from __future__ import annotations

import logging
import random
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from .models import Context, Personality, Preferences, Response, ResponseData, ResponseType
from .storage import DataStore

logger = logging.getLogger(__name__)

FORMALITY_THRESHOLD = 7
HUMOR_THRESHOLD = 6
HUMOR_PROBABILITY = 0.3

FORMAL_SALUTATION = "Sir/Madam"
CASUAL_SALUTATION = "there"


# --------------------------------------------------------------------------- #
# Phrase tables
# --------------------------------------------------------------------------- #

HUMOR_REMARKS: Dict[str, str] = {
    "task_created": "Another task conquered, or at least identified. Progress!",
    "task_completed": "Excellent work! Another victory for productivity.",
    "task_in_progress": "The journey of a thousand miles begins with a single step... or in this case, a status update.",
    "task_archived": "Filed away neatly. If only physical desks were this easy to tidy.",
    "task_restored": "Back from the archives, like a well-aged vintage.",
    "subtasks_created": "Divide and conquer, as the saying goes.",
    "followups_created": "Task management is quite straightforward, unlike quantum physics.",
    "event_created": "Time management is an art, and I'm your personal artist!",
    "slots_found": "I find time management fascinating. It's the one resource we can't buy more of.",
    "email_drafted": "Email composition is an art form, and I'm your digital wordsmith!",
    "email_sent": "Message delivered! The digital pigeons have found their destination.",
    "document_created": "Document creation complete! Another masterpiece added to your collection.",
    "document_summarized": "Summarization complete! I've distilled the essence into something more digestible.",
    "search_completed": "Search complete! The web has been combed for your information needs.",
    "page_scraped": "Web scraping complete! I've extracted the digital essence for your analysis.",
    "page_summarized": "Summary complete! I've distilled the web page to its essential components.",
}

GENERAL_HUMOR: List[str] = [
    "I do try to be helpful, though I must admit I'm still working on my tea-making abilities.",
    "At your service, though I must confess I'm better with data than with small talk.",
    "I anticipated you might need assistance. It's what I do best, besides running complex algorithms.",
]


class PersonalityEngine:
    """Preference resolution and tone selection for responses."""

    def __init__(
        self,
        store: Optional[DataStore] = None,
        default_formality_level: int = 7,
        default_humor_level: int = 6,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Args:
            store: Data store to read saved preferences from
            default_formality_level: Used when neither request nor store has preferences
            default_humor_level: Same, for humor
            clock: Local-time source for greetings
        """
        self.store = store
        self.default_formality_level = default_formality_level
        self.default_humor_level = default_humor_level
        self.clock = clock

    # ----------------------------------------------------------------------- #
    # Preferences
    # ----------------------------------------------------------------------- #

    def resolve_preferences(self, context: Context) -> Preferences:
        """Request preferences, else stored preferences, else defaults."""
        if context.preferences is not None:
            return context.preferences

        if self.store is not None:
            try:
                stored = self.store.get_user_preferences(context.user_id)
            except Exception as e:
                logger.warning(f"Failed to load preferences for {context.user_id}: {e}")
                stored = None
            if stored is not None:
                return stored.to_preferences()

        return Preferences(
            formality_level=self.default_formality_level,
            humor_level=self.default_humor_level,
        )

    # ----------------------------------------------------------------------- #
    # Tone
    # ----------------------------------------------------------------------- #

    def greeting(self) -> str:
        hour = self.clock().hour
        if hour < 12:
            return "Good morning"
        if hour < 17:
            return "Good afternoon"
        return "Good evening"

    @staticmethod
    def is_formal(prefs: Preferences) -> bool:
        return prefs.formality_level >= FORMALITY_THRESHOLD

    def salutation(self, prefs: Preferences) -> str:
        return FORMAL_SALUTATION if self.is_formal(prefs) else CASUAL_SALUTATION

    def phrase(self, prefs: Preferences, formal: str, casual: str) -> str:
        """Pick the formal or casual variant of a sentence."""
        return formal if self.is_formal(prefs) else casual

    @staticmethod
    def wants_humor(prefs: Preferences, rng: random.Random) -> bool:
        """
        Decide whether this response carries a humor remark.

        The random source is only consulted when the humor dial is high
        enough, so low settings never consume draws.
        """
        if prefs.humor_level < HUMOR_THRESHOLD:
            return False
        return rng.random() < HUMOR_PROBABILITY

    def add_humor(
        self, content: str, prefs: Preferences, rng: random.Random, remark_key: Optional[str]
    ) -> Tuple[str, Optional[str]]:
        """
        Append a domain remark to content when the dice say so.

        Returns:
            (content, remark) where remark is None if nothing was added
        """
        remark = HUMOR_REMARKS.get(remark_key) if remark_key else None
        if not remark or not self.wants_humor(prefs, rng):
            return content, None
        return f"{content} {remark}", remark

    def completion_phrase(self, prefs: Preferences) -> str:
        if not self.is_formal(prefs):
            return "All done!"
        if prefs.british_accent:
            return f"Consider it done, {FORMAL_SALUTATION}."
        return f"It's done, {FORMAL_SALUTATION}."

    def decoration(
        self,
        prefs: Preferences,
        acknowledgment: Optional[str] = None,
        completion: Optional[str] = None,
        humor: Optional[str] = None,
    ) -> Personality:
        """Build the advisory personality block for a response."""
        return Personality(
            greeting=f"{self.greeting()}, {self.salutation(prefs)}.",
            acknowledgment=acknowledgment or self.phrase(prefs, f"Certainly, {FORMAL_SALUTATION}.", "Got it!"),
            completion=completion or self.completion_phrase(prefs),
            humor=humor,
        )

    # ----------------------------------------------------------------------- #
    # General fallback
    # ----------------------------------------------------------------------- #

    def general_response(self, context: Context) -> Response:
        """Greeting reply for commands that matched no intent."""
        prefs = self.resolve_preferences(context)
        greeting = self.greeting()
        salutation = self.salutation(prefs)

        content = f"{greeting}, {salutation}. I'm JARVIS, your personal AI assistant. How may I assist you today?"

        humor = None
        if self.wants_humor(prefs, context.rng):
            humor = context.rng.choice(GENERAL_HUMOR)
            content = f"{content} {humor}"

        return Response(
            status="success",
            type=ResponseType.TEXT,
            data=ResponseData(content=content),
            personality=self.decoration(prefs, humor=humor),
        )
