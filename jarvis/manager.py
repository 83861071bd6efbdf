"""
Process-wide entry point for the command core.

`AgentManager` is the only boundary that swallows unexpected exceptions:
whatever goes wrong while handling one command, the caller gets an error
Response and the process keeps serving.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .agents import CalendarAgent, DocumentAgent, EmailAgent, ResearchAgent, TaskAgent
from .classifier import IntentClassifier
from .config import Settings, get_settings
from .exceptions import ConfigurationError
from .integrations.web import WebPageFetcher
from .llm import CompletionService, OpenAICompletionService
from .models import Context, Response, ResponseData, ResponseType
from .orchestrator import AgentRegistry, IntentGroup, Orchestrator
from .personality import PersonalityEngine
from .storage import DataStore, SupabaseDataStore
from .supabase_client import get_supabase_client
from .tracker import ExecutionTracker
from .vault import CredentialVault

logger = logging.getLogger(__name__)


def apology(activity: str, error: Exception) -> Response:
    return Response(
        status="error",
        type=ResponseType.TEXT,
        data=ResponseData(content=f"I apologize, Sir/Madam. I encountered an error while {activity}."),
        message=str(error) or type(error).__name__,
    )


class AgentManager:
    """Classifies, orchestrates and never raises."""

    def __init__(
        self,
        classifier: IntentClassifier,
        orchestrator: Orchestrator,
        vault: Optional[CredentialVault] = None,
    ):
        self.classifier = classifier
        self.orchestrator = orchestrator
        self.vault = vault

    async def process_user_command(self, text: str, context: Context) -> Response:
        """
        Handle one free-text command end to end.

        Args:
            text: The user's utterance
            context: Caller context

        Returns:
            Response (status "error" on any failure)
        """
        try:
            command = self.classifier.classify(text)
            return await self.orchestrator.execute(command, context)
        except Exception as e:
            logger.exception(f"Failed to process command for user {context.user_id}: {e}")
            return apology("processing your request", e)

    async def execute_task(self, intent: str, params: Dict[str, Any], context: Context) -> Response:
        try:
            return await self.orchestrator.execute_task(intent, params, context)
        except Exception as e:
            logger.exception(f"Failed to execute task {intent} for user {context.user_id}: {e}")
            return apology("executing your task", e)

    async def run_research_workflow(self, query: str, context: Context) -> Response:
        try:
            return await self.orchestrator.run_research_workflow(query, context)
        except Exception as e:
            logger.exception(f"Research workflow failed for user {context.user_id}: {e}")
            return apology("conducting research", e)

    async def save_api_key(self, service_name: str, api_key: str, user_id: str) -> bool:
        """
        Store a user's API key for a service.

        Returns:
            True if saved, False on any failure
        """
        if self.vault is None:
            logger.error("Cannot save API key: credential vault is not configured")
            return False
        try:
            self.vault.save_key(user_id, service_name, api_key)
            return True
        except Exception as e:
            logger.exception(f"Failed to save {service_name} API key for user {user_id}: {e}")
            return False


# --------------------------------------------------------------------------- #
# Wiring
# --------------------------------------------------------------------------- #

def build_vault(store: DataStore, settings: Settings) -> Optional[CredentialVault]:
    """Create the vault, or None when no master key is configured."""
    try:
        master_key = settings.master_key_bytes
    except ValueError as e:
        raise ConfigurationError(str(e)) from e
    if master_key is None:
        logger.warning("JARVIS_MASTER_KEY is not set; stored API keys are unavailable")
        return None
    return CredentialVault(store, master_key)


def build_manager(
    settings: Optional[Settings] = None,
    store: Optional[DataStore] = None,
    llm: Optional[CompletionService] = None,
    fetcher: Optional[WebPageFetcher] = None,
) -> AgentManager:
    """
    Wire the command core once at startup.

    Any collaborator left as None is built from settings.
    """
    settings = settings or get_settings()
    for issue in settings.validate_config():
        logger.warning(f"Config: {issue}")

    store = store or SupabaseDataStore(get_supabase_client(settings))
    llm = llm or OpenAICompletionService(settings)
    fetcher = fetcher or WebPageFetcher(timeout=settings.scrape_timeout)
    vault = build_vault(store, settings)

    personality = PersonalityEngine(
        store,
        default_formality_level=settings.default_formality_level,
        default_humor_level=settings.default_humor_level,
    )
    registry = AgentRegistry({
        IntentGroup.TASK: TaskAgent(store, personality, llm, settings.augmentation_timeout),
        IntentGroup.CALENDAR: CalendarAgent(store, personality, settings.default_event_minutes),
        IntentGroup.EMAIL: EmailAgent(store, personality),
        IntentGroup.DOCUMENT: DocumentAgent(store, personality),
        IntentGroup.RESEARCH: ResearchAgent(store, personality, llm, fetcher, vault),
    })
    orchestrator = Orchestrator(registry, ExecutionTracker(store), personality)
    return AgentManager(IntentClassifier(), orchestrator, vault)
