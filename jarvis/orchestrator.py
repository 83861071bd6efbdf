"""
Command orchestration.

Routes a classified command to the specialist that owns its intent group,
under one tracked execution record. Commands without an intent get the
general greeting reply.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, Mapping, Optional

from .agents.base import BaseAgent
from .exceptions import DOMAIN_ERRORS, ConfigurationError, JarvisError
from .models import AgentType, Command, Context, Response, ResponseData, ResponseType
from .personality import PersonalityEngine
from .tracker import ExecutionTracker

logger = logging.getLogger(__name__)


# --------------------------------------------------------------------------- #
# Intent groups
# --------------------------------------------------------------------------- #

class IntentGroup(str, Enum):
    TASK = "task"
    CALENDAR = "calendar"
    EMAIL = "email"
    DOCUMENT = "document"
    RESEARCH = "research"


INTENT_GROUPS: Dict[str, IntentGroup] = {
    "create_task": IntentGroup.TASK,
    "list_tasks": IntentGroup.TASK,
    "list_archived_tasks": IntentGroup.TASK,
    "update_task": IntentGroup.TASK,
    "archive_task": IntentGroup.TASK,
    "unarchive_task": IntentGroup.TASK,
    "create_subtasks": IntentGroup.TASK,
    "create_followups": IntentGroup.TASK,

    "create_event": IntentGroup.CALENDAR,
    "list_events": IntentGroup.CALENDAR,
    "find_slots": IntentGroup.CALENDAR,

    "draft_email": IntentGroup.EMAIL,
    "send_email": IntentGroup.EMAIL,
    "summarize_inbox": IntentGroup.EMAIL,

    "create_document": IntentGroup.DOCUMENT,
    "create_report": IntentGroup.DOCUMENT,
    "summarize_document": IntentGroup.DOCUMENT,

    "web_search": IntentGroup.RESEARCH,
    "research": IntentGroup.RESEARCH,
    "scrape_url": IntentGroup.RESEARCH,
    "summarize_web_page": IntentGroup.RESEARCH,
    "ask_llm": IntentGroup.RESEARCH,
}


class AgentRegistry:
    """
    Immutable intent-group -> specialist mapping, built once at startup.

    Raises ConfigurationError at construction if any group is left without
    an agent, so dispatch never has to handle a missing specialist.
    """

    def __init__(self, agents: Mapping[IntentGroup, BaseAgent]):
        missing = [group.value for group in IntentGroup if group not in agents]
        if missing:
            raise ConfigurationError(
                f"No agent registered for intent group(s): {', '.join(missing)}",
                details={"missing": missing},
            )
        self._agents: Dict[IntentGroup, BaseAgent] = dict(agents)

    def agent_for(self, group: IntentGroup) -> BaseAgent:
        return self._agents[group]

    def __contains__(self, group: object) -> bool:
        return group in self._agents

    def __len__(self) -> int:
        return len(self._agents)


def error_response(error: JarvisError) -> Response:
    """Convert a domain error into the error response shape."""
    return Response(
        status="error",
        type=ResponseType.TEXT,
        data=ResponseData(content=error.message),
        message=error.message,
    )


# --------------------------------------------------------------------------- #
# Orchestrator
# --------------------------------------------------------------------------- #

class Orchestrator:
    """Routes commands to specialists and tracks each one."""

    def __init__(
        self,
        registry: AgentRegistry,
        tracker: ExecutionTracker,
        personality: PersonalityEngine,
        intent_groups: Optional[Mapping[str, IntentGroup]] = None,
    ):
        self.registry = registry
        self.tracker = tracker
        self.personality = personality
        self.intent_groups = dict(intent_groups or INTENT_GROUPS)

    def group_for(self, intent: Optional[str]) -> Optional[IntentGroup]:
        if not intent:
            return None
        return self.intent_groups.get(intent)

    async def execute(self, command: Command, context: Context) -> Response:
        """
        Execute a classified command.

        Domain errors come back as error responses; anything else propagates
        (the execution record is marked FAILED either way).

        Args:
            command: Classified command
            context: Caller context

        Returns:
            The specialist's response, or the general reply when the intent
            is missing or not routed
        """
        group = self.group_for(command.intent)

        if group is None:
            if command.intent:
                logger.info(f"Intent {command.intent!r} has no group, using general reply")

            async def general() -> Response:
                return self.personality.general_response(context)

            return await self.tracker.track(AgentType.ORCHESTRATOR, command, context, general)

        agent = self.registry.agent_for(group)
        try:
            return await self.tracker.track(
                agent.agent_type,
                command,
                context,
                lambda: agent.execute(command, context),
            )
        except DOMAIN_ERRORS as e:
            logger.info(f"{agent.agent_type.value} rejected {command.intent}: {e.message}")
            return error_response(e)

    async def execute_task(self, intent: str, params: Dict, context: Context) -> Response:
        """Run an intent directly with explicit parameters."""
        command = Command(text=f"Execute task: {intent}", intent=intent, parameters=params)
        return await self.execute(command, context)

    async def run_research_workflow(self, query: str, context: Context) -> Response:
        command = Command(text=f"Research: {query}", intent="research", parameters={"query": query})
        return await self.execute(command, context)
