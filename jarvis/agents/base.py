"""
Shared plumbing for specialist agents.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional

from ..exceptions import AuthorizationError, NotFoundError, ValidationError
from ..models import AgentType, Command, Context, Preferences, Response, ResponseData, ResponseType
from ..personality import PersonalityEngine
from ..storage import DataStore

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any], Context], Awaitable[Response]]


class BaseAgent(ABC):
    """
    A specialist owns one domain's mutations.

    Subclasses set `agent_type` and register one handler per intent in
    `handlers()`. Handlers raise the domain errors in `exceptions.py`; the
    orchestrator turns them into error responses.
    """

    agent_type: AgentType

    def __init__(self, store: DataStore, personality: PersonalityEngine):
        self.store = store
        self.personality = personality

    @abstractmethod
    def handlers(self) -> Dict[str, Handler]:
        """Map each handled intent to its coroutine."""

    @property
    def intents(self) -> frozenset:
        return frozenset(self.handlers())

    async def execute(self, command: Command, context: Context) -> Response:
        """Dispatch a command to the handler for its intent."""
        handler = self.handlers().get(command.intent or "")
        if handler is None:
            raise ValidationError(
                f"Unknown {self.agent_type.value.lower()} command: {command.intent}",
                details={"intent": command.intent},
            )
        return await handler(dict(command.parameters), context)

    # ----------------------------------------------------------------------- #
    # Helpers
    # ----------------------------------------------------------------------- #

    def preferences(self, context: Context) -> Preferences:
        return self.personality.resolve_preferences(context)

    @staticmethod
    def require(params: Dict[str, Any], *fields: str, message: Optional[str] = None) -> None:
        """Raise ValidationError if any field is missing or empty."""
        missing = [f for f in fields if params.get(f) in (None, "", [])]
        if missing:
            raise ValidationError(
                message or f"Missing required field(s): {', '.join(missing)}",
                details={"missing": missing},
            )

    @staticmethod
    def check_owner(entity: Any, entity_id: str, context: Context, resource: str):
        """Return the entity if it exists and belongs to the caller."""
        if entity is None:
            raise NotFoundError(resource, entity_id)
        if entity.user_id != context.user_id:
            logger.warning(f"User {context.user_id} tried to access {resource} {entity_id}")
            raise AuthorizationError(resource, entity_id)
        return entity

    def success(
        self,
        content: str,
        prefs: Preferences,
        context: Context,
        response_type: ResponseType = ResponseType.TEXT,
        raw_content: Any = None,
        humor_key: Optional[str] = None,
        acknowledgment: Optional[str] = None,
        completion: Optional[str] = None,
        decorate: bool = True,
    ) -> Response:
        """
        Build a success response, rolling for a humor remark.

        Args:
            content: The formal or casual sentence already chosen
            prefs: Resolved preferences
            context: Caller context (source of randomness)
            response_type: Which viewer the caller should render
            raw_content: Entity payload for structured views
            humor_key: Key into HUMOR_REMARKS, or None for no humor
            acknowledgment: Override for the personality acknowledgment
            completion: Override for the personality completion
            decorate: Attach the personality block
        """
        content, humor = self.personality.add_humor(content, prefs, context.rng, humor_key)
        personality = None
        if decorate:
            personality = self.personality.decoration(
                prefs,
                acknowledgment=acknowledgment,
                completion=completion,
                humor=humor,
            )
        return Response(
            status="success",
            type=response_type,
            data=ResponseData(content=content, raw_content=raw_content),
            personality=personality,
        )


def plural(count: int, word: str) -> str:
    """'1 task', '2 tasks'."""
    return f"{count} {word}{'' if count == 1 else 's'}"
