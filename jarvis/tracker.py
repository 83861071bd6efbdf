"""
Execution tracking.

Every command gets exactly one ExecutionRecord in the data store. The record
moves PENDING -> RUNNING -> COMPLETED | FAILED and never leaves a terminal
state.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from pydantic import BaseModel
from pydantic_core import to_jsonable_python

from .exceptions import InvalidTransitionError
from .models import AgentType, Command, Context, ExecutionRecord, ExecutionStatus, utcnow
from .storage import DataStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

_ALLOWED_TRANSITIONS = {
    ExecutionStatus.PENDING: {ExecutionStatus.RUNNING},
    ExecutionStatus.RUNNING: {ExecutionStatus.COMPLETED, ExecutionStatus.FAILED},
    ExecutionStatus.COMPLETED: set(),
    ExecutionStatus.FAILED: set(),
}


def _to_json(value: Any) -> Optional[str]:
    """Serialize parameters or results for the record's text columns."""
    if value is None:
        return None
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json", by_alias=True, exclude_none=True)
    return json.dumps(to_jsonable_python(value, fallback=str))


class ExecutionTracker:
    """Persists the lifecycle of each command execution."""

    def __init__(self, store: DataStore):
        self.store = store

    # ----------------------------------------------------------------------- #
    # Transitions
    # ----------------------------------------------------------------------- #

    def start(self, agent_type: AgentType, command: Command, context: Context) -> ExecutionRecord:
        """Insert a PENDING record for a command."""
        record = ExecutionRecord(
            user_id=context.user_id,
            agent_type=agent_type,
            command=command.text,
            intent=command.intent,
            parameters=_to_json(command.parameters) if command.parameters else None,
        )
        return self.store.insert_execution(record)

    def transition(
        self,
        record: ExecutionRecord,
        status: ExecutionStatus,
        result: Any = None,
        error: Optional[str] = None,
    ) -> ExecutionRecord:
        """
        Move a record to a new status.

        Raises:
            InvalidTransitionError: If the move is not PENDING->RUNNING or
                RUNNING->COMPLETED/FAILED
        """
        if status not in _ALLOWED_TRANSITIONS[record.status]:
            raise InvalidTransitionError(
                f"Cannot move execution {record.id} from {record.status.value} to {status.value}",
                details={"execution_id": record.id},
            )

        changes: Dict[str, Any] = {"status": status}
        if status == ExecutionStatus.RUNNING:
            changes["started_at"] = utcnow()
        if status.is_terminal:
            changes["completed_at"] = utcnow()
        if result is not None:
            changes["result"] = _to_json(result)
        if error is not None:
            changes["error"] = error

        return self.store.update_execution(record.id, changes)

    # ----------------------------------------------------------------------- #
    # Wrapper
    # ----------------------------------------------------------------------- #

    async def track(
        self,
        agent_type: AgentType,
        command: Command,
        context: Context,
        operation: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Run an operation under a tracked execution record.

        Args:
            agent_type: Component the record belongs to
            command: The command being executed
            context: Caller context (user id)
            operation: Zero-argument coroutine function to run

        Returns:
            Whatever the operation returns

        Raises:
            Whatever the operation raises, after the record is marked FAILED
        """
        record = self.start(agent_type, command, context)
        record = self.transition(record, ExecutionStatus.RUNNING)

        try:
            result = await operation()
        except Exception as e:
            logger.warning(f"Execution {record.id} ({agent_type.value}/{command.intent}) failed: {e}")
            self.transition(record, ExecutionStatus.FAILED, error=str(e) or type(e).__name__)
            raise

        self.transition(record, ExecutionStatus.COMPLETED, result=result)
        return result
