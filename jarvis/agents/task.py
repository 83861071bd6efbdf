"""
Task specialist.

Creates, lists and updates tasks. Top-level tasks are augmented with three
concurrent completion calls (breakdown, time estimate, follow-ups) whose raw
output is stored on the task; the suggestions only become real tasks when
the user asks for `create_subtasks` / `create_followups`.
"""
from __future__ import annotations

import asyncio
import json
import logging
import re
from datetime import time
from typing import Any, Dict, List, Optional

from ..dates import resolve_datetime
from ..exceptions import ValidationError
from ..llm import ChatMessage, CompletionService
from ..models import (
    AgentType,
    Context,
    Priority,
    Response,
    ResponseType,
    Task,
    TaskStatus,
    utcnow,
)
from ..personality import PersonalityEngine
from ..storage import DataStore
from .base import BaseAgent, Handler, plural

logger = logging.getLogger(__name__)

DUE_TIME = time(23, 59)
TASK_RESOURCE = "Task"


# --------------------------------------------------------------------------- #
# Augmentation prompts
# --------------------------------------------------------------------------- #

_JSON_ARRAY_SYSTEM = "You are a task management assistant. Return only valid JSON arrays."
_ESTIMATE_SYSTEM = "You are a time estimation assistant. Return only a number representing minutes."


def _describe(task: Task) -> str:
    return f"Description: {task.description}" if task.description else ""


def breakdown_messages(task: Task) -> List[ChatMessage]:
    return [
        {"role": "system", "content": _JSON_ARRAY_SYSTEM},
        {"role": "user", "content": (
            f'Break down this task into smaller, manageable subtasks: "{task.title}". {_describe(task)} '
            'Return a JSON array of subtask objects with "title" and "description" fields.'
        )},
    ]


def estimate_messages(task: Task) -> List[ChatMessage]:
    return [
        {"role": "system", "content": _ESTIMATE_SYSTEM},
        {"role": "user", "content": (
            f'Estimate the time needed to complete this task in minutes: "{task.title}". {_describe(task)} '
            "Consider complexity and return only a number."
        )},
    ]


def followup_messages(task: Task) -> List[ChatMessage]:
    return [
        {"role": "system", "content": _JSON_ARRAY_SYSTEM},
        {"role": "user", "content": (
            f'Suggest 2-3 follow-up tasks that would be logical after completing: "{task.title}". {_describe(task)} '
            'Return a JSON array of task objects with "title" and "description" fields.'
        )},
    ]


# --------------------------------------------------------------------------- #
# Parsing helpers
# --------------------------------------------------------------------------- #

def parse_estimate(text: Optional[str]) -> Optional[int]:
    """First positive integer in the reply, else None."""
    if not text:
        return None
    for match in re.finditer(r"\d+", text):
        value = int(match.group())
        if value > 0:
            return value
    return None


def parse_suggestions(text: Optional[str]) -> List[Dict[str, Optional[str]]]:
    """
    Parse a stored breakdown/follow-up reply into task suggestions.

    Accepts a JSON array (optionally inside a ``` fence) of objects with a
    "title" and optional "description", or of plain strings.

    Raises:
        ValidationError: If the text is not a usable list of suggestions
    """
    if not text or not text.strip():
        raise ValidationError("No AI suggestions are available for this task")

    cleaned = text.strip()
    fence = re.search(r"```(?:json)?\s*(.*?)```", cleaned, flags=re.DOTALL)
    if fence:
        cleaned = fence.group(1).strip()

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Could not parse AI suggestions: {e.msg}") from e

    if isinstance(data, dict):
        data = data.get("subtasks") or data.get("tasks") or data.get("followups")
    if not isinstance(data, list):
        raise ValidationError("AI suggestions are not a list")

    suggestions = []
    for item in data:
        if isinstance(item, str) and item.strip():
            suggestions.append({"title": item.strip(), "description": None})
        elif isinstance(item, dict) and str(item.get("title") or "").strip():
            suggestions.append({
                "title": str(item["title"]).strip(),
                "description": item.get("description"),
            })

    if not suggestions:
        raise ValidationError("AI suggestions contain no tasks")
    return suggestions


def sort_tasks(tasks: List[Task]) -> List[Task]:
    """Priority descending, due date ascending (undated last), newest first."""
    return sorted(
        tasks,
        key=lambda t: (
            -t.priority.rank,
            t.due_date is None,
            t.due_date.timestamp() if t.due_date else 0.0,
            -t.created_at.timestamp(),
        ),
    )


def _parse_priority(value: Any) -> Priority:
    if isinstance(value, Priority):
        return value
    try:
        return Priority(str(value).upper())
    except ValueError:
        raise ValidationError(f"Invalid priority: {value}", details={"priority": value})


def _parse_status(value: Any) -> TaskStatus:
    if isinstance(value, TaskStatus):
        return value
    normalized = str(value).upper().replace(" ", "_").replace("-", "_")
    try:
        return TaskStatus(normalized)
    except ValueError:
        raise ValidationError(f"Invalid task status: {value}", details={"status": value})


# --------------------------------------------------------------------------- #
# Agent
# --------------------------------------------------------------------------- #

class TaskAgent(BaseAgent):
    agent_type = AgentType.TASK

    def __init__(
        self,
        store: DataStore,
        personality: PersonalityEngine,
        llm: CompletionService,
        augmentation_timeout: float = 20.0,
    ):
        super().__init__(store, personality)
        self.llm = llm
        self.augmentation_timeout = augmentation_timeout

    def handlers(self) -> Dict[str, Handler]:
        return {
            "create_task": self.add_task,
            "list_tasks": self.get_tasks,
            "list_archived_tasks": self.list_archived_tasks,
            "update_task": self.update_task_status,
            "archive_task": self.archive_task,
            "unarchive_task": self.unarchive_task,
            "create_subtasks": self.create_subtasks,
            "create_followups": self.create_followups,
        }

    # ----------------------------------------------------------------------- #
    # Lookups
    # ----------------------------------------------------------------------- #

    def _owned_task(self, task_id: str, context: Context) -> Task:
        return self.check_owner(self.store.get_task(task_id), task_id, context, TASK_RESOURCE)

    def _with_subtasks(self, task: Task) -> Task:
        return task.model_copy(update={"subtasks": sort_tasks(self.store.list_subtasks(task.id))})

    # ----------------------------------------------------------------------- #
    # Augmentation
    # ----------------------------------------------------------------------- #

    async def _complete_soft(self, label: str, messages: List[ChatMessage], temperature: float, max_tokens: int) -> Optional[str]:
        """One augmentation call; any failure or timeout yields None."""
        try:
            return await asyncio.wait_for(
                self.llm.complete(messages, temperature=temperature, max_tokens=max_tokens),
                timeout=self.augmentation_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Task {label} timed out after {self.augmentation_timeout}s")
        except Exception as e:
            logger.warning(f"Task {label} failed: {e}")
        return None

    async def augment(self, task: Task) -> Dict[str, Any]:
        """
        Run breakdown, estimate and follow-up generation concurrently.

        Returns:
            The ai_* fields that came back non-null
        """
        breakdown, estimate, followups = await asyncio.gather(
            self._complete_soft("breakdown", breakdown_messages(task), 0.3, 1000),
            self._complete_soft("estimate", estimate_messages(task), 0.2, 50),
            self._complete_soft("follow-ups", followup_messages(task), 0.4, 1000),
        )

        changes: Dict[str, Any] = {}
        if breakdown:
            changes["ai_breakdown"] = breakdown
        ai_estimate = parse_estimate(estimate)
        if ai_estimate is not None:
            changes["ai_estimate"] = ai_estimate
        if followups:
            changes["ai_followups"] = followups
        return changes

    # ----------------------------------------------------------------------- #
    # Operations
    # ----------------------------------------------------------------------- #

    async def add_task(self, params: Dict[str, Any], context: Context) -> Response:
        """Create a task; top-level tasks also get AI augmentation."""
        self.require(params, "title", message="Task title is required")
        title = str(params["title"]).strip()
        priority = _parse_priority(params.get("priority") or Priority.MEDIUM)

        due_date = None
        if params.get("due_date"):
            due_date = resolve_datetime(params["due_date"], default_time=DUE_TIME)
            if due_date is None:
                logger.info(f"Ignoring unrecognized due date {params['due_date']!r}")

        parent_id = params.get("parent_id")
        if parent_id:
            self._owned_task(parent_id, context)

        task = self.store.insert_task(Task(
            user_id=context.user_id,
            title=title,
            description=params.get("description"),
            priority=priority,
            due_date=due_date,
            estimated_time=params.get("estimated_time"),
            reminder_time=resolve_datetime(params.get("reminder_time")),
            parent_id=parent_id,
        ))
        logger.info(f"Created task {task.id} for user {context.user_id}")

        if not parent_id:
            changes = await self.augment(task)
            if changes:
                task = self.store.update_task(task.id, changes)

        prefs = self.preferences(context)
        content = self.personality.phrase(
            prefs,
            f'I\'ve taken the liberty of creating the task "{title}" for you, Sir/Madam.',
            f'Task "{title}" has been created successfully',
        )
        return self.success(
            content, prefs, context,
            response_type=ResponseType.TASK_LIST,
            raw_content={"task": task},
            humor_key="task_created",
            completion="Task created successfully.",
        )

    async def get_tasks(self, params: Dict[str, Any], context: Context) -> Response:
        """Active top-level tasks with their subtasks."""
        tasks = sort_tasks(self.store.list_tasks(context.user_id, archived=False))
        tasks = [self._with_subtasks(t) for t in tasks]
        prefs = self.preferences(context)

        if not tasks:
            content = self.personality.phrase(
                prefs,
                "You have no tasks at the moment, Sir/Madam. Would you like me to help you create some?",
                "You have no tasks. Want to add some?",
            )
        else:
            pending = sum(1 for t in tasks if t.status == TaskStatus.PENDING)
            in_progress = sum(1 for t in tasks if t.status == TaskStatus.IN_PROGRESS)
            completed = sum(1 for t in tasks if t.status == TaskStatus.COMPLETED)
            content = self.personality.phrase(
                prefs,
                f"You have {plural(pending, 'pending task')}, {in_progress} in progress, "
                f"and {plural(completed, 'completed task')}.",
                f"You have {plural(len(tasks), 'task')}",
            )

        return self.success(
            content, prefs, context,
            response_type=ResponseType.TASK_LIST,
            raw_content={"tasks": tasks},
            decorate=False,
        )

    async def list_archived_tasks(self, params: Dict[str, Any], context: Context) -> Response:
        tasks = self.store.list_tasks(context.user_id, archived=True)
        tasks = sorted(tasks, key=lambda t: t.archived_at or t.updated_at, reverse=True)
        tasks = [self._with_subtasks(t) for t in tasks]
        prefs = self.preferences(context)

        if not tasks:
            content = self.personality.phrase(
                prefs,
                "Your archive is empty, Sir/Madam.",
                "Nothing in the archive.",
            )
        else:
            content = self.personality.phrase(
                prefs,
                f"You have {plural(len(tasks), 'archived task')}, Sir/Madam.",
                f"{plural(len(tasks), 'archived task')}",
            )

        return self.success(
            content, prefs, context,
            response_type=ResponseType.TASK_LIST,
            raw_content={"tasks": tasks},
            decorate=False,
        )

    async def update_task_status(self, params: Dict[str, Any], context: Context) -> Response:
        """Change a task's status. Completing a task also archives it."""
        self.require(params, "task_id", "status", message="Task ID and status are required")
        status = _parse_status(params["status"])
        task = self._owned_task(params["task_id"], context)

        now = utcnow()
        changes: Dict[str, Any] = {
            "status": status,
            "completed_at": now if status == TaskStatus.COMPLETED else None,
            "updated_at": now,
        }
        if status == TaskStatus.COMPLETED and not task.is_archived:
            changes["is_archived"] = True
            changes["archived_at"] = now

        updated = self.store.update_task(task.id, changes)

        prefs = self.preferences(context)
        content = self.personality.phrase(
            prefs,
            f'I\'ve updated the task "{updated.title}" to {status.value.lower().replace("_", " ")}, Sir/Madam.',
            f'Task "{updated.title}" status updated to {status.value}',
        )
        humor_key = {
            TaskStatus.COMPLETED: "task_completed",
            TaskStatus.IN_PROGRESS: "task_in_progress",
        }.get(status)

        return self.success(
            content, prefs, context,
            response_type=ResponseType.TASK_LIST,
            raw_content={"task": updated},
            humor_key=humor_key,
            completion="Task status updated successfully.",
        )

    async def archive_task(self, params: Dict[str, Any], context: Context) -> Response:
        return await self._set_archived(params, context, archived=True)

    async def unarchive_task(self, params: Dict[str, Any], context: Context) -> Response:
        return await self._set_archived(params, context, archived=False)

    async def _set_archived(self, params: Dict[str, Any], context: Context, archived: bool) -> Response:
        self.require(params, "task_id", message="Task ID is required")
        task = self._owned_task(params["task_id"], context)

        now = utcnow()
        updated = self.store.update_task(task.id, {
            "is_archived": archived,
            "archived_at": now if archived else None,
            "updated_at": now,
        })

        prefs = self.preferences(context)
        if archived:
            content = self.personality.phrase(
                prefs,
                f'I\'ve archived the task "{updated.title}", Sir/Madam.',
                f'Task "{updated.title}" archived',
            )
        else:
            content = self.personality.phrase(
                prefs,
                f'I\'ve restored the task "{updated.title}" from the archive, Sir/Madam.',
                f'Task "{updated.title}" unarchived',
            )

        return self.success(
            content, prefs, context,
            response_type=ResponseType.TASK_LIST,
            raw_content={"task": updated},
            humor_key="task_archived" if archived else "task_restored",
        )

    async def create_subtasks(self, params: Dict[str, Any], context: Context) -> Response:
        """
        Materialize the stored breakdown as child tasks.

        Every call creates a fresh set of children; nothing checks whether
        the breakdown was materialized before.
        """
        self.require(params, "task_id", message="Task ID is required")
        task = self._owned_task(params["task_id"], context)
        suggestions = parse_suggestions(task.ai_breakdown)

        created = [
            self.store.insert_task(Task(
                user_id=context.user_id,
                title=s["title"],
                description=s["description"],
                priority=task.priority,
                due_date=task.due_date,
                parent_id=task.id,
            ))
            for s in suggestions
        ]
        logger.info(f"Created {len(created)} subtasks under task {task.id}")

        prefs = self.preferences(context)
        content = self.personality.phrase(
            prefs,
            f'I\'ve created {plural(len(created), "subtask")} for "{task.title}", Sir/Madam.',
            f'Added {plural(len(created), "subtask")} to "{task.title}"',
        )
        return self.success(
            content, prefs, context,
            response_type=ResponseType.TASK_LIST,
            raw_content={"task": self._with_subtasks(task), "created": created},
            humor_key="subtasks_created",
        )

    async def create_followups(self, params: Dict[str, Any], context: Context) -> Response:
        """Materialize the stored follow-up suggestions as top-level tasks."""
        self.require(params, "task_id", message="Task ID is required")
        task = self._owned_task(params["task_id"], context)
        suggestions = parse_suggestions(task.ai_followups)

        created = [
            self.store.insert_task(Task(
                user_id=context.user_id,
                title=s["title"],
                description=s["description"],
                priority=task.priority,
            ))
            for s in suggestions
        ]
        logger.info(f"Created {len(created)} follow-up tasks from task {task.id}")

        prefs = self.preferences(context)
        content = self.personality.phrase(
            prefs,
            f'I\'ve added {plural(len(created), "follow-up task")} after "{task.title}", Sir/Madam.',
            f'Added {plural(len(created), "follow-up task")}',
        )
        return self.success(
            content, prefs, context,
            response_type=ResponseType.TASK_LIST,
            raw_content={"task": task, "created": created},
            humor_key="followups_created",
        )
