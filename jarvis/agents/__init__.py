"""
Specialist agents, one per intent group.
"""

from .base import BaseAgent
from .calendar import CalendarAgent
from .document import DocumentAgent
from .email import EmailAgent
from .research import ResearchAgent
from .task import TaskAgent

__all__ = [
    "BaseAgent",
    "CalendarAgent",
    "DocumentAgent",
    "EmailAgent",
    "ResearchAgent",
    "TaskAgent",
]
