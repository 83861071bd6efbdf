"""
Jarvis command core - Python package.

This package contains:
- Pattern-based intent classification
- Orchestration of task, calendar, email, document and research specialists
- Execution tracking in the data store
- Personality-driven response wording
- Encrypted per-user API key storage
"""

__all__ = [
    "models",
    "config",
    "exceptions",
    "storage",
    "llm",
    "vault",
    "classifier",
    "tracker",
    "personality",
    "agents",
    "orchestrator",
    "manager",
]
