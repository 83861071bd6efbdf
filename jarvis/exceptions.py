"""
Exceptions raised by the Jarvis command core.

Specialists raise the domain errors below; the orchestrator turns them into
error responses and the manager turns anything else into a generic apology.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class JarvisError(Exception):
    """Base exception for all Jarvis errors."""

    code = "JARVIS_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(JarvisError):
    """A required field is missing or malformed."""

    code = "VALIDATION_ERROR"


class AuthorizationError(JarvisError):
    """The entity belongs to another user."""

    code = "AUTHORIZATION_ERROR"

    def __init__(self, resource: str, resource_id: str) -> None:
        super().__init__(
            f"Unauthorized to access this {resource.lower()}",
            details={"resource": resource, "resource_id": resource_id},
        )


class NotFoundError(JarvisError):
    """The entity id does not exist."""

    code = "NOT_FOUND"

    def __init__(self, resource: str, resource_id: Optional[str] = None) -> None:
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' not found"
        super().__init__(message, details={"resource": resource, "resource_id": resource_id})


class ExternalServiceError(JarvisError):
    """The completion or search service failed."""

    code = "EXTERNAL_SERVICE_ERROR"

    def __init__(self, service: str, message: str) -> None:
        super().__init__(f"{service} failed: {message}", details={"service": service})
        self.service = service


class CredentialError(JarvisError):
    """A stored API key could not be encrypted or decrypted."""

    code = "CREDENTIAL_ERROR"


class ConfigurationError(JarvisError):
    """The process was wired with missing or invalid settings."""

    code = "CONFIGURATION_ERROR"


class InvalidTransitionError(JarvisError):
    """An execution record was asked to move backwards or out of a terminal state."""

    code = "INVALID_TRANSITION"


# Errors a specialist raises on purpose. Anything else is unexpected.
DOMAIN_ERRORS = (
    ValidationError,
    AuthorizationError,
    NotFoundError,
    ExternalServiceError,
    CredentialError,
)
