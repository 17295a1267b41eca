"""Utility functions and helpers."""

from chatpop.utils.auth import AuthContext, get_auth_context, require_agent_access
from chatpop.utils.exceptions import (
    ChatPopError,
    ConfigurationError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from chatpop.utils.responses import created, error, not_found, success, validation_error

__all__ = [
    # Response helpers
    "success",
    "created",
    "error",
    "validation_error",
    "not_found",
    # Auth
    "get_auth_context",
    "require_agent_access",
    "AuthContext",
    # Exceptions
    "ChatPopError",
    "ConfigurationError",
    "ConflictError",
    "ForbiddenError",
    "NotFoundError",
    "ValidationError",
]
