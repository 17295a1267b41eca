"""Custom exception classes for ChatPop."""


class ChatPopError(Exception):
    """Base exception for all ChatPop errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int = 500,
        details: dict | None = None,
    ):
        """Initialize ChatPopError.

        Args:
            message: Human-readable error message.
            error_code: Machine-readable error code.
            status_code: HTTP status code for API responses.
            details: Additional error details.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "INTERNAL_ERROR"
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert exception to dictionary for API response."""
        result = {
            "error": True,
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class NotFoundError(ChatPopError):
    """Raised when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        message: str | None = None,
    ):
        """Initialize NotFoundError.

        Args:
            resource_type: Type of resource (e.g., "Conversation", "Order").
            resource_id: ID of the resource that was not found.
            message: Optional custom message.
        """
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            message=message or f"{resource_type} with ID '{resource_id}' not found",
            error_code="NOT_FOUND",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


def _pydantic_errors(exc: Exception) -> list[dict]:
    errors = []
    if hasattr(exc, "errors"):
        for error in exc.errors():
            errors.append(
                {
                    "field": ".".join(str(loc) for loc in error.get("loc", [])),
                    "message": error.get("msg", "Invalid value"),
                    "type": error.get("type", "unknown"),
                }
            )
    return errors


class ValidationError(ChatPopError):
    """Raised when input validation fails."""

    def __init__(
        self,
        message: str = "Validation failed",
        errors: list[dict] | None = None,
    ):
        """Initialize ValidationError.

        Args:
            message: Error message.
            errors: List of validation errors with field and message.
        """
        self.errors = errors or []
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=400,
            details={"errors": self.errors},
        )

    @classmethod
    def from_pydantic(cls, exc: Exception) -> "ValidationError":
        """Create ValidationError from Pydantic ValidationError."""
        return cls(message="Validation failed", errors=_pydantic_errors(exc))


class ForbiddenError(ChatPopError):
    """Raised when user lacks permission for an action."""

    def __init__(
        self,
        message: str = "You don't have permission to perform this action",
        resource_type: str | None = None,
        action: str | None = None,
    ):
        """Initialize ForbiddenError."""
        details = {}
        if resource_type:
            details["resource_type"] = resource_type
        if action:
            details["action"] = action

        super().__init__(
            message=message,
            error_code="FORBIDDEN",
            status_code=403,
            details=details if details else None,
        )


class ConflictError(ChatPopError):
    """Raised when a conditional write loses (duplicate or version mismatch)."""

    def __init__(
        self,
        message: str = "Resource conflict",
        conflict_type: str | None = None,
    ):
        """Initialize ConflictError."""
        super().__init__(
            message=message,
            error_code="CONFLICT",
            status_code=409,
            details={"conflict_type": conflict_type} if conflict_type else None,
        )


class ConfigurationError(ChatPopError):
    """Raised when a tenant-authored configuration entry is malformed.

    Evaluation code catches this per entry and skips the entry.
    """

    def __init__(
        self,
        message: str = "Invalid configuration",
        entry_id: str | None = None,
        errors: list[dict] | None = None,
    ):
        """Initialize ConfigurationError.

        Args:
            message: Error message.
            entry_id: ID of the offending configuration entry, when known.
            errors: Field-level validation errors.
        """
        self.entry_id = entry_id
        self.errors = errors or []
        details: dict = {"errors": self.errors}
        if entry_id:
            details["entry_id"] = entry_id

        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            status_code=422,
            details=details,
        )

    @classmethod
    def from_pydantic(cls, exc: Exception, entry_id: str | None = None) -> "ConfigurationError":
        """Create ConfigurationError from Pydantic ValidationError."""
        return cls(
            message="Invalid configuration entry",
            entry_id=entry_id,
            errors=_pydantic_errors(exc),
        )
