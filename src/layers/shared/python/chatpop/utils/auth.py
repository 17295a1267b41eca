"""Authentication context helpers.

Identity is established upstream by the API Gateway authorizer; these
helpers only read the authorizer context and enforce per-agent access.
"""

from dataclasses import dataclass
from typing import Any

import structlog

from chatpop.utils.exceptions import ForbiddenError

logger = structlog.get_logger()


@dataclass
class AuthContext:
    """Authentication context extracted from API Gateway event."""

    user_id: str
    email: str | None = None
    workspace_id: str | None = None
    agent_ids: list[str] | None = None
    is_admin: bool = False

    def has_agent_access(self, agent_id: str) -> bool:
        """Check if user may read data of a specific agent.

        Args:
            agent_id: The agent ID to check.

        Returns:
            True if user has access, False otherwise.
        """
        if self.is_admin:
            return True
        if not self.agent_ids:
            return False
        return agent_id in self.agent_ids


def _parse_id_list(raw: Any) -> list[str] | None:
    if not raw:
        return None
    if isinstance(raw, str):
        return [value.strip() for value in raw.split(",") if value.strip()]
    if isinstance(raw, list):
        return [str(value) for value in raw]
    return None


def get_auth_context(event: dict[str, Any]) -> AuthContext:
    """Extract authentication context from API Gateway event.

    Args:
        event: API Gateway event dict.

    Returns:
        AuthContext with user information.

    Raises:
        ValueError: If authentication context cannot be extracted.
    """
    request_context = event.get("requestContext", {}) or {}
    authorizer = request_context.get("authorizer", {}) or {}

    # Payload format 2.0 nests Lambda authorizer context
    context = authorizer.get("lambda", authorizer)

    user_id = context.get("userId") or context.get("user_id") or context.get("sub")
    if not user_id:
        logger.warning("No user ID in auth context")
        raise ValueError("No user ID in authentication context")

    is_admin = context.get("isAdmin", False) or context.get("is_admin", False)
    if isinstance(is_admin, str):
        is_admin = is_admin.lower() == "true"

    return AuthContext(
        user_id=user_id,
        email=context.get("email"),
        workspace_id=context.get("workspaceId") or context.get("workspace_id"),
        agent_ids=_parse_id_list(context.get("agentIds") or context.get("agent_ids")),
        is_admin=is_admin,
    )


def require_agent_access(auth: AuthContext, agent_id: str) -> None:
    """Ensure user has access to an agent.

    Args:
        auth: Authentication context.
        agent_id: Agent ID to check access for.

    Raises:
        ForbiddenError: If user doesn't have access.
    """
    if not auth.has_agent_access(agent_id):
        logger.warning(
            "Agent access denied",
            user_id=auth.user_id,
            agent_id=agent_id,
        )
        raise ForbiddenError(
            message=f"You don't have access to agent '{agent_id}'",
            resource_type="Agent",
            action="read",
        )
