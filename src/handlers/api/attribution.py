"""Attribution reporting API handler."""

from datetime import datetime, timedelta, timezone
from typing import Any

import structlog

from chatpop.services.reporting import ReportingService
from chatpop.utils.auth import get_auth_context, require_agent_access
from chatpop.utils.exceptions import ForbiddenError, NotFoundError, ValidationError
from chatpop.utils.responses import (
    error,
    forbidden,
    not_found,
    success,
    unauthorized,
    validation_error,
)

logger = structlog.get_logger()

# Period configurations
PERIODS = {
    "7d": 7,
    "30d": 30,
    "90d": 90,
}


def handler(event: dict[str, Any], context: Any) -> dict:
    """Handle attribution reporting requests.

    Routes:
        GET /agents/{agent_id}/attribution/summary?period=7d|30d|90d|all
        GET /agents/{agent_id}/conversations/{conversation_id}/attribution
        GET /agents/{agent_id}/proactive/summary?period=7d|30d|90d|all
    """
    try:
        http_method = event.get("httpMethod", "").upper()
        path = event.get("path", "")
        path_params = event.get("pathParameters", {}) or {}
        agent_id = path_params.get("agent_id")

        try:
            auth = get_auth_context(event)
        except ValueError:
            return unauthorized()

        if not agent_id:
            return error("agent_id is required", 400)
        require_agent_access(auth, agent_id)

        if http_method != "GET":
            return error("Method not allowed", 405)

        service = ReportingService()
        if path.endswith("/attribution/summary"):
            return get_attribution_summary(service, agent_id, event)
        elif path.endswith("/attribution") and "/conversations/" in path:
            return get_conversation_attribution(
                service, agent_id, path_params.get("conversation_id")
            )
        elif path.endswith("/proactive/summary"):
            return get_proactive_summary(service, agent_id, event)
        else:
            return error("Not found", 404)

    except ValidationError as e:
        return validation_error(e.errors)
    except ForbiddenError as e:
        return forbidden(e.message)
    except NotFoundError as e:
        return not_found(e.resource_type, e.resource_id)
    except Exception as e:
        logger.exception("Attribution handler error", error=str(e))
        return error("Internal server error", 500)


def _period_start(event: dict) -> datetime | None:
    """Start of the requested reporting period, None for all time."""
    query_params = event.get("queryStringParameters", {}) or {}
    period = query_params.get("period", "30d")

    if period == "all":
        return None
    if period not in PERIODS:
        raise ValidationError(
            message="Invalid period",
            errors=[{"field": "period", "message": "Use 7d, 30d, 90d, or all"}],
        )
    return datetime.now(timezone.utc) - timedelta(days=PERIODS[period])


def get_attribution_summary(service: ReportingService, agent_id: str, event: dict) -> dict:
    """Get attribution metrics of an agent."""
    metrics = service.attribution_summary(agent_id, since=_period_start(event))
    return success(metrics.to_dict())


def get_conversation_attribution(
    service: ReportingService,
    agent_id: str,
    conversation_id: str | None,
) -> dict:
    """Get the orders and revenue credited to a conversation."""
    if not conversation_id:
        return error("conversation_id is required", 400)
    revenue = service.conversation_attribution(agent_id, conversation_id)
    return success(revenue.to_dict())


def get_proactive_summary(service: ReportingService, agent_id: str, event: dict) -> dict:
    """Get the proactive suggestion funnel of an agent."""
    funnel = service.suggestion_summary(agent_id, since=_period_start(event))
    return success(funnel.to_dict())
