"""Public visitor behavior API handler (no authentication required).

Called by the embeddable chat widget running on tenant sites.
"""

import json
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from chatpop.models.visitor_session import TrackBehaviorRequest
from chatpop.repositories.proactive_config import ProactiveConfigRepository
from chatpop.repositories.suggestion import ProactiveSuggestionRepository
from chatpop.repositories.visitor_session import BehaviorEventRepository, VisitorSessionRepository
from chatpop.services.suggestion_dispatcher import SuggestionDispatcher
from chatpop.services.trigger_evaluator import SessionState, TriggerEvaluator
from chatpop.utils.exceptions import NotFoundError, ValidationError
from chatpop.utils.rate_limiter import check_rate_limit, rate_limit_response
from chatpop.utils.responses import created, error, success, validation_error

logger = structlog.get_logger()

FEEDBACK_ACTIONS = ("shown", "clicked", "conversation_started")


def handler(event: dict[str, Any], context: Any) -> dict:
    """Handle public visitor behavior requests.

    Routes:
        POST /public/behavior            - Record a behavior event
        POST /public/proactive/analyze   - Evaluate triggers for a session
        POST /public/proactive/feedback  - Report shown/clicked/conversation_started
    """
    try:
        http_method = event.get("httpMethod", "").upper()
        path = event.get("path", "")

        if http_method != "POST":
            return error("Method not allowed", 405, public=True)

        if path.endswith("/public/behavior"):
            return track_behavior(event)
        elif path.endswith("/public/proactive/analyze"):
            return analyze_session(event)
        elif path.endswith("/public/proactive/feedback"):
            return record_feedback(event)
        else:
            return error("Not found", 404, public=True)

    except ValueError as e:
        return error(str(e), 400, public=True)
    except Exception as e:
        logger.exception("Visitor behavior handler error", error=str(e))
        return error("Internal server error", 500, public=True)


def _parse_body(event: dict) -> dict:
    try:
        body = json.loads(event.get("body") or "{}")
    except json.JSONDecodeError:
        raise ValueError("Invalid JSON body")
    if not isinstance(body, dict):
        raise ValueError("Request body must be a JSON object")
    return body


def _require(body: dict, *fields: str) -> list[str]:
    values = []
    for name in fields:
        value = body.get(name)
        if not value or not isinstance(value, str):
            raise ValueError(f"{name} is required")
        values.append(value)
    return values


def track_behavior(event: dict) -> dict:
    """Record one behavior event and update the visitor session."""
    body = _parse_body(event)
    try:
        request = TrackBehaviorRequest.model_validate(body)
    except PydanticValidationError as e:
        return validation_error(ValidationError.from_pydantic(e).errors, public=True)

    limit = check_rate_limit(request.session_id, "track_behavior")
    if not limit.allowed:
        return rate_limit_response(limit.retry_after or 60)

    session = VisitorSessionRepository().record_activity(
        agent_id=request.agent_id,
        session_id=request.session_id,
        event_type=request.event_type,
        page_url=request.page_url,
        time_on_page_seconds=request.time_on_page_seconds,
        user_agent=request.user_agent,
        referrer=request.referrer,
    )
    behavior_event = BehaviorEventRepository().append(request.to_event())

    logger.info(
        "Behavior event tracked",
        agent_id=request.agent_id,
        session_id=request.session_id,
        event_type=behavior_event.event_type,
    )

    return created(
        {
            "event_id": behavior_event.id,
            "session_id": session.session_id,
            "total_page_views": session.total_page_views,
        },
        public=True,
    )


def _no_suggestion(display_duration_ms: int | None = None) -> dict:
    return success(
        {
            "triggered": False,
            "suggestion": None,
            "message_display_duration_ms": display_duration_ms,
        },
        public=True,
    )


def analyze_session(event: dict) -> dict:
    """Evaluate a session's triggers and dispatch a suggestion if one fires.

    Malformed requests and engine failures are logged and answered with
    "no suggestion" so the widget never shows an error to the visitor.
    """
    try:
        agent_id, session_id = _require(_parse_body(event), "agent_id", "session_id")
    except ValueError as e:
        logger.warning("Ignoring malformed analyze request", error=str(e))
        return _no_suggestion()

    try:
        config = ProactiveConfigRepository().get_or_default(agent_id)
        if not config.enabled:
            return _no_suggestion(config.message_display_duration_ms)

        suggestion_repo = ProactiveSuggestionRepository()
        if suggestion_repo.get_for_session(agent_id, session_id):
            return _no_suggestion(config.message_display_duration_ms)

        session_record = VisitorSessionRepository().get_session(agent_id, session_id)
        if session_record is None:
            return _no_suggestion(config.message_display_duration_ms)

        events = BehaviorEventRepository().list_for_session(session_id)
        session = SessionState.from_visitor_session(session_record, events)

        firing = TriggerEvaluator(config).evaluate(session)
        if firing is None:
            return _no_suggestion(config.message_display_duration_ms)

        suggestion = SuggestionDispatcher(repo=suggestion_repo).dispatch(session, firing)
        if suggestion is None:
            return _no_suggestion(config.message_display_duration_ms)

    except Exception as e:
        logger.exception(
            "Proactive analysis failed",
            agent_id=agent_id,
            session_id=session_id,
            error=str(e),
        )
        return _no_suggestion()

    return success(
        {
            "triggered": True,
            "suggestion": {
                "message": suggestion.suggested_message,
                "confidence": suggestion.confidence,
                "suggestion_type": suggestion.suggestion_type,
                "trigger_id": suggestion.trigger_id,
            },
            "message_display_duration_ms": config.message_display_duration_ms,
        },
        public=True,
    )


def record_feedback(event: dict) -> dict:
    """Record that a suggestion was shown, clicked, or started a conversation."""
    body = _parse_body(event)
    agent_id, session_id, action = _require(body, "agent_id", "session_id", "action")

    if action not in FEEDBACK_ACTIONS:
        raise ValueError(f"action must be one of: {', '.join(FEEDBACK_ACTIONS)}")

    dispatcher = SuggestionDispatcher()
    recorders = {
        "shown": dispatcher.record_shown,
        "clicked": dispatcher.record_clicked,
        "conversation_started": dispatcher.record_conversation_started,
    }

    try:
        suggestion = recorders[action](agent_id, session_id)
    except NotFoundError as e:
        return error(e.message, 404, error_code=e.error_code, public=True)

    return success(
        {
            "session_id": session_id,
            "was_shown": suggestion.was_shown,
            "was_clicked": suggestion.was_clicked,
            "conversation_started": suggestion.conversation_started,
        },
        public=True,
    )
