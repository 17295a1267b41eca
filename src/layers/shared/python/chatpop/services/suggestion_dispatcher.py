"""Suggestion dispatcher.

Turns a trigger firing into exactly one ProactiveSuggestion per visitor
session and hands the message to the chat surface. Engagement flags on the
suggestion only ever move from false to true.
"""

from typing import Callable

import structlog

from chatpop.models.suggestion import EngagementFlag, ProactiveSuggestion
from chatpop.repositories.suggestion import ProactiveSuggestionRepository
from chatpop.services.trigger_evaluator import SessionState, TriggerFiring
from chatpop.utils.exceptions import ConflictError

logger = structlog.get_logger()

SuggestionCallback = Callable[[str, float], None]


class SuggestionDispatcher:
    """Dispatches at most one proactive suggestion per session."""

    def __init__(
        self,
        repo: ProactiveSuggestionRepository | None = None,
        on_suggestion_fired: SuggestionCallback | None = None,
    ):
        """Initialize the dispatcher.

        Args:
            repo: Suggestion store.
            on_suggestion_fired: Chat-surface callback receiving the message
                and its confidence.
        """
        self._repo = repo
        self.on_suggestion_fired = on_suggestion_fired
        self.logger = logger.bind(service="suggestion_dispatcher")

    @property
    def repo(self) -> ProactiveSuggestionRepository:
        """Get suggestion repository (lazy init)."""
        if self._repo is None:
            self._repo = ProactiveSuggestionRepository()
        return self._repo

    def dispatch(self, session: SessionState, firing: TriggerFiring) -> ProactiveSuggestion | None:
        """Record and surface the suggestion of a fired session.

        The session ID is the idempotency token: a session whose token is
        already consumed, or that already has a stored suggestion, is a
        silent no-op.

        Args:
            session: The session that fired.
            firing: What fired.

        Returns:
            The new suggestion, or None if one was already dispatched.
        """
        if session.suggestion_dispatched:
            self.logger.debug("Suggestion already dispatched", session_id=session.session_id)
            return None

        suggestion = ProactiveSuggestion(
            session_id=session.session_id,
            agent_id=session.agent_id,
            trigger_id=firing.trigger_id,
            suggestion_type=firing.suggestion_type,
            suggested_message=firing.message,
            confidence=firing.confidence,
            behavioral_triggers=firing.evidence(),
        )

        try:
            self.repo.create_once(suggestion)
        except ConflictError:
            session.suggestion_dispatched = True
            self.logger.info(
                "Duplicate suggestion attempt ignored",
                session_id=session.session_id,
                trigger_id=firing.trigger_id,
            )
            return None

        session.suggestion_dispatched = True
        self.logger.info(
            "Proactive suggestion dispatched",
            session_id=session.session_id,
            suggestion_type=suggestion.suggestion_type,
            confidence=suggestion.confidence,
        )

        if self.on_suggestion_fired is not None:
            try:
                self.on_suggestion_fired(suggestion.suggested_message, suggestion.confidence)
            except Exception as e:
                self.logger.exception(
                    "Suggestion callback failed",
                    session_id=session.session_id,
                    error=str(e),
                )

        return suggestion

    def record_shown(self, agent_id: str, session_id: str) -> ProactiveSuggestion:
        """Mark the session's suggestion as shown."""
        return self.repo.set_flag(agent_id, session_id, EngagementFlag.SHOWN)

    def record_clicked(self, agent_id: str, session_id: str) -> ProactiveSuggestion:
        """Mark the session's suggestion as clicked (implies shown)."""
        return self.repo.set_flag(agent_id, session_id, EngagementFlag.CLICKED)

    def record_conversation_started(self, agent_id: str, session_id: str) -> ProactiveSuggestion:
        """Mark that the suggestion led to a conversation (implies clicked)."""
        return self.repo.set_flag(agent_id, session_id, EngagementFlag.CONVERSATION_STARTED)
