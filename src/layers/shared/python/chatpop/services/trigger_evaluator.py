"""Proactive trigger evaluator.

Evaluates one visitor session against an agent's trigger definitions and
decides whether a proactive suggestion should fire.

States:
- IDLE: Waiting for the next tick
- EVALUATING: A tick is checking the definitions
- FIRED: A trigger fired; the session is never evaluated again

Transitions:
- IDLE → EVALUATING: On each tick while the session is eligible
- EVALUATING → IDLE: No eligible definition fired
- EVALUATING → FIRED: A definition fired
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable
from urllib.parse import urlsplit

import structlog

from chatpop.config import EngineSettings
from chatpop.models.base import ensure_utc, utc_now
from chatpop.models.trigger import (
    BaseTriggerDefinition,
    ProactiveConfig,
    TriggerSource,
    TriggerType,
    parse_trigger_definition,
)
from chatpop.models.visitor_session import BehaviorEvent, BehaviorEventType, VisitorSession
from chatpop.services.signals import element_visible_duration, max_scroll_depth, time_elapsed
from chatpop.utils.exceptions import ConfigurationError

logger = structlog.get_logger()


class EvaluatorState(str, Enum):
    """Evaluator states of a session."""

    IDLE = "idle"
    EVALUATING = "evaluating"
    FIRED = "fired"


_ALLOWED_TRANSITIONS = {
    EvaluatorState.IDLE: {EvaluatorState.EVALUATING},
    EvaluatorState.EVALUATING: {EvaluatorState.IDLE, EvaluatorState.FIRED},
    EvaluatorState.FIRED: set(),
}


@dataclass
class SessionState:
    """Mutable per-session state owned by one evaluator loop."""

    session_id: str
    agent_id: str
    started_at: datetime = field(default_factory=utc_now)
    current_page_url: str = ""
    total_page_views: int = 0
    events: list[BehaviorEvent] = field(default_factory=list)
    state: EvaluatorState = EvaluatorState.IDLE
    fired_trigger_id: str | None = None
    suggestion_dispatched: bool = False

    @classmethod
    def from_visitor_session(
        cls,
        session: VisitorSession,
        events: list[BehaviorEvent],
    ) -> "SessionState":
        """Rebuild evaluator state from stored session data."""
        return cls(
            session_id=session.session_id,
            agent_id=session.agent_id,
            started_at=ensure_utc(session.created_at),
            current_page_url=session.current_page_url or "",
            total_page_views=session.total_page_views,
            events=list(events),
        )

    @property
    def is_fired(self) -> bool:
        return self.state == EvaluatorState.FIRED

    def record_event(self, event: BehaviorEvent) -> None:
        """Apply an incoming event to the local counters."""
        self.events.append(event)
        if event.page_url:
            self.current_page_url = event.page_url
        if event.event_type == BehaviorEventType.PAGE_VIEW:
            self.total_page_views += 1

    def transition_to(self, new_state: EvaluatorState) -> None:
        """Transition to a new state.

        Args:
            new_state: New evaluator state.

        Raises:
            ValueError: If the transition is not allowed.
        """
        old_state = self.state
        if new_state not in _ALLOWED_TRANSITIONS[old_state]:
            raise ValueError(f"Invalid evaluator transition {old_state.value} -> {new_state.value}")
        self.state = new_state

        logger.debug(
            "Evaluator state transition",
            session_id=self.session_id,
            old_state=old_state.value,
            new_state=new_state.value,
        )


@dataclass(frozen=True)
class TriggerFiring:
    """The definition that fired for a session, with its evidence."""

    trigger_id: str
    trigger_type: str
    suggestion_type: str
    message: str
    confidence: float
    measure: float
    threshold: float
    page_url: str

    @property
    def overage(self) -> float:
        """How far past its threshold the measure landed, as a fraction."""
        return (self.measure - self.threshold) / self.threshold

    def evidence(self) -> dict[str, Any]:
        """Behavioral evidence stored with the suggestion."""
        return {
            "trigger_id": self.trigger_id,
            "trigger_type": self.trigger_type,
            "measure": round(self.measure, 2),
            "threshold": self.threshold,
            "page_url": self.page_url,
        }


def url_matches(url: str | None, patterns: list[str]) -> bool:
    """Check a page URL against targeting patterns.

    Patterns are case-insensitive substrings of the URL; patterns starting
    with "#" must equal the URL fragment. An empty list matches every page.

    Args:
        url: Current page URL.
        patterns: Targeting patterns.

    Returns:
        True if the page is targeted.
    """
    if not patterns:
        return True

    normalized = (url or "").strip().lower()
    fragment = urlsplit(normalized).fragment
    for pattern in patterns:
        pattern = (pattern or "").strip().lower()
        if not pattern:
            continue
        if pattern.startswith("#"):
            if fragment and fragment == pattern[1:]:
                return True
        elif pattern in normalized:
            return True
    return False


def _scoped_to_pages(definition: BaseTriggerDefinition) -> bool:
    """Built-in heuristics with URL patterns only count activity on those pages."""
    return definition.source == TriggerSource.IMPLICIT and bool(definition.url_patterns)


def _page_views(session: SessionState) -> list[BehaviorEvent]:
    return [event for event in session.events if event.event_type == BehaviorEventType.PAGE_VIEW]


def _time_on_matching_pages(
    definition: BaseTriggerDefinition, session: SessionState, now: datetime
) -> float:
    """Seconds since the visitor entered the current run of targeted pages.

    Viewing an untargeted page ends the run, so a visitor coming back to a
    targeted page starts counting from zero again.
    """
    arrived_at: datetime | None = None
    for event in _page_views(session):
        if not url_matches(event.page_url, definition.url_patterns):
            arrived_at = None
        elif arrived_at is None:
            arrived_at = event.created_at

    if arrived_at is None:
        return 0.0
    return time_elapsed(arrived_at, now)


def _time_measure(definition: BaseTriggerDefinition, session: SessionState, now: datetime) -> float:
    if _scoped_to_pages(definition):
        return _time_on_matching_pages(definition, session, now)
    return time_elapsed(session.started_at, now)


def _scroll_measure(definition: BaseTriggerDefinition, session: SessionState, now: datetime) -> float:
    return max_scroll_depth(session.events)


def _element_measure(definition: BaseTriggerDefinition, session: SessionState, now: datetime) -> float:
    return element_visible_duration(session.events, definition.element_selector, now)


def _page_views_measure(
    definition: BaseTriggerDefinition, session: SessionState, now: datetime
) -> float:
    if _scoped_to_pages(definition):
        return float(
            sum(1 for event in _page_views(session) if url_matches(event.page_url, definition.url_patterns))
        )
    return float(session.total_page_views)


_MEASURES: dict[str, Callable[[BaseTriggerDefinition, SessionState, datetime], float]] = {
    TriggerType.TIME_BASED.value: _time_measure,
    TriggerType.SCROLL_BASED.value: _scroll_measure,
    TriggerType.ELEMENT_INTERACTION.value: _element_measure,
    TriggerType.PAGE_VIEWS.value: _page_views_measure,
}


class TriggerEvaluator:
    """Evaluates sessions against one agent's proactive configuration."""

    def __init__(self, config: ProactiveConfig, settings: EngineSettings | None = None):
        """Initialize the evaluator.

        Malformed custom definitions are logged and dropped here, so one bad
        entry never disables the others.

        Args:
            config: The agent's proactive configuration.
            settings: Engine settings; read from the environment if omitted.
        """
        self.config = config
        self.settings = settings or EngineSettings.from_env()
        self.logger = logger.bind(service="trigger_evaluator", agent_id=config.agent_id)
        self.definitions = self._load_definitions()

    def _load_definitions(self) -> list[BaseTriggerDefinition]:
        definitions: list[BaseTriggerDefinition] = []
        for raw in self.config.custom_triggers:
            try:
                definitions.append(parse_trigger_definition(raw))
            except ConfigurationError as e:
                self.logger.warning(
                    "Skipping malformed trigger definition",
                    trigger_id=e.entry_id,
                    errors=e.errors,
                )
        definitions.extend(self.config.implicit_definitions())
        return definitions

    def confidence_gate(self, definition: BaseTriggerDefinition) -> float:
        """Confidence a definition must exceed to fire."""
        if (
            definition.source == TriggerSource.CUSTOM
            and definition.trigger_type == TriggerType.TIME_BASED.value
        ):
            return self.settings.custom_time_confidence_gate
        if self.config.confidence_threshold is not None:
            return self.config.confidence_threshold
        return self.settings.default_confidence_gate

    def is_page_allowed(self, url: str | None) -> bool:
        """Apply the agent-wide URL restrictions."""
        restrictions = self.config.url_restrictions
        if not restrictions.active:
            return True
        return url_matches(url, restrictions.allowed_urls)

    def evaluate(self, session: SessionState, now: datetime | None = None) -> TriggerFiring | None:
        """Run one evaluation tick for a session.

        Among the definitions whose measure reached their threshold and whose
        confidence passes the gate, the one with the lowest overage fraction
        fires; exact ties go to the earlier definition.

        Args:
            session: The session's evaluator state.
            now: Evaluation time (defaults to now).

        Returns:
            The firing, or None when nothing fires.
        """
        if session.is_fired or not self.config.enabled:
            return None
        if not self.is_page_allowed(session.current_page_url):
            return None

        now = now or utc_now()
        session.transition_to(EvaluatorState.EVALUATING)

        best: TriggerFiring | None = None
        for definition in self.definitions:
            if not definition.enabled:
                continue
            if not url_matches(session.current_page_url, definition.url_patterns):
                continue

            try:
                measure = _MEASURES[definition.trigger_type](definition, session, now)
            except Exception as e:
                self.logger.warning(
                    "Skipping trigger after measurement failure",
                    trigger_id=definition.id,
                    session_id=session.session_id,
                    error=str(e),
                )
                continue

            threshold = definition.threshold
            if measure < threshold:
                continue

            if definition.confidence <= self.confidence_gate(definition):
                self.logger.debug(
                    "Trigger below confidence gate",
                    trigger_id=definition.id,
                    confidence=definition.confidence,
                )
                continue

            firing = TriggerFiring(
                trigger_id=definition.id,
                trigger_type=definition.trigger_type,
                suggestion_type=definition.label,
                message=definition.message,
                confidence=definition.confidence,
                measure=measure,
                threshold=threshold,
                page_url=session.current_page_url,
            )
            if best is None or firing.overage < best.overage:
                best = firing

        if best is None:
            session.transition_to(EvaluatorState.IDLE)
            return None

        session.fired_trigger_id = best.trigger_id
        session.transition_to(EvaluatorState.FIRED)

        self.logger.info(
            "Proactive trigger fired",
            session_id=session.session_id,
            trigger_id=best.trigger_id,
            suggestion_type=best.suggestion_type,
            measure=best.measure,
            threshold=best.threshold,
        )
        return best
