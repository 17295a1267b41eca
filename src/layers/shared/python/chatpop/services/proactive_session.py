"""Proactive session runtime.

Drives the trigger evaluator for one visitor session. Listeners update the
session's local counters synchronously; a single periodic tick runs the
evaluator and dispatcher. The tick stops once the session fires or the page
unloads, and the final time_spent measurement is flushed synchronously on
hide and unload.
"""

import asyncio
from datetime import datetime
from typing import Any, Callable

import structlog

from chatpop.models.base import utc_now
from chatpop.models.suggestion import ProactiveSuggestion
from chatpop.models.visitor_session import BehaviorEvent, BehaviorEventType
from chatpop.services.suggestion_dispatcher import SuggestionDispatcher
from chatpop.services.ticker import PeriodicTicker
from chatpop.services.trigger_evaluator import SessionState, TriggerEvaluator

logger = structlog.get_logger()

# Shorter visits are not reported as time_spent
MIN_TRACKED_SECONDS = 10

EventSink = Callable[[BehaviorEvent], None]


class ProactiveSessionRuntime:
    """Owns one session's state, listeners and evaluation tick."""

    def __init__(
        self,
        session: SessionState,
        evaluator: TriggerEvaluator,
        dispatcher: SuggestionDispatcher,
        event_sink: EventSink | None = None,
        poll_interval_seconds: float | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the runtime.

        Args:
            session: The session's evaluator state.
            evaluator: Evaluator for the session's agent.
            dispatcher: Suggestion dispatcher.
            event_sink: Receives every recorded event (e.g. the tracking API).
            poll_interval_seconds: Tick interval; defaults to the evaluator's settings.
            clock: Time source.
        """
        self.session = session
        self.evaluator = evaluator
        self.dispatcher = dispatcher
        self.event_sink = event_sink
        self.clock = clock
        self.unloaded = False
        self._segment_started_at = clock()
        self.ticker = PeriodicTicker(
            self.tick,
            interval_seconds=poll_interval_seconds or evaluator.settings.poll_interval_seconds,
            name=f"proactive-{session.session_id}",
        )
        self.logger = logger.bind(service="proactive_session", session_id=session.session_id)

    def start(self) -> asyncio.Task | None:
        """Start the evaluation tick on the running event loop."""
        if self.unloaded or self.session.is_fired:
            return None
        return self.ticker.start()

    def tick(self) -> ProactiveSuggestion | None:
        """Run one evaluation and dispatch whatever fires."""
        if self.unloaded:
            return None

        firing = self.evaluator.evaluate(self.session, now=self.clock())
        if self.session.is_fired:
            self.ticker.stop()
        if firing is None:
            return None
        return self.dispatcher.dispatch(self.session, firing)

    def _record(self, event_type: BehaviorEventType, **fields: Any) -> BehaviorEvent:
        page_url = fields.pop("page_url", None) or self.session.current_page_url
        event = BehaviorEvent(
            session_id=self.session.session_id,
            agent_id=self.session.agent_id,
            event_type=event_type,
            page_url=page_url,
            created_at=self.clock(),
            **fields,
        )
        self.session.record_event(event)

        if self.event_sink is not None:
            try:
                self.event_sink(event)
            except Exception as e:
                self.logger.warning(
                    "Failed to forward behavior event",
                    event_type=event_type.value,
                    error=str(e),
                )
        return event

    def _flush_time_spent(self) -> BehaviorEvent | None:
        now = self.clock()
        seconds = int((now - self._segment_started_at).total_seconds())
        if seconds < MIN_TRACKED_SECONDS:
            return None
        self._segment_started_at = now
        return self._record(BehaviorEventType.TIME_SPENT, time_on_page_seconds=seconds)

    def on_page_view(self, url: str) -> BehaviorEvent:
        """Record navigation to a page, closing the previous page's time segment."""
        self._flush_time_spent()
        self._segment_started_at = self.clock()
        return self._record(BehaviorEventType.PAGE_VIEW, page_url=url)

    def on_scroll(self, depth_percent: float) -> BehaviorEvent:
        """Record a scroll position as a percentage of the page."""
        depth = min(100.0, max(0.0, float(depth_percent)))
        return self._record(BehaviorEventType.SCROLL, scroll_depth=depth)

    def on_element_visible(self, selector: str) -> BehaviorEvent:
        """Record that an element became visible."""
        return self._record(BehaviorEventType.ELEMENT_VISIBLE, element_selector=selector)

    def on_click(self, selector: str | None = None) -> BehaviorEvent:
        """Record a click."""
        return self._record(BehaviorEventType.CLICK, element_selector=selector)

    def on_visibility_change(self, hidden: bool) -> BehaviorEvent | None:
        """Flush time spent when the tab is hidden; restart timing when shown."""
        if hidden:
            return self._flush_time_spent()
        self._segment_started_at = self.clock()
        return None

    def on_unload(self) -> BehaviorEvent | None:
        """Flush the final time_spent synchronously and stop ticking."""
        if self.unloaded:
            return None
        event = self._flush_time_spent()
        self.unloaded = True
        self.ticker.stop()
        return event
