"""Tests for the proactive session runtime and the periodic ticker."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from chatpop.config import EngineSettings
from chatpop.models.trigger import ProactiveConfig
from chatpop.models.visitor_session import BehaviorEventType
from chatpop.services.proactive_session import ProactiveSessionRuntime
from chatpop.services.suggestion_dispatcher import SuggestionDispatcher
from chatpop.services.ticker import PeriodicTicker
from chatpop.services.trigger_evaluator import EvaluatorState, SessionState, TriggerEvaluator

T0 = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start=T0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def repo():
    return MagicMock()


@pytest.fixture
def sink():
    return MagicMock()


@pytest.fixture
def runtime(clock, repo, sink):
    config = ProactiveConfig(
        agent_id="agent-1",
        enabled=True,
        custom_triggers=[
            {"id": "time-30", "trigger_type": "time_based", "time_threshold": 30, "message": "Hi there!"},
        ],
    )
    session = SessionState(
        session_id="session-1",
        agent_id="agent-1",
        started_at=clock(),
        current_page_url="https://shop.test/home",
    )
    return ProactiveSessionRuntime(
        session=session,
        evaluator=TriggerEvaluator(config, settings=EngineSettings()),
        dispatcher=SuggestionDispatcher(repo=repo),
        event_sink=sink,
        poll_interval_seconds=0.01,
        clock=clock,
    )


def _sent_types(sink):
    return [call.args[0].event_type for call in sink.call_args_list]


class TestListeners:
    """Tests for the runtime's behavior listeners."""

    def test_page_view(self, runtime, sink):
        event = runtime.on_page_view("https://shop.test/features")

        assert event.event_type == BehaviorEventType.PAGE_VIEW
        assert runtime.session.total_page_views == 1
        assert runtime.session.current_page_url == "https://shop.test/features"
        sink.assert_called_once_with(event)

    def test_navigation_flushes_time_spent(self, runtime, sink, clock):
        runtime.on_page_view("https://shop.test/a")
        clock.advance(15)
        runtime.on_page_view("https://shop.test/b")

        assert _sent_types(sink) == ["page_view", "time_spent", "page_view"]
        time_spent = sink.call_args_list[1].args[0]
        assert time_spent.time_on_page_seconds == 15
        assert time_spent.page_url == "https://shop.test/a"

    def test_short_visits_are_not_reported(self, runtime, sink, clock):
        clock.advance(5)

        assert runtime.on_visibility_change(hidden=True) is None
        sink.assert_not_called()

    def test_hidden_time_is_not_counted(self, runtime, sink, clock):
        clock.advance(12)
        runtime.on_visibility_change(hidden=True)
        clock.advance(300)
        runtime.on_visibility_change(hidden=False)
        clock.advance(11)
        runtime.on_visibility_change(hidden=True)

        durations = [call.args[0].time_on_page_seconds for call in sink.call_args_list]
        assert durations == [12, 11]

    def test_unload_flushes_once(self, runtime, sink, clock):
        clock.advance(20)

        event = runtime.on_unload()

        assert event.time_on_page_seconds == 20
        assert runtime.on_unload() is None
        assert sink.call_count == 1

    def test_scroll_depth_is_clamped(self, runtime):
        assert runtime.on_scroll(150).scroll_depth == 100
        assert runtime.on_scroll(-5).scroll_depth == 0

    def test_sink_failure_is_not_raised(self, runtime, sink):
        sink.side_effect = RuntimeError("network down")

        event = runtime.on_click("#buy")

        assert event.element_selector == "#buy"
        assert len(runtime.session.events) == 1


class TestTick:
    """Tests for the evaluation tick."""

    def test_tick_fires_once(self, runtime, repo, clock):
        clock.advance(10)
        assert runtime.tick() is None
        assert runtime.session.state == EvaluatorState.IDLE

        clock.advance(25)
        suggestion = runtime.tick()

        assert suggestion.suggested_message == "Hi there!"
        assert runtime.session.is_fired

        clock.advance(60)
        assert runtime.tick() is None
        repo.create_once.assert_called_once()

    def test_tick_after_unload(self, runtime, repo, clock):
        runtime.on_unload()
        clock.advance(60)

        assert runtime.tick() is None
        repo.create_once.assert_not_called()

    @pytest.mark.asyncio
    async def test_ticker_stops_after_firing(self, runtime, repo, clock):
        clock.advance(31)

        runtime.start()
        await asyncio.wait_for(runtime.ticker.wait(), timeout=1)

        assert runtime.session.is_fired
        assert not runtime.ticker.running
        repo.create_once.assert_called_once()

    @pytest.mark.asyncio
    async def test_unload_stops_ticker(self, runtime):
        runtime.start()
        assert runtime.ticker.running

        runtime.on_unload()
        await runtime.ticker.wait()

        assert not runtime.ticker.running
        assert runtime.start() is None


class TestPeriodicTicker:
    """Tests for PeriodicTicker."""

    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError):
            PeriodicTicker(lambda: None, interval_seconds=0)

    @pytest.mark.asyncio
    async def test_ticks_until_stopped(self):
        calls = []
        ticker = PeriodicTicker(lambda: calls.append(1), interval_seconds=0.01)

        ticker.start()
        await asyncio.sleep(0.05)
        ticker.stop()
        await ticker.wait()

        assert len(calls) >= 2
        assert ticker.ticks == len(calls)
        assert not ticker.running

    @pytest.mark.asyncio
    async def test_callback_errors_do_not_stop_ticking(self):
        callback = MagicMock(side_effect=RuntimeError("boom"))
        ticker = PeriodicTicker(callback, interval_seconds=0.01)

        ticker.start()
        await asyncio.sleep(0.05)
        ticker.stop()
        await ticker.wait()

        assert callback.call_count >= 2
