"""Tests for signal extractors."""

from datetime import datetime, timedelta, timezone

from chatpop.models.visitor_session import BehaviorEvent, BehaviorEventType
from chatpop.services.signals import (
    element_visible_duration,
    email_match,
    max_scroll_depth,
    product_mention,
    selector_matches,
    temporal_proximity,
    time_elapsed,
)

T0 = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def _event(event_type, at=T0, **fields):
    return BehaviorEvent(
        session_id="s1",
        agent_id="a1",
        event_type=event_type,
        created_at=at,
        **fields,
    )


class TestEmailMatch:
    """Tests for email_match."""

    def test_case_and_whitespace_insensitive(self):
        assert email_match(" A@X.com ", "a@x.COM") is True

    def test_different_emails(self):
        assert email_match("a@x.com", "b@x.com") is False

    def test_missing_email_is_no_match(self):
        """Missing data is a neutral value, never an error."""
        assert email_match(None, "a@x.com") is False
        assert email_match("a@x.com", None) is False
        assert email_match("  ", "  ") is False


class TestTemporalProximity:
    """Tests for temporal_proximity."""

    def test_order_after_conversation(self):
        signal = temporal_proximity(T0, T0 + timedelta(minutes=10))

        assert signal.matched is True
        assert signal.delta_minutes == 10

    def test_order_before_conversation_ended(self):
        """The delta is absolute."""
        signal = temporal_proximity(T0, T0 - timedelta(minutes=5))

        assert signal.matched is True
        assert signal.delta_minutes == 5

    def test_window_boundary_is_inclusive(self):
        at_boundary = temporal_proximity(T0, T0 + timedelta(minutes=30))
        past_boundary = temporal_proximity(T0, T0 + timedelta(minutes=30, seconds=1))

        assert at_boundary.matched is True
        assert past_boundary.matched is False

    def test_custom_window(self):
        assert temporal_proximity(T0, T0 + timedelta(minutes=45), window_minutes=60).matched is True

    def test_missing_timestamp(self):
        signal = temporal_proximity(None, T0)

        assert signal.matched is False
        assert signal.delta_minutes is None

    def test_naive_timestamps_are_utc(self):
        naive = datetime(2026, 3, 10, 12, 10)

        assert temporal_proximity(T0, naive).delta_minutes == 10


class TestProductMention:
    """Tests for product_mention."""

    def test_case_insensitive_match(self):
        signal = product_mention("Do you have the blue hoodie in XL?", ["Blue Hoodie"])

        assert signal.matched is True
        assert signal.matched_titles == ["Blue Hoodie"]

    def test_no_partial_word_match(self):
        """Titles only match at token boundaries."""
        signal = product_mention("Thanks for chatting!", ["Hat"])

        assert signal.matched is False

    def test_titles_deduplicated(self):
        signal = product_mention("blue hoodie please", ["Blue Hoodie", "blue hoodie", "Socks"])

        assert signal.matched_titles == ["Blue Hoodie"]

    def test_empty_transcript(self):
        assert product_mention("", ["Blue Hoodie"]).matched is False
        assert product_mention(None, ["Blue Hoodie"]).matched is False

    def test_empty_titles_ignored(self):
        assert product_mention("anything", ["", "   "]).matched is False


class TestSessionSignals:
    """Tests for the behavior-derived measures."""

    def test_time_elapsed_never_negative(self):
        assert time_elapsed(T0, T0 + timedelta(seconds=35)) == 35
        assert time_elapsed(T0, T0 - timedelta(seconds=5)) == 0

    def test_max_scroll_depth(self):
        events = [
            _event(BehaviorEventType.SCROLL, scroll_depth=49),
            _event(BehaviorEventType.PAGE_VIEW),
            _event(BehaviorEventType.SCROLL, scroll_depth=51),
            _event(BehaviorEventType.SCROLL, scroll_depth=20),
        ]

        assert max_scroll_depth(events) == 51

    def test_max_scroll_depth_without_scrolls(self):
        assert max_scroll_depth([_event(BehaviorEventType.PAGE_VIEW)]) == 0

    def test_selector_matches(self):
        assert selector_matches("#Pricing-Table", "#pricing-table") is True
        assert selector_matches("div #pricing-table .row", "#pricing-table") is True
        assert selector_matches("#faq", "#pricing-table") is False
        assert selector_matches(None, "#pricing-table") is False

    def test_element_visible_duration(self):
        events = [
            _event(BehaviorEventType.ELEMENT_VISIBLE, at=T0 + timedelta(seconds=4), element_selector="#cta"),
            _event(BehaviorEventType.ELEMENT_VISIBLE, at=T0 + timedelta(seconds=2), element_selector="#cta"),
            _event(BehaviorEventType.ELEMENT_VISIBLE, at=T0, element_selector="#other"),
        ]

        assert element_visible_duration(events, "#cta", T0 + timedelta(seconds=10)) == 8

    def test_element_never_visible(self):
        assert element_visible_duration([], "#cta", T0) == 0
