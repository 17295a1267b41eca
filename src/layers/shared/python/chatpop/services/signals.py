"""Signal extractors.

Pure functions that turn raw conversation, order and session data into the
signals used by the attribution scorer and the trigger evaluator. Missing
data never raises; it produces the neutral value of the signal.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from chatpop.models.base import ensure_utc
from chatpop.models.visitor_session import BehaviorEvent, BehaviorEventType


@dataclass(frozen=True)
class TemporalSignal:
    """Whether the order landed within the window of the conversation."""

    matched: bool
    delta_minutes: float | None = None


@dataclass(frozen=True)
class ProductMentionSignal:
    """Which purchased item titles appear in the transcript."""

    matched: bool
    matched_titles: list[str] = field(default_factory=list)


def email_match(lead_email: str | None, customer_email: str | None) -> bool:
    """Case-insensitive exact comparison of trimmed emails.

    Args:
        lead_email: Email captured in the conversation.
        customer_email: Email on the order.

    Returns:
        True only when both are present and equal.
    """
    if not lead_email or not customer_email:
        return False
    lead = lead_email.strip().lower()
    customer = customer_email.strip().lower()
    return bool(lead) and lead == customer


def temporal_proximity(
    last_message_at: datetime | None,
    order_created_at: datetime | None,
    window_minutes: float = 30.0,
) -> TemporalSignal:
    """Check whether an order was placed close to a conversation's last message.

    Orders placed before the conversation ended are eligible too. The
    window boundary is inclusive.

    Args:
        last_message_at: Time of the conversation's last message.
        order_created_at: Time the order was created.
        window_minutes: Window width in minutes.

    Returns:
        TemporalSignal with the absolute delta in minutes.
    """
    if last_message_at is None or order_created_at is None:
        return TemporalSignal(matched=False)

    delta = abs((ensure_utc(order_created_at) - ensure_utc(last_message_at)).total_seconds()) / 60
    return TemporalSignal(matched=delta <= window_minutes, delta_minutes=delta)


def _title_pattern(title: str) -> re.Pattern:
    # Anchor at token boundaries so "Hat" never matches inside "Chatting"
    return re.compile(rf"(?<!\w){re.escape(title)}(?!\w)")


def product_mention(transcript: str | None, line_item_titles: Iterable[str]) -> ProductMentionSignal:
    """Find purchased item titles mentioned verbatim in a transcript.

    Matching is case-insensitive exact substring matching at token
    boundaries; there is no stemming or fuzzy matching.

    Args:
        transcript: Concatenated conversation messages.
        line_item_titles: Titles of the order's line items.

    Returns:
        ProductMentionSignal listing each matched title once, in order.
    """
    if not transcript:
        return ProductMentionSignal(matched=False)

    haystack = transcript.lower()
    matched: list[str] = []
    seen: set[str] = set()
    for title in line_item_titles:
        needle = (title or "").strip().lower()
        if not needle or needle in seen:
            continue
        seen.add(needle)
        if _title_pattern(needle).search(haystack):
            matched.append(title.strip())

    return ProductMentionSignal(matched=bool(matched), matched_titles=matched)


def time_elapsed(session_start: datetime, now: datetime) -> float:
    """Seconds since the session started, never negative."""
    return max(0.0, (ensure_utc(now) - ensure_utc(session_start)).total_seconds())


def max_scroll_depth(events: Iterable[BehaviorEvent]) -> float:
    """Deepest scroll percentage reported in the session."""
    depth = 0.0
    for event in events:
        if event.event_type == BehaviorEventType.SCROLL and event.scroll_depth is not None:
            depth = max(depth, float(event.scroll_depth))
    return min(depth, 100.0)


def selector_matches(recorded: str | None, configured: str) -> bool:
    """Case-insensitive equality, or the recorded selector containing the configured one."""
    if not recorded or not configured:
        return False
    recorded = recorded.strip().lower()
    configured = configured.strip().lower()
    return recorded == configured or configured in recorded


def element_visible_duration(
    events: Iterable[BehaviorEvent],
    selector: str,
    now: datetime,
) -> float:
    """Seconds since the element first became visible, 0 if it never did.

    Args:
        events: Session events in arrival order.
        selector: Configured element selector.
        now: Current time.

    Returns:
        Visible duration in seconds.
    """
    first_seen: datetime | None = None
    for event in events:
        if event.event_type != BehaviorEventType.ELEMENT_VISIBLE:
            continue
        if not selector_matches(event.element_selector, selector):
            continue
        seen_at = ensure_utc(event.created_at)
        if first_seen is None or seen_at < first_seen:
            first_seen = seen_at

    if first_seen is None:
        return 0.0
    return max(0.0, (ensure_utc(now) - first_seen).total_seconds())
