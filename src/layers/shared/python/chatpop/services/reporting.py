"""Attribution and proactive engagement reporting."""

from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

import structlog

from chatpop.models.base import ensure_utc
from chatpop.models.order import AttributedOrder, Order
from chatpop.models.suggestion import ProactiveSuggestion
from chatpop.repositories.conversation import ConversationRepository
from chatpop.repositories.order import AttributedOrderRepository, OrderRepository
from chatpop.repositories.suggestion import ProactiveSuggestionRepository
from chatpop.services.attribution_scorer import confidence_bucket
from chatpop.utils.exceptions import NotFoundError

logger = structlog.get_logger()


def _percent(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


def _mean(values: list[float]) -> float:
    return round(sum(values) / len(values), 4) if values else 0.0


@dataclass
class AttributionMetrics:
    """Revenue attribution summary of an agent."""

    total_revenue: float = 0.0
    attributed_revenue: float = 0.0
    order_count: int = 0
    attributed_order_count: int = 0
    attribution_rate: float = 0.0  # percent of orders attributed
    avg_confidence: float = 0.0
    attribution_breakdown: dict[str, int] = field(default_factory=dict)
    confidence_distribution: dict[str, int] = field(
        default_factory=lambda: {"high": 0, "medium": 0, "low": 0}
    )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ConversationRevenue:
    """Orders and revenue credited to one conversation."""

    conversation_id: str
    orders: list[dict[str, Any]] = field(default_factory=list)
    total_revenue: float = 0.0
    total_orders: int = 0
    avg_confidence: float = 0.0
    products_purchased: list[dict[str, Any]] = field(default_factory=list)
    timeline: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SuggestionFunnel:
    """Proactive suggestion funnel of an agent."""

    total_suggestions: int = 0
    shown: int = 0
    clicked: int = 0
    conversations_started: int = 0
    click_through_rate: float = 0.0  # percent of shown suggestions clicked
    conversion_rate: float = 0.0  # percent of suggestions that started a conversation
    by_type: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def summarize_attribution(
    orders: list[Order],
    attributions: list[AttributedOrder],
) -> AttributionMetrics:
    """Summarize attribution across an agent's orders.

    Args:
        orders: All orders in the period.
        attributions: Attributions of those orders.

    Returns:
        AttributionMetrics.
    """
    attributed_ids = {attribution.order_id for attribution in attributions}
    # Attributed orders missing from the order list still count toward totals
    order_totals = {order.order_id: order.total_price for order in orders}
    for attribution in attributions:
        order_totals.setdefault(attribution.order_id, attribution.total_price)

    confidences = [attribution.attribution_confidence for attribution in attributions]
    distribution = {"high": 0, "medium": 0, "low": 0}
    for confidence in confidences:
        distribution[confidence_bucket(confidence)] += 1

    return AttributionMetrics(
        total_revenue=round(sum(order_totals.values()), 2),
        attributed_revenue=round(sum(a.total_price for a in attributions), 2),
        order_count=len(order_totals),
        attributed_order_count=len(attributed_ids),
        attribution_rate=_percent(len(attributed_ids), len(order_totals)),
        avg_confidence=_mean(confidences),
        attribution_breakdown=dict(Counter(a.attribution_type or "unknown" for a in attributions)),
        confidence_distribution=distribution,
    )


def summarize_conversation(
    conversation_id: str,
    attributions: list[AttributedOrder],
) -> ConversationRevenue:
    """Summarize the orders credited to a conversation.

    Args:
        conversation_id: The conversation.
        attributions: Attributions pointing at the conversation.

    Returns:
        ConversationRevenue with orders newest first and a chronological timeline.
    """
    newest_first = sorted(attributions, key=lambda a: a.order_created_at, reverse=True)

    return ConversationRevenue(
        conversation_id=conversation_id,
        orders=[
            {
                "order_id": a.order_id,
                "order_number": a.order_number,
                "customer_email": a.customer_email,
                "total_price": a.total_price,
                "currency": a.currency,
                "attribution_type": a.attribution_type,
                "attribution_confidence": a.attribution_confidence,
                "confidence_level": confidence_bucket(a.attribution_confidence),
                "order_created_at": a.order_created_at.isoformat(),
            }
            for a in newest_first
        ],
        total_revenue=round(sum(a.total_price for a in attributions), 2),
        total_orders=len(attributions),
        avg_confidence=_mean([a.attribution_confidence for a in attributions]),
        products_purchased=[
            {
                "product_id": item.product_id,
                "title": item.title,
                "quantity": item.quantity,
                "price": item.price,
            }
            for a in newest_first
            for item in a.line_items
        ],
        timeline=[
            {
                "timestamp": a.order_created_at.isoformat(),
                "event": "order_placed",
                "details": {
                    "order_number": a.order_number,
                    "total": a.total_price,
                    "confidence": a.attribution_confidence,
                },
            }
            for a in reversed(newest_first)
        ],
    )


def summarize_suggestions(suggestions: list[ProactiveSuggestion]) -> SuggestionFunnel:
    """Summarize the proactive suggestion funnel."""
    shown = sum(1 for s in suggestions if s.was_shown)
    clicked = sum(1 for s in suggestions if s.was_clicked)
    started = sum(1 for s in suggestions if s.conversation_started)

    return SuggestionFunnel(
        total_suggestions=len(suggestions),
        shown=shown,
        clicked=clicked,
        conversations_started=started,
        click_through_rate=_percent(clicked, shown),
        conversion_rate=_percent(started, len(suggestions)),
        by_type=dict(Counter(s.suggestion_type for s in suggestions)),
    )


class ReportingService:
    """Loads reporting data for an agent from the record store."""

    def __init__(
        self,
        order_repo: OrderRepository | None = None,
        attribution_repo: AttributedOrderRepository | None = None,
        conversation_repo: ConversationRepository | None = None,
        suggestion_repo: ProactiveSuggestionRepository | None = None,
    ):
        self.order_repo = order_repo or OrderRepository()
        self.attribution_repo = attribution_repo or AttributedOrderRepository()
        self.conversation_repo = conversation_repo or ConversationRepository()
        self.suggestion_repo = suggestion_repo or ProactiveSuggestionRepository()

    def attribution_summary(self, agent_id: str, since: datetime | None = None) -> AttributionMetrics:
        """Attribution metrics of an agent, optionally limited to recent orders."""
        orders = self.order_repo.list_by_agent(agent_id)
        attributions = self.attribution_repo.list_by_agent(agent_id)

        if since is not None:
            since = ensure_utc(since)
            orders = [o for o in orders if o.order_created_at >= since]
            attributions = [a for a in attributions if ensure_utc(a.order_created_at) >= since]

        metrics = summarize_attribution(orders, attributions)
        logger.debug(
            "Attribution summary computed",
            agent_id=agent_id,
            order_count=metrics.order_count,
            attributed_order_count=metrics.attributed_order_count,
        )
        return metrics

    def conversation_attribution(self, agent_id: str, conversation_id: str) -> ConversationRevenue:
        """Revenue credited to one of the agent's conversations.

        Raises:
            NotFoundError: If the conversation does not belong to the agent.
        """
        conversation = self.conversation_repo.get_by_id(agent_id, conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation", conversation_id)

        attributions = [
            a
            for a in self.attribution_repo.list_by_conversation(conversation_id)
            if a.agent_id == agent_id
        ]
        return summarize_conversation(conversation_id, attributions)

    def suggestion_summary(self, agent_id: str, since: datetime | None = None) -> SuggestionFunnel:
        """Proactive suggestion funnel of an agent."""
        suggestions = self.suggestion_repo.list_by_agent(agent_id)
        if since is not None:
            since = ensure_utc(since)
            suggestions = [s for s in suggestions if ensure_utc(s.created_at) >= since]
        return summarize_suggestions(suggestions)
