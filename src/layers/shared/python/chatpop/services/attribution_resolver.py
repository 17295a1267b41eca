"""Attribution resolver.

For an incoming order, fetches the agent's candidate conversations, scores
each one, selects the best, and persists the attribution exactly once per
order.
"""

from datetime import timedelta

import structlog

from chatpop.config import EngineSettings
from chatpop.models.order import AttributedOrder, Order
from chatpop.repositories.conversation import ChatMessageRepository, ConversationRepository
from chatpop.repositories.order import AttributedOrderRepository
from chatpop.services.attribution_scorer import (
    AttributionCandidate,
    AttributionScore,
    score_candidate,
)
from chatpop.utils.exceptions import ConflictError

logger = structlog.get_logger()

ScoredCandidate = tuple[AttributionCandidate, AttributionScore]


def select_best(scored: list[ScoredCandidate]) -> ScoredCandidate | None:
    """Pick the winning candidate.

    Highest confidence wins; ties go to the most recent last message, then
    to the lowest conversation ID.

    Args:
        scored: Candidates with their scores.

    Returns:
        The winning pair, or None if there are no candidates.
    """
    if not scored:
        return None

    def rank(pair: ScoredCandidate) -> tuple[float, float, str]:
        candidate, score = pair
        last = candidate.last_message_at
        recency = last.timestamp() if last is not None else float("-inf")
        return (-score.confidence, -recency, candidate.conversation_id)

    return min(scored, key=rank)


class AttributionResolver:
    """Resolves orders to the conversations that most likely drove them."""

    def __init__(
        self,
        conversation_repo: ConversationRepository | None = None,
        message_repo: ChatMessageRepository | None = None,
        attribution_repo: AttributedOrderRepository | None = None,
        settings: EngineSettings | None = None,
    ):
        """Initialize the resolver.

        Args:
            conversation_repo: Source of candidate conversations.
            message_repo: Source of conversation transcripts.
            attribution_repo: Store of attribution records.
            settings: Engine settings; read from the environment if omitted.
        """
        self.conversation_repo = conversation_repo or ConversationRepository()
        self.message_repo = message_repo or ChatMessageRepository()
        self.attribution_repo = attribution_repo or AttributedOrderRepository()
        self.settings = settings or EngineSettings.from_env()
        self.logger = logger.bind(service="attribution_resolver")

    def score_candidates(self, order: Order) -> list[ScoredCandidate]:
        """Score every candidate conversation of an order.

        Candidates whose last activity falls within the lookback/lookahead
        window around the order are considered. A candidate that fails to
        load or score is logged and skipped.

        Args:
            order: The order being attributed.

        Returns:
            Scored candidates.
        """
        start = order.order_created_at - timedelta(days=self.settings.candidate_lookback_days)
        end = order.order_created_at + timedelta(days=self.settings.candidate_lookahead_days)
        conversations = self.conversation_repo.list_active_between(order.agent_id, start, end)

        scored: list[ScoredCandidate] = []
        for conversation in conversations:
            try:
                candidate = AttributionCandidate(
                    conversation_id=conversation.id,
                    lead_email=conversation.lead_email,
                    last_message_at=conversation.last_activity_at,
                    transcript=self.message_repo.get_transcript(conversation.id),
                )
                score = score_candidate(
                    candidate,
                    order,
                    window_minutes=self.settings.temporal_window_minutes,
                )
            except Exception as e:
                self.logger.warning(
                    "Skipping attribution candidate",
                    order_id=order.order_id,
                    conversation_id=conversation.id,
                    error=str(e),
                )
                continue
            scored.append((candidate, score))

        return scored

    def resolve(self, order: Order) -> AttributedOrder | None:
        """Attribute an order to its best conversation.

        Idempotent: an order that is already attributed returns the stored
        record unchanged, including when a concurrent resolution wins the
        insert.

        Args:
            order: The order to attribute.

        Returns:
            The attribution, or None when no conversation scores above zero.
        """
        existing = self.attribution_repo.get_by_order_id(order.agent_id, order.order_id)
        if existing:
            self.logger.debug("Order already attributed", order_id=order.order_id)
            return existing

        scored = self.score_candidates(order)
        best = select_best(scored)

        if best is None or best[1].confidence <= 0:
            self.logger.info(
                "No attributable conversation for order",
                order_id=order.order_id,
                agent_id=order.agent_id,
                candidates=len(scored),
            )
            return None

        _, score = best
        ranked = sorted(
            (pair for pair in scored if pair[1].confidence > 0),
            key=lambda pair: pair[1].confidence,
            reverse=True,
        )

        attributed = AttributedOrder(
            agent_id=order.agent_id,
            order_id=order.order_id,
            conversation_id=score.conversation_id,
            attribution_type=score.attribution_type,
            attribution_confidence=score.confidence,
            order_number=order.order_number,
            customer_email=order.customer_email,
            total_price=order.total_price,
            currency=order.currency,
            line_items=order.line_items,
            order_created_at=order.order_created_at,
            matched_titles=score.product.matched_titles,
            temporal_delta_minutes=score.temporal.delta_minutes,
            candidate_conversation_ids=[pair[1].conversation_id for pair in ranked],
        )

        try:
            self.attribution_repo.create_once(attributed)
        except ConflictError:
            self.logger.info("Order attributed concurrently", order_id=order.order_id)
            return self.attribution_repo.get_by_order_id(order.agent_id, order.order_id)

        self.logger.info(
            "Order attributed",
            order_id=order.order_id,
            conversation_id=score.conversation_id,
            confidence=score.confidence,
            attribution_type=score.attribution_type,
        )
        return attributed
