"""Attribution scorer.

Combines the three attribution signals into a confidence in [0, 1] and an
attribution-type label:

    email match          0.6
    temporal proximity   0.3 * (1 - delta / window)
    product mention      0.25

The label lists the fired signals in fixed order joined with "+", or
"all_methods" when all three fire.
"""

from dataclasses import dataclass, field
from datetime import datetime

from chatpop.models.order import Order
from chatpop.services.signals import (
    ProductMentionSignal,
    TemporalSignal,
    email_match,
    product_mention,
    temporal_proximity,
)

EMAIL_MATCH_WEIGHT = 0.6
TEMPORAL_PROXIMITY_WEIGHT = 0.3
PRODUCT_MENTION_WEIGHT = 0.25

DEFAULT_TEMPORAL_WINDOW_MINUTES = 30.0

EMAIL_MATCH = "email_match"
TEMPORAL_PROXIMITY = "temporal_proximity"
PRODUCT_MENTION = "product_mention"
ALL_METHODS = "all_methods"

SIGNAL_ORDER = (EMAIL_MATCH, TEMPORAL_PROXIMITY, PRODUCT_MENTION)

HIGH_CONFIDENCE = 0.8
MEDIUM_CONFIDENCE = 0.5


@dataclass
class AttributionCandidate:
    """A conversation considered for an order, with its transcript loaded."""

    conversation_id: str
    lead_email: str | None
    last_message_at: datetime | None
    transcript: str = ""


@dataclass
class AttributionScore:
    """Score of one candidate against one order."""

    conversation_id: str
    confidence: float
    attribution_type: str | None
    email_matched: bool = False
    temporal: TemporalSignal = field(default_factory=lambda: TemporalSignal(matched=False))
    product: ProductMentionSignal = field(
        default_factory=lambda: ProductMentionSignal(matched=False)
    )

    @property
    def fired(self) -> list[str]:
        """Names of the signals that fired, in label order."""
        flags = {
            EMAIL_MATCH: self.email_matched,
            TEMPORAL_PROXIMITY: self.temporal.matched,
            PRODUCT_MENTION: self.product.matched,
        }
        return [name for name in SIGNAL_ORDER if flags[name]]


def derive_attribution_type(fired: list[str] | set[str]) -> str | None:
    """Build the attribution-type label from the fired signal names.

    Args:
        fired: Names of the signals that fired, in any order.

    Returns:
        "all_methods" when all three fired, the names joined with "+"
        in fixed order otherwise, or None when nothing fired.
    """
    names = [name for name in SIGNAL_ORDER if name in set(fired)]
    if not names:
        return None
    if len(names) == len(SIGNAL_ORDER):
        return ALL_METHODS
    return "+".join(names)


def score_candidate(
    candidate: AttributionCandidate,
    order: Order,
    window_minutes: float = DEFAULT_TEMPORAL_WINDOW_MINUTES,
) -> AttributionScore:
    """Score a conversation as the cause of an order.

    Args:
        candidate: Conversation with its transcript.
        order: The order being attributed.
        window_minutes: Temporal proximity window.

    Returns:
        AttributionScore with confidence rounded to 4 decimals.
    """
    email_matched = email_match(candidate.lead_email, order.customer_email)
    temporal = temporal_proximity(candidate.last_message_at, order.order_created_at, window_minutes)
    product = product_mention(candidate.transcript, order.line_item_titles)

    confidence = 0.0
    if email_matched:
        confidence += EMAIL_MATCH_WEIGHT
    if temporal.matched and temporal.delta_minutes is not None:
        confidence += TEMPORAL_PROXIMITY_WEIGHT * (1 - temporal.delta_minutes / window_minutes)
    if product.matched:
        confidence += PRODUCT_MENTION_WEIGHT

    confidence = round(min(1.0, max(0.0, confidence)), 4)

    score = AttributionScore(
        conversation_id=candidate.conversation_id,
        confidence=confidence,
        attribution_type=None,
        email_matched=email_matched,
        temporal=temporal,
        product=product,
    )
    score.attribution_type = derive_attribution_type(score.fired)
    return score


def confidence_bucket(confidence: float) -> str:
    """Bucket a confidence as high, medium or low."""
    if confidence >= HIGH_CONFIDENCE:
        return "high"
    if confidence >= MEDIUM_CONFIDENCE:
        return "medium"
    return "low"
