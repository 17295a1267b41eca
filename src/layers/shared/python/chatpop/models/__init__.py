"""Pydantic models for ChatPop entities."""

from chatpop.models.base import BaseModel, TimestampMixin
from chatpop.models.conversation import ChatMessage, Conversation, MessageRole
from chatpop.models.order import AttributedOrder, LineItem, Order
from chatpop.models.suggestion import EngagementFlag, ProactiveSuggestion
from chatpop.models.trigger import (
    ElementInteractionTrigger,
    PageViewsTrigger,
    ProactiveConfig,
    ScrollBasedTrigger,
    TimeBasedTrigger,
    TriggerSource,
    TriggerType,
    parse_trigger_definition,
)
from chatpop.models.visitor_session import (
    BehaviorEvent,
    BehaviorEventType,
    TrackBehaviorRequest,
    VisitorSession,
)

__all__ = [
    # Base
    "BaseModel",
    "TimestampMixin",
    # Conversations
    "ChatMessage",
    "Conversation",
    "MessageRole",
    # Orders
    "AttributedOrder",
    "LineItem",
    "Order",
    # Proactive engagement
    "ElementInteractionTrigger",
    "EngagementFlag",
    "PageViewsTrigger",
    "ProactiveConfig",
    "ProactiveSuggestion",
    "ScrollBasedTrigger",
    "TimeBasedTrigger",
    "TriggerSource",
    "TriggerType",
    "parse_trigger_definition",
    # Visitor telemetry
    "BehaviorEvent",
    "BehaviorEventType",
    "TrackBehaviorRequest",
    "VisitorSession",
]
