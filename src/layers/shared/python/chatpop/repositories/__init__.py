"""Repository classes for DynamoDB data access."""

from chatpop.repositories.base import BaseRepository
from chatpop.repositories.conversation import ChatMessageRepository, ConversationRepository
from chatpop.repositories.order import AttributedOrderRepository, OrderRepository
from chatpop.repositories.proactive_config import ProactiveConfigRepository
from chatpop.repositories.suggestion import ProactiveSuggestionRepository
from chatpop.repositories.visitor_session import BehaviorEventRepository, VisitorSessionRepository

__all__ = [
    "AttributedOrderRepository",
    "BaseRepository",
    "BehaviorEventRepository",
    "ChatMessageRepository",
    "ConversationRepository",
    "OrderRepository",
    "ProactiveConfigRepository",
    "ProactiveSuggestionRepository",
    "VisitorSessionRepository",
]
