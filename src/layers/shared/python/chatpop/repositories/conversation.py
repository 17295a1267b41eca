"""Conversation and chat message repositories."""

from datetime import datetime

import structlog

from chatpop.models.base import ensure_utc
from chatpop.models.conversation import ChatMessage, Conversation, activity_index_pk
from chatpop.repositories.base import BaseRepository

logger = structlog.get_logger()


class ConversationRepository(BaseRepository[Conversation]):
    """Repository for Conversation entities."""

    def __init__(self, table_name: str | None = None):
        """Initialize conversation repository."""
        super().__init__(Conversation, table_name)

    def get_by_id(self, agent_id: str, conversation_id: str) -> Conversation | None:
        """Get a conversation by agent and conversation ID."""
        return self.get(pk=f"AGENT#{agent_id}", sk=f"CONV#{conversation_id}")

    def save(self, conversation: Conversation) -> Conversation:
        """Create or replace a conversation."""
        return self.put(conversation)

    def list_active_between(
        self,
        agent_id: str,
        start: datetime,
        end: datetime,
    ) -> list[Conversation]:
        """List an agent's conversations whose last activity falls in a window.

        Args:
            agent_id: The agent ID.
            start: Inclusive lower bound on last activity.
            end: Inclusive upper bound on last activity.

        Returns:
            Conversations ordered by last activity, oldest first.
        """
        return self.query_all(
            activity_index_pk(agent_id),
            index_name="GSI1",
            sk_between=(ensure_utc(start).isoformat(), ensure_utc(end).isoformat()),
        )


class ChatMessageRepository(BaseRepository[ChatMessage]):
    """Repository for chat messages within a conversation."""

    def __init__(self, table_name: str | None = None):
        """Initialize chat message repository."""
        super().__init__(ChatMessage, table_name)

    def list_messages(self, conversation_id: str) -> list[ChatMessage]:
        """List a conversation's messages in chronological order."""
        return self.query_all(f"CONV#{conversation_id}", sk_begins_with="MSG#")

    def get_transcript(self, conversation_id: str) -> str:
        """Concatenate a conversation's message contents in order."""
        return "\n".join(
            message.content for message in self.list_messages(conversation_id) if message.content
        )

    def add_message(
        self,
        conversation: Conversation,
        message: ChatMessage,
        conversation_repo: ConversationRepository,
    ) -> ChatMessage:
        """Store a message and bump the conversation's activity.

        Args:
            conversation: Conversation the message belongs to.
            message: The message to store.
            conversation_repo: Repository used to persist the conversation.

        Returns:
            The stored message.
        """
        self.create(message)

        conversation.last_message_at = ensure_utc(message.created_at)
        conversation.last_message_preview = message.content[:200]
        conversation.message_count += 1
        conversation_repo.save(conversation)

        logger.debug(
            "Message added",
            conversation_id=conversation.id,
            message_count=conversation.message_count,
        )
        return message
