"""Conversation and chat message models.

DynamoDB keys:
    Conversation  PK: AGENT#{agent_id}          SK: CONV#{id}
                  GSI1PK: AGENT#{agent_id}#CONV_ACTIVITY  GSI1SK: {last activity ISO}
    ChatMessage   PK: CONV#{conversation_id}    SK: MSG#{created_at}#{id}
"""

from datetime import datetime
from enum import Enum

from pydantic import Field, field_validator

from chatpop.models.base import BaseModel, ensure_utc


def activity_index_pk(agent_id: str) -> str:
    """GSI1 partition holding an agent's conversations ordered by activity."""
    return f"AGENT#{agent_id}#CONV_ACTIVITY"


class MessageRole(str, Enum):
    """Author of a chat message."""

    VISITOR = "visitor"
    ASSISTANT = "assistant"
    AGENT = "agent"


class Conversation(BaseModel):
    """A chat conversation between a visitor and an agent."""

    agent_id: str
    session_id: str | None = None
    lead_email: str | None = None

    last_message_at: datetime | None = None
    last_message_preview: str | None = None
    message_count: int = Field(default=0, ge=0)

    @field_validator("lead_email")
    @classmethod
    def normalize_lead_email(cls, v: str | None) -> str | None:
        """Store emails trimmed; blank means no email captured."""
        if v is None:
            return None
        v = v.strip()
        return v or None

    @property
    def last_activity_at(self) -> datetime:
        """Last message time, falling back to creation time."""
        return ensure_utc(self.last_message_at or self.created_at)

    def get_pk(self) -> str:
        """Get the partition key."""
        return f"AGENT#{self.agent_id}"

    def get_sk(self) -> str:
        """Get the sort key."""
        return f"CONV#{self.id}"

    def get_gsi1_keys(self) -> dict[str, str]:
        """Get GSI1 keys for activity-time range queries."""
        return {
            "GSI1PK": activity_index_pk(self.agent_id),
            "GSI1SK": self.last_activity_at.isoformat(),
        }


class ChatMessage(BaseModel):
    """A single message within a conversation."""

    conversation_id: str
    agent_id: str
    role: MessageRole = MessageRole.VISITOR
    content: str = ""

    def get_pk(self) -> str:
        """Get the partition key."""
        return f"CONV#{self.conversation_id}"

    def get_sk(self) -> str:
        """Get the sort key."""
        return f"MSG#{ensure_utc(self.created_at).isoformat()}#{self.id}"
