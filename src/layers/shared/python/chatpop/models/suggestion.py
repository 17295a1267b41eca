"""Proactive suggestion model.

At most one suggestion exists per visitor session; the session ID in the
sort key doubles as the idempotency token.

DynamoDB keys:
    PK: AGENT#{agent_id}
    SK: SUGGESTION#{session_id}
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field

from chatpop.models.base import BaseModel


class EngagementFlag(str, Enum):
    """Monotonic engagement flags on a suggestion."""

    SHOWN = "was_shown"
    CLICKED = "was_clicked"
    CONVERSATION_STARTED = "conversation_started"


# Timestamp stamped on the first transition of each flag
FLAG_TIMESTAMPS = {
    EngagementFlag.SHOWN: "shown_at",
    EngagementFlag.CLICKED: "clicked_at",
    EngagementFlag.CONVERSATION_STARTED: "conversation_started_at",
}

# Setting a flag implies the flags before it in the funnel
IMPLIED_FLAGS = {
    EngagementFlag.SHOWN: (EngagementFlag.SHOWN,),
    EngagementFlag.CLICKED: (EngagementFlag.SHOWN, EngagementFlag.CLICKED),
    EngagementFlag.CONVERSATION_STARTED: (
        EngagementFlag.SHOWN,
        EngagementFlag.CLICKED,
        EngagementFlag.CONVERSATION_STARTED,
    ),
}


class ProactiveSuggestion(BaseModel):
    """A proactive chat suggestion surfaced to one visitor session."""

    session_id: str
    agent_id: str
    trigger_id: str
    suggestion_type: str
    suggested_message: str
    confidence: float = Field(..., ge=0, le=1)
    behavioral_triggers: dict[str, Any] = Field(default_factory=dict)

    was_shown: bool = False
    was_clicked: bool = False
    conversation_started: bool = False

    shown_at: datetime | None = None
    clicked_at: datetime | None = None
    conversation_started_at: datetime | None = None

    def get_pk(self) -> str:
        """Get the partition key."""
        return f"AGENT#{self.agent_id}"

    def get_sk(self) -> str:
        """Get the sort key."""
        return f"SUGGESTION#{self.session_id}"
