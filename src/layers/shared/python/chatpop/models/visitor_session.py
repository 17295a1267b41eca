"""Visitor session and behavior event models.

A visitor session is one anonymous browsing session on a tenant's site,
identified by the session ID the widget generates. Behavior events are
appended to the session as the visitor navigates, scrolls and dwells.

DynamoDB keys:
    VisitorSession  PK: AGENT#{agent_id}     SK: SESSION#{session_id}
    BehaviorEvent   PK: SESSION#{session_id} SK: EVENT#{created_at}#{id}
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel as PydanticBaseModel, Field

from chatpop.models.base import BaseModel, ensure_utc


class BehaviorEventType(str, Enum):
    """Kinds of visitor telemetry the widget reports."""

    PAGE_VIEW = "page_view"
    SCROLL = "scroll"
    TIME_SPENT = "time_spent"
    CLICK = "click"
    ELEMENT_VISIBLE = "element_visible"


class VisitorSession(BaseModel):
    """Aggregate view of one visitor session.

    First-touch fields are set once by the repository upsert and never
    overwritten.
    """

    session_id: str
    agent_id: str

    # First touch
    first_page_url: str | None = None
    user_agent: str | None = None
    referrer: str | None = None

    # Latest activity
    current_page_url: str | None = None

    total_page_views: int = Field(default=0, ge=0)
    total_time_spent_seconds: int = Field(default=0, ge=0)

    def get_pk(self) -> str:
        """Get the partition key."""
        return f"AGENT#{self.agent_id}"

    def get_sk(self) -> str:
        """Get the sort key."""
        return f"SESSION#{self.session_id}"


class BehaviorEvent(BaseModel):
    """A single telemetry event within a visitor session. Append-only."""

    session_id: str
    agent_id: str
    event_type: BehaviorEventType
    page_url: str = ""

    scroll_depth: float | None = Field(default=None, ge=0, le=100)
    element_selector: str | None = None
    time_on_page_seconds: int | None = Field(default=None, ge=0)

    event_data: dict[str, Any] = Field(default_factory=dict)

    def get_pk(self) -> str:
        """Get the partition key."""
        return f"SESSION#{self.session_id}"

    def get_sk(self) -> str:
        """Get the sort key (sortable by arrival time)."""
        return f"EVENT#{ensure_utc(self.created_at).isoformat()}#{self.id}"


class TrackBehaviorRequest(PydanticBaseModel):
    """Request body for the public behavior tracking endpoint."""

    agent_id: str = Field(..., min_length=1, max_length=100)
    session_id: str = Field(..., min_length=1, max_length=100)
    event_type: BehaviorEventType
    page_url: str = Field(default="", max_length=2048)
    scroll_depth: float | None = Field(default=None, ge=0, le=100)
    element_selector: str | None = Field(default=None, max_length=500)
    time_on_page_seconds: int | None = Field(default=None, ge=0)
    user_agent: str | None = Field(default=None, max_length=500)
    referrer: str | None = Field(default=None, max_length=2048)
    event_data: dict[str, Any] = Field(default_factory=dict)

    def to_event(self) -> BehaviorEvent:
        """Build the BehaviorEvent this request records."""
        return BehaviorEvent(
            session_id=self.session_id,
            agent_id=self.agent_id,
            event_type=self.event_type,
            page_url=self.page_url,
            scroll_depth=self.scroll_depth,
            element_selector=self.element_selector,
            time_on_page_seconds=self.time_on_page_seconds,
            event_data=self.event_data,
        )
