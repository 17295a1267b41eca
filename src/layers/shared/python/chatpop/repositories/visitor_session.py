"""Visitor session and behavior event repositories.

Sessions are upserted with UpdateItem and if_not_exists so first-touch
fields are set on the first event and never overwritten.
"""

import structlog

from chatpop.models.base import generate_ulid, utc_now
from chatpop.models.visitor_session import BehaviorEvent, BehaviorEventType, VisitorSession
from chatpop.repositories.base import BaseRepository

logger = structlog.get_logger()


class VisitorSessionRepository(BaseRepository[VisitorSession]):
    """Repository for VisitorSession aggregates."""

    def __init__(self, table_name: str | None = None):
        """Initialize visitor session repository."""
        super().__init__(VisitorSession, table_name)

    def get_session(self, agent_id: str, session_id: str) -> VisitorSession | None:
        """Get a session by agent and session ID."""
        return self.get(pk=f"AGENT#{agent_id}", sk=f"SESSION#{session_id}")

    def record_activity(
        self,
        agent_id: str,
        session_id: str,
        event_type: BehaviorEventType | str,
        page_url: str,
        time_on_page_seconds: int | None = None,
        user_agent: str | None = None,
        referrer: str | None = None,
    ) -> VisitorSession:
        """Create or update a session for one incoming event.

        Page views increment the page view counter; time_spent events add
        their duration to the session total.

        Args:
            agent_id: Agent the widget belongs to.
            session_id: Visitor session ID.
            event_type: Type of the incoming event.
            page_url: Page the event happened on.
            time_on_page_seconds: Duration reported by a time_spent event.
            user_agent: Client user agent (first touch).
            referrer: HTTP referrer (first touch).

        Returns:
            The session after the update.
        """
        now = utc_now().isoformat()
        event_type = BehaviorEventType(event_type)

        set_parts = [
            "#id = if_not_exists(#id, :id)",
            "agent_id = if_not_exists(agent_id, :agent_id)",
            "session_id = if_not_exists(session_id, :session_id)",
            "first_page_url = if_not_exists(first_page_url, :page_url)",
            "user_agent = if_not_exists(user_agent, :ua)",
            "referrer = if_not_exists(referrer, :referrer)",
            "created_at = if_not_exists(created_at, :now)",
            "current_page_url = :page_url",
            "updated_at = :now",
        ]

        page_views = 1 if event_type == BehaviorEventType.PAGE_VIEW else 0
        time_spent = 0
        if event_type == BehaviorEventType.TIME_SPENT and time_on_page_seconds:
            time_spent = int(time_on_page_seconds)

        response = self.table.update_item(
            Key=self._build_key(f"AGENT#{agent_id}", f"SESSION#{session_id}"),
            UpdateExpression=(
                f"SET {', '.join(set_parts)} "
                "ADD total_page_views :page_views, total_time_spent_seconds :time_spent"
            ),
            ExpressionAttributeNames={"#id": "id"},
            ExpressionAttributeValues={
                ":id": generate_ulid(),
                ":agent_id": agent_id,
                ":session_id": session_id,
                ":page_url": page_url,
                ":ua": user_agent[:500] if user_agent else None,
                ":referrer": referrer,
                ":now": now,
                ":page_views": page_views,
                ":time_spent": time_spent,
            },
            ReturnValues="ALL_NEW",
        )

        logger.debug(
            "Visitor session updated",
            agent_id=agent_id,
            session_id=session_id,
            event_type=event_type.value,
        )
        return VisitorSession.from_dynamodb(response["Attributes"])


class BehaviorEventRepository(BaseRepository[BehaviorEvent]):
    """Repository for append-only behavior events."""

    def __init__(self, table_name: str | None = None):
        """Initialize behavior event repository."""
        super().__init__(BehaviorEvent, table_name)

    def append(self, event: BehaviorEvent) -> BehaviorEvent:
        """Append an event to its session."""
        return self.create(event)

    def list_for_session(self, session_id: str) -> list[BehaviorEvent]:
        """List a session's events in arrival order."""
        return self.query_all(f"SESSION#{session_id}", sk_begins_with="EVENT#")
