"""Proactive suggestion repository."""

import structlog
from botocore.exceptions import ClientError

from chatpop.models.base import utc_now
from chatpop.models.suggestion import (
    FLAG_TIMESTAMPS,
    IMPLIED_FLAGS,
    EngagementFlag,
    ProactiveSuggestion,
)
from chatpop.repositories.base import BaseRepository
from chatpop.utils.exceptions import NotFoundError

logger = structlog.get_logger()


class ProactiveSuggestionRepository(BaseRepository[ProactiveSuggestion]):
    """Repository for ProactiveSuggestion records (one per session)."""

    def __init__(self, table_name: str | None = None):
        """Initialize suggestion repository."""
        super().__init__(ProactiveSuggestion, table_name)

    def get_for_session(self, agent_id: str, session_id: str) -> ProactiveSuggestion | None:
        """Get the suggestion of a session, if one was dispatched."""
        return self.get(pk=f"AGENT#{agent_id}", sk=f"SUGGESTION#{session_id}")

    def create_once(self, suggestion: ProactiveSuggestion) -> ProactiveSuggestion:
        """Insert a suggestion.

        Raises:
            ConflictError: If the session already has a suggestion.
        """
        return self.create(suggestion)

    def set_flag(
        self,
        agent_id: str,
        session_id: str,
        flag: EngagementFlag,
    ) -> ProactiveSuggestion:
        """Set an engagement flag and the flags it implies.

        Flags are only ever set to true. Each timestamp is stamped on the
        first transition only.

        Args:
            agent_id: The agent ID.
            session_id: Session the suggestion belongs to.
            flag: Flag to set.

        Returns:
            The updated suggestion.

        Raises:
            NotFoundError: If the session has no suggestion.
        """
        set_parts = ["updated_at = :now"]
        for implied in IMPLIED_FLAGS[EngagementFlag(flag)]:
            timestamp_attr = FLAG_TIMESTAMPS[implied]
            set_parts.append(f"{implied.value} = :true")
            set_parts.append(f"{timestamp_attr} = if_not_exists({timestamp_attr}, :now)")

        try:
            response = self.table.update_item(
                Key=self._build_key(f"AGENT#{agent_id}", f"SUGGESTION#{session_id}"),
                UpdateExpression=f"SET {', '.join(set_parts)}",
                ConditionExpression="attribute_exists(PK)",
                ExpressionAttributeValues={":true": True, ":now": utc_now().isoformat()},
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise NotFoundError("ProactiveSuggestion", session_id)
            logger.error("DynamoDB update_item failed", error=str(e), session_id=session_id)
            raise

        return ProactiveSuggestion.from_dynamodb(response["Attributes"])

    def list_by_agent(self, agent_id: str) -> list[ProactiveSuggestion]:
        """List every suggestion of an agent."""
        return self.query_all(f"AGENT#{agent_id}", sk_begins_with="SUGGESTION#")
