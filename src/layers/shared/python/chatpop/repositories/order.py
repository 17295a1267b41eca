"""Order and attributed order repositories."""

from chatpop.models.order import AttributedOrder, Order
from chatpop.repositories.base import BaseRepository


class OrderRepository(BaseRepository[Order]):
    """Repository for orders received from the store platform."""

    def __init__(self, table_name: str | None = None):
        """Initialize order repository."""
        super().__init__(Order, table_name)

    def upsert(self, order: Order) -> Order:
        """Create or replace an order (order events may be redelivered)."""
        return self.put(order)

    def get_by_order_id(self, agent_id: str, order_id: str) -> Order | None:
        """Get an order by agent and store order ID."""
        return self.get(pk=f"AGENT#{agent_id}", sk=f"ORDER#{order_id}")

    def list_by_agent(self, agent_id: str) -> list[Order]:
        """List every order of an agent."""
        return self.query_all(f"AGENT#{agent_id}", sk_begins_with="ORDER#")


class AttributedOrderRepository(BaseRepository[AttributedOrder]):
    """Repository for insert-once attribution records."""

    def __init__(self, table_name: str | None = None):
        """Initialize attributed order repository."""
        super().__init__(AttributedOrder, table_name)

    def get_by_order_id(self, agent_id: str, order_id: str) -> AttributedOrder | None:
        """Get the attribution of an order, if any."""
        return self.get(pk=f"AGENT#{agent_id}", sk=f"ATTRIBUTION#{order_id}")

    def create_once(self, attributed_order: AttributedOrder) -> AttributedOrder:
        """Insert an attribution.

        Raises:
            ConflictError: If the order is already attributed.
        """
        return self.create(attributed_order)

    def list_by_agent(self, agent_id: str) -> list[AttributedOrder]:
        """List every attribution of an agent."""
        return self.query_all(f"AGENT#{agent_id}", sk_begins_with="ATTRIBUTION#")

    def list_by_conversation(self, conversation_id: str) -> list[AttributedOrder]:
        """List attributions credited to a conversation, oldest order first."""
        return self.query_all(
            f"CONV#{conversation_id}",
            index_name="GSI1",
            sk_begins_with="ORDER#",
        )
