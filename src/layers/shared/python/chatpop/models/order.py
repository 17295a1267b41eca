"""Order and attributed order models.

DynamoDB keys:
    Order            PK: AGENT#{agent_id}   SK: ORDER#{order_id}
    AttributedOrder  PK: AGENT#{agent_id}   SK: ATTRIBUTION#{order_id}
                     GSI1PK: CONV#{conversation_id}
                     GSI1SK: ORDER#{order_created_at}
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel as PydanticBaseModel, Field, field_validator

from chatpop.models.base import BaseModel, ensure_utc, utc_now


class LineItem(PydanticBaseModel):
    """A purchased line item."""

    id: str | None = None
    title: str = ""
    quantity: int = Field(default=1, ge=0)
    price: float = Field(default=0.0, ge=0)
    sku: str | None = None
    variant_id: str | None = None
    variant_title: str | None = None
    product_id: str | None = None


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


class Order(BaseModel):
    """An e-commerce order as received from the store platform."""

    agent_id: str
    order_id: str = Field(..., min_length=1)
    order_number: str | None = None

    customer_email: str | None = None
    customer_name: str | None = None

    line_items: list[LineItem] = Field(default_factory=list)
    total_price: float = Field(default=0.0, ge=0)
    currency: str = "USD"

    order_created_at: datetime = Field(default_factory=utc_now)

    @field_validator("customer_email")
    @classmethod
    def normalize_customer_email(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("order_created_at")
    @classmethod
    def order_time_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @property
    def line_item_titles(self) -> list[str]:
        """Titles of purchased items, in order."""
        return [item.title for item in self.line_items if item.title]

    def get_pk(self) -> str:
        """Get the partition key."""
        return f"AGENT#{self.agent_id}"

    def get_sk(self) -> str:
        """Get the sort key."""
        return f"ORDER#{self.order_id}"

    @classmethod
    def from_shopify_payload(cls, agent_id: str, payload: dict[str, Any]) -> "Order":
        """Normalize a Shopify ``orders/create`` or ``orders/updated`` webhook payload.

        Args:
            agent_id: Agent the store is connected to.
            payload: Raw webhook JSON.

        Returns:
            Normalized Order.
        """
        customer = payload.get("customer") or {}
        customer_name = None
        if customer:
            customer_name = (
                f"{customer.get('first_name') or ''} {customer.get('last_name') or ''}".strip()
                or None
            )

        line_items = [
            LineItem(
                id=_optional_str(item.get("id")),
                title=item.get("title") or "",
                quantity=item.get("quantity") or 0,
                price=_to_float(item.get("price")),
                sku=_optional_str(item.get("sku")),
                variant_id=_optional_str(item.get("variant_id")),
                variant_title=item.get("variant_title"),
                product_id=_optional_str(item.get("product_id")),
            )
            for item in payload.get("line_items") or []
        ]

        data: dict[str, Any] = {
            "agent_id": agent_id,
            "order_id": _optional_str(payload.get("id")) or "",
            "order_number": _optional_str(payload.get("name") or payload.get("order_number")),
            "customer_email": customer.get("email") or payload.get("email"),
            "customer_name": customer_name,
            "line_items": line_items,
            "total_price": _to_float(payload.get("total_price")),
            "currency": payload.get("currency") or "USD",
        }
        if payload.get("created_at"):
            data["order_created_at"] = payload["created_at"]

        return cls.model_validate(data)


class AttributedOrder(BaseModel):
    """The link between an order and the conversation that most likely drove it.

    Written once per order and immutable thereafter.
    """

    agent_id: str
    order_id: str
    conversation_id: str

    attribution_type: str
    attribution_confidence: float = Field(..., ge=0, le=1)

    order_number: str | None = None
    customer_email: str | None = None
    total_price: float = 0.0
    currency: str = "USD"
    line_items: list[LineItem] = Field(default_factory=list)
    order_created_at: datetime

    # Evidence
    matched_titles: list[str] = Field(default_factory=list)
    temporal_delta_minutes: float | None = None
    candidate_conversation_ids: list[str] = Field(default_factory=list)

    def get_pk(self) -> str:
        """Get the partition key."""
        return f"AGENT#{self.agent_id}"

    def get_sk(self) -> str:
        """Get the sort key."""
        return f"ATTRIBUTION#{self.order_id}"

    def get_gsi1_keys(self) -> dict[str, str]:
        """Get GSI1 keys for per-conversation lookups."""
        return {
            "GSI1PK": f"CONV#{self.conversation_id}",
            "GSI1SK": f"ORDER#{ensure_utc(self.order_created_at).isoformat()}",
        }
