"""Order attribution worker.

Consumes order-upsert events from SQS. Each message body carries the agent
ID and either a normalized order or the raw Shopify webhook payload. The
order is upserted and then attributed to a conversation.
"""

import json
from typing import Any

import structlog

from chatpop.models.order import AttributedOrder, Order
from chatpop.repositories.order import OrderRepository
from chatpop.services.attribution_resolver import AttributionResolver

logger = structlog.get_logger()


def handler(event: dict[str, Any], context: Any) -> dict:
    """Process order-upsert events from SQS.

    A failing record never aborts the batch; failed message IDs are
    reported for partial retry.

    Args:
        event: SQS event with records.
        context: Lambda context.

    Returns:
        Batch item failures for partial retry.
    """
    records = event.get("Records", [])
    batch_item_failures = []
    attributed = 0

    logger.info("Processing order events", record_count=len(records))

    order_repo = OrderRepository()
    resolver = AttributionResolver()

    for record in records:
        try:
            if process_order_record(record, order_repo, resolver):
                attributed += 1
        except Exception as e:
            logger.exception(
                "Failed to process order event",
                message_id=record.get("messageId"),
                error=str(e),
            )
            batch_item_failures.append({"itemIdentifier": record.get("messageId")})

    logger.info(
        "Order events processed",
        record_count=len(records),
        attributed=attributed,
        failed=len(batch_item_failures),
    )

    return {"batchItemFailures": batch_item_failures}


def parse_order(body: dict[str, Any]) -> Order:
    """Build an Order from an event body.

    Args:
        body: Decoded message body.

    Returns:
        The normalized order.

    Raises:
        ValueError: If the body has no agent ID or no order.
    """
    agent_id = body.get("agent_id")
    if not agent_id:
        raise ValueError("agent_id is required")

    if body.get("shopify_payload"):
        return Order.from_shopify_payload(agent_id, body["shopify_payload"])
    if body.get("order"):
        return Order.model_validate({**body["order"], "agent_id": agent_id})

    raise ValueError("Order event has neither order nor shopify_payload")


def process_order_record(
    record: dict[str, Any],
    order_repo: OrderRepository,
    resolver: AttributionResolver,
) -> AttributedOrder | None:
    """Upsert and attribute the order of one SQS record.

    Args:
        record: SQS record.
        order_repo: Order store.
        resolver: Attribution resolver.

    Returns:
        The attribution, or None if no conversation matched.
    """
    body = json.loads(record.get("body") or "{}")
    order = parse_order(body)

    order_repo.upsert(order)
    logger.debug("Order upserted", order_id=order.order_id, agent_id=order.agent_id)

    return resolver.resolve(order)
