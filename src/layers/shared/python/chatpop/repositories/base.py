"""Base repository class for DynamoDB operations."""

import os
from typing import Any, Generic, TypeVar

import boto3
import structlog
from botocore.exceptions import ClientError

from chatpop.models.base import BaseModel
from chatpop.utils.exceptions import ConflictError

logger = structlog.get_logger()

T = TypeVar("T", bound=BaseModel)

# Key attribute names per index
_INDEX_KEYS = {
    None: ("PK", "SK"),
    "GSI1": ("GSI1PK", "GSI1SK"),
}


class BaseRepository(Generic[T]):
    """Base repository for DynamoDB single-table design.

    Provides the generic fetch/insert/update operations the engine needs,
    with conditional writes for insert-once records.
    """

    def __init__(
        self,
        model_class: type[T],
        table_name: str | None = None,
    ):
        """Initialize repository.

        Args:
            model_class: The Pydantic model class for this repository.
            table_name: DynamoDB table name. Defaults to TABLE_NAME env var.
        """
        self.model_class = model_class
        self.table_name = table_name or os.environ.get("TABLE_NAME", "chatpop-dev")
        self._dynamodb = None
        self._table = None

    @property
    def dynamodb(self):
        """Get DynamoDB resource (lazy initialization)."""
        if self._dynamodb is None:
            self._dynamodb = boto3.resource("dynamodb")
        return self._dynamodb

    @property
    def table(self):
        """Get DynamoDB table (lazy initialization)."""
        if self._table is None:
            self._table = self.dynamodb.Table(self.table_name)
        return self._table

    def _build_key(self, pk: str, sk: str) -> dict[str, str]:
        """Build key dictionary for DynamoDB operations."""
        return {"PK": pk, "SK": sk}

    def get(self, pk: str, sk: str) -> T | None:
        """Get an item by its primary key.

        Args:
            pk: Partition key value.
            sk: Sort key value.

        Returns:
            Model instance or None if not found.
        """
        try:
            response = self.table.get_item(Key=self._build_key(pk, sk))
            item = response.get("Item")

            if not item:
                return None

            return self.model_class.from_dynamodb(item)

        except ClientError as e:
            logger.error("DynamoDB get_item failed", error=str(e), pk=pk, sk=sk)
            raise

    def put(self, item: T, condition_expression: str | None = None) -> T:
        """Put an item into DynamoDB, including its GSI1 keys.

        Args:
            item: Model instance to save.
            condition_expression: Optional condition expression.

        Returns:
            The saved model instance.

        Raises:
            ConflictError: If the condition expression fails.
        """
        try:
            item.update_timestamp()

            db_item = item.to_dynamodb()
            db_item.update(item.get_keys())

            gsi_keys = item.get_gsi1_keys()
            if gsi_keys:
                db_item.update(gsi_keys)

            kwargs: dict[str, Any] = {"Item": db_item}
            if condition_expression:
                kwargs["ConditionExpression"] = condition_expression

            self.table.put_item(**kwargs)

            logger.debug(
                "Item saved",
                pk=db_item["PK"],
                sk=db_item["SK"],
                model=self.model_class.__name__,
            )

            return item

        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise ConflictError("Item already exists or version mismatch")
            logger.error("DynamoDB put_item failed", error=str(e))
            raise

    def create(self, item: T) -> T:
        """Create a new item (fails if exists).

        Args:
            item: Model instance to create.

        Returns:
            The created model instance.

        Raises:
            ConflictError: If item already exists.
        """
        return self.put(item, condition_expression="attribute_not_exists(PK)")

    def query(
        self,
        pk: str,
        sk_begins_with: str | None = None,
        sk_between: tuple[str, str] | None = None,
        index_name: str | None = None,
        limit: int | None = None,
        scan_forward: bool = True,
        last_key: dict | None = None,
    ) -> tuple[list[T], dict | None]:
        """Query items by partition key.

        Args:
            pk: Partition key value.
            sk_begins_with: Sort key prefix for begins_with condition.
            sk_between: Inclusive (low, high) sort key range.
            index_name: Optional GSI name.
            limit: Maximum items to return.
            scan_forward: Sort direction (True = ascending).
            last_key: Last evaluated key for pagination.

        Returns:
            Tuple of (items, last_evaluated_key).
        """
        pk_attr, sk_attr = _INDEX_KEYS[index_name]

        key_condition = f"{pk_attr} = :pk"
        expr_values: dict[str, Any] = {":pk": pk}
        if sk_between:
            key_condition += f" AND {sk_attr} BETWEEN :sk_low AND :sk_high"
            expr_values[":sk_low"], expr_values[":sk_high"] = sk_between
        elif sk_begins_with:
            key_condition += f" AND begins_with({sk_attr}, :sk_prefix)"
            expr_values[":sk_prefix"] = sk_begins_with

        kwargs: dict[str, Any] = {
            "KeyConditionExpression": key_condition,
            "ExpressionAttributeValues": expr_values,
            "ScanIndexForward": scan_forward,
        }
        if index_name:
            kwargs["IndexName"] = index_name
        if limit:
            kwargs["Limit"] = limit
        if last_key:
            kwargs["ExclusiveStartKey"] = last_key

        try:
            response = self.table.query(**kwargs)
        except ClientError as e:
            logger.error("DynamoDB query failed", error=str(e), pk=pk, index=index_name)
            raise

        items = [self.model_class.from_dynamodb(item) for item in response.get("Items", [])]
        return items, response.get("LastEvaluatedKey")

    def query_all(self, pk: str, **kwargs: Any) -> list[T]:
        """Query every page of a partition.

        Args:
            pk: Partition key value.
            **kwargs: Same filters as query().

        Returns:
            All matching items.
        """
        items: list[T] = []
        last_key = None
        while True:
            page, last_key = self.query(pk, last_key=last_key, **kwargs)
            items.extend(page)
            if not last_key:
                return items
