"""Pytest configuration and fixtures."""

import json
import os
from datetime import datetime, timezone

import pytest

# Set environment variables before imports
os.environ["TABLE_NAME"] = "chatpop-test"
os.environ["STAGE"] = "test"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"

AGENT_ID = "test-agent-123"
ORDER_TIME = datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)


@pytest.fixture
def aws_credentials():
    """Mock AWS credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"


@pytest.fixture
def dynamodb_table(aws_credentials):
    """Create mocked DynamoDB table."""
    import boto3
    from moto import mock_aws

    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")

        table = dynamodb.create_table(
            TableName="chatpop-test",
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "PK", "AttributeType": "S"},
                {"AttributeName": "SK", "AttributeType": "S"},
                {"AttributeName": "GSI1PK", "AttributeType": "S"},
                {"AttributeName": "GSI1SK", "AttributeType": "S"},
            ],
            GlobalSecondaryIndexes=[
                {
                    "IndexName": "GSI1",
                    "KeySchema": [
                        {"AttributeName": "GSI1PK", "KeyType": "HASH"},
                        {"AttributeName": "GSI1SK", "KeyType": "RANGE"},
                    ],
                    "Projection": {"ProjectionType": "ALL"},
                },
            ],
            BillingMode="PAY_PER_REQUEST",
        )

        table.wait_until_exists()

        yield table


@pytest.fixture
def sample_order():
    """Create a sample order placed at ORDER_TIME."""
    from chatpop.models.order import LineItem, Order

    return Order(
        agent_id=AGENT_ID,
        order_id="order-1001",
        order_number="#1001",
        customer_email="jane@example.com",
        customer_name="Jane Doe",
        line_items=[
            LineItem(id="li-1", title="Blue Widget", quantity=2, price=25.0, product_id="p-1"),
        ],
        total_price=50.0,
        currency="USD",
        order_created_at=ORDER_TIME,
    )


@pytest.fixture
def sample_conversation():
    """Create a sample conversation with a captured lead email."""
    from chatpop.models.conversation import Conversation

    return Conversation(
        id="conv-001",
        agent_id=AGENT_ID,
        session_id="session-abc",
        lead_email="Jane@Example.com",
        last_message_at=datetime(2026, 3, 10, 14, 50, tzinfo=timezone.utc),
        message_count=4,
    )


@pytest.fixture
def proactive_config():
    """Create an enabled proactive configuration with one custom trigger."""
    from chatpop.models.trigger import ProactiveConfig

    return ProactiveConfig(
        agent_id=AGENT_ID,
        enabled=True,
        custom_triggers=[
            {
                "id": "ct-1",
                "trigger_type": "time_based",
                "time_threshold_seconds": 60,
                "message": "Need help?",
            },
        ],
    )


@pytest.fixture
def api_gateway_event():
    """Create a sample API Gateway event."""
    def _create_event(
        method: str = "GET",
        path: str = "/",
        path_params: dict = None,
        query_params: dict = None,
        body: dict = None,
        user_id: str = "test-user-123",
        agent_ids: list = None,
        authorized: bool = True,
    ):
        agent_ids = agent_ids or [AGENT_ID]

        request_context = {"identity": {"sourceIp": "1.2.3.4"}}
        if authorized:
            request_context["authorizer"] = {
                "userId": user_id,
                "email": "test@example.com",
                "agentIds": ",".join(agent_ids),
                "isAdmin": "false",
            }

        return {
            "httpMethod": method,
            "path": path,
            "pathParameters": path_params or {},
            "queryStringParameters": query_params or {},
            "body": body if isinstance(body, str) else (
                json.dumps(body) if body else None
            ),
            "headers": {
                "Authorization": "Bearer test-token",
                "Content-Type": "application/json",
            },
            "requestContext": request_context,
        }

    return _create_event


@pytest.fixture
def sqs_event():
    """Create an SQS event from message bodies."""
    def _create_event(*bodies):
        return {
            "Records": [
                {
                    "messageId": f"msg-{index}",
                    "body": body if isinstance(body, str) else json.dumps(body),
                    "eventSource": "aws:sqs",
                }
                for index, body in enumerate(bodies)
            ],
        }

    return _create_event


class LambdaContext:
    """Mock Lambda context."""

    def __init__(self):
        self.function_name = "test-function"
        self.memory_limit_in_mb = 128
        self.invoked_function_arn = "arn:aws:lambda:us-east-1:123456789:function:test"
        self.aws_request_id = "test-request-id"

    def get_remaining_time_in_millis(self):
        return 30000


@pytest.fixture
def lambda_context():
    """Create a mock Lambda context."""
    return LambdaContext()
