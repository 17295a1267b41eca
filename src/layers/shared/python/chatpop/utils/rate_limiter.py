"""Rate limiting for the public widget endpoints."""

import os
import time
from typing import NamedTuple

import boto3
import structlog
from botocore.exceptions import ClientError

from chatpop.utils.responses import PUBLIC_CORS_HEADERS

logger = structlog.get_logger()

DEFAULT_REQUESTS_PER_MINUTE = 60
DEFAULT_REQUESTS_PER_HOUR = 1000


class RateLimitResult(NamedTuple):
    """Result of a rate limit check."""

    allowed: bool
    requests_remaining: int
    retry_after: int | None  # Seconds until limit resets


def _get_table():
    return boto3.resource("dynamodb").Table(os.environ.get("TABLE_NAME", "chatpop-dev"))


def _increment_bucket(table, pk: str, identifier: str, ttl: int) -> int:
    response = table.update_item(
        Key={"PK": pk, "SK": identifier},
        UpdateExpression="SET #count = if_not_exists(#count, :zero) + :inc, #ttl = :ttl",
        ExpressionAttributeNames={"#count": "count", "#ttl": "ttl"},
        ExpressionAttributeValues={":zero": 0, ":inc": 1, ":ttl": ttl},
        ReturnValues="ALL_NEW",
    )
    return int(response["Attributes"]["count"])


def check_rate_limit(
    identifier: str,
    action: str,
    requests_per_minute: int = DEFAULT_REQUESTS_PER_MINUTE,
    requests_per_hour: int = DEFAULT_REQUESTS_PER_HOUR,
) -> RateLimitResult:
    """Check if a request should be rate limited.

    Counts requests in fixed minute and hour buckets stored in DynamoDB
    with TTL cleanup. Fails open when DynamoDB is unavailable.

    Args:
        identifier: Unique identifier (visitor session ID or client IP).
        action: Action being rate limited (e.g., "track_behavior").
        requests_per_minute: Max requests allowed per minute.
        requests_per_hour: Max requests allowed per hour.

    Returns:
        RateLimitResult with allowed status and remaining requests.
    """
    table = _get_table()
    current_time = int(time.time())

    try:
        minute_count = _increment_bucket(
            table,
            f"RATELIMIT#{action}#MIN#{current_time // 60}",
            identifier,
            current_time + 120,
        )
        if minute_count > requests_per_minute:
            logger.warning(
                "Rate limit exceeded (minute)",
                identifier=identifier[:20],
                action=action,
                count=minute_count,
                limit=requests_per_minute,
            )
            return RateLimitResult(False, 0, 60 - (current_time % 60))

        hour_count = _increment_bucket(
            table,
            f"RATELIMIT#{action}#HOUR#{current_time // 3600}",
            identifier,
            current_time + 7200,
        )
        if hour_count > requests_per_hour:
            logger.warning(
                "Rate limit exceeded (hour)",
                identifier=identifier[:20],
                action=action,
                count=hour_count,
                limit=requests_per_hour,
            )
            return RateLimitResult(False, 0, 3600 - (current_time % 3600))

        return RateLimitResult(
            allowed=True,
            requests_remaining=min(
                requests_per_minute - minute_count,
                requests_per_hour - hour_count,
            ),
            retry_after=None,
        )

    except ClientError as e:
        logger.error(
            "Rate limiter DynamoDB error",
            error=str(e),
            identifier=identifier[:20],
            action=action,
        )
        return RateLimitResult(allowed=True, requests_remaining=-1, retry_after=None)


def rate_limit_response(retry_after: int) -> dict:
    """Generate a 429 Too Many Requests response.

    Args:
        retry_after: Seconds until the client can retry.

    Returns:
        API Gateway response dict.
    """
    return {
        "statusCode": 429,
        "headers": {
            **PUBLIC_CORS_HEADERS,
            "Retry-After": str(retry_after),
        },
        "body": '{"error": true, "message": "Too many requests. Please try again later.", "error_code": "RATE_LIMITED"}',
    }
