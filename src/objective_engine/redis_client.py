"""Redis client used to fan out reward-claimed notifications."""

import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from objective_engine.config import Settings

logger = logging.getLogger(__name__)

CLAIM_CHANNEL = "pubsub:objective_reward_claimed"

_client: redis.Redis | None = None


async def init_redis(settings: Settings) -> redis.Redis | None:
    """Connect the notification client.

    Notifications are optional: when they are switched off, or Redis does not
    answer a ping at startup, no client is kept and claims publish nothing.
    """
    global _client  # noqa: PLW0603
    if not settings.publish_notifications:
        return None

    client = redis.from_url(  # type: ignore[no-untyped-call]
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=10,
    )
    try:
        await client.ping()
    except RedisError:
        logger.warning("Redis unreachable, claim notifications disabled", exc_info=True)
        await client.aclose()
        return None

    _client = client
    return client


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client:
        await _client.aclose()
        _client = None


def get_redis() -> redis.Redis | None:
    """The notification client, or None when publishing is off."""
    return _client
