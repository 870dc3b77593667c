from collections.abc import AsyncIterator

from redis.asyncio import Redis

from eventdesk.core.config import get_settings
from eventdesk.core.logging import get_logger

logger = get_logger(__name__)


async def get_redis_client() -> AsyncIterator[Redis | None]:
    settings = get_settings()
    client: Redis | None = None
    try:
        client = Redis.from_url(settings.redis_url)
    except Exception as exc:  # pragma: no cover - redis optional in tests
        logger.warning("redis.unavailable", error=str(exc))
    try:
        yield client
    finally:
        if client is not None:
            await client.aclose()
