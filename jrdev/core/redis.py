from typing import Optional

import redis

from jrdev.core.config import settings


class RedisClient:
    _client: Optional[redis.Redis] = None

    @classmethod
    def get_client(cls, url: Optional[str] = None) -> redis.Redis:
        if cls._client is None:
            cls._client = redis.from_url(url or settings.REDIS_URL, decode_responses=True)
        return cls._client


def get_redis(url: Optional[str] = None) -> redis.Redis:
    return RedisClient.get_client(url)
