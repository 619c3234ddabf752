from __future__ import annotations

from redis import Redis
from redis.connection import ConnectionPool

_pools: dict[str, ConnectionPool] = {}


def get_redis(url: str) -> Redis:
    pool = _pools.get(url)
    if pool is None:
        pool = _pools.setdefault(url, ConnectionPool.from_url(url, decode_responses=True))
    return Redis(connection_pool=pool)
