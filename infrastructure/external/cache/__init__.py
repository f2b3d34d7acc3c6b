"""Redis 缓存（幂等缓存的存储后端）"""
from .redis_client import (
    CacheStats,
    RedisClient,
    get_redis_client,
    init_redis_client,
    shutdown_redis_client,
)

__all__ = [
    "CacheStats",
    "RedisClient",
    "get_redis_client",
    "init_redis_client",
    "shutdown_redis_client",
]
