"""
Redis 缓存客户端 - 命名空间隔离、JSON 序列化、故障降级

Redis 故障时读操作返回默认值、写操作返回 False，调用方无需处理 RedisError；
幂等缓存据此在 Redis 不可用时退化为直通。
"""
from __future__ import annotations

import asyncio
import json
import socket
from dataclasses import dataclass
from typing import Any, Awaitable, Optional

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from core.config import settings
from core.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    errors: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class RedisClient:
    """满足 application.ports.cache.CachePort 的 Redis 实现"""

    def __init__(self, client: aioredis.Redis, namespace: str = "", default_ttl: Optional[int] = None):
        self._client = client
        self._namespace = namespace.strip(":")
        self._default_ttl = default_ttl if default_ttl is not None else settings.redis.default_ttl
        self.stats = CacheStats()

    def _key(self, key: str) -> str:
        return f"{self._namespace}:{key}" if self._namespace else key

    @staticmethod
    def _dumps(value: Any) -> str:
        return json.dumps(value, default=str, ensure_ascii=False)

    @staticmethod
    def _loads(raw: str) -> Any:
        try:
            return json.loads(raw)
        except ValueError:
            return raw

    async def _guard(self, op: str, key: Any, call: Awaitable[Any], fallback: Any) -> Any:
        try:
            return await call
        except RedisError as e:
            self.stats.errors += 1
            logger.error("cache_operation_failed", op=op, key=key, error=str(e))
            return fallback

    async def get(self, key: str, default: Any = None) -> Any:
        full_key = self._key(key)
        raw = await self._guard("get", full_key, self._client.get(full_key), None)
        if raw is None:
            self.stats.misses += 1
            return default
        self.stats.hits += 1
        return self._loads(raw)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None, nx: bool = False) -> bool:
        """写入缓存；nx=True 时仅在键不存在时写入"""
        full_key = self._key(key)
        expire = ttl if ttl is not None else self._default_ttl
        stored = await self._guard(
            "set",
            full_key,
            self._client.set(full_key, self._dumps(value), ex=expire if expire and expire > 0 else None, nx=nx),
            False,
        )
        logger.debug("cache_set", key=full_key, ttl=expire, stored=bool(stored))
        return bool(stored)

    async def delete(self, *keys: str) -> int:
        full_keys = [self._key(k) for k in keys]
        return await self._guard("delete", full_keys, self._client.delete(*full_keys), 0)

    async def exists(self, *keys: str) -> int:
        full_keys = [self._key(k) for k in keys]
        return await self._guard("exists", full_keys, self._client.exists(*full_keys), 0)

    async def expire(self, key: str, ttl: int) -> bool:
        full_key = self._key(key)
        return bool(await self._guard("expire", full_key, self._client.expire(full_key, ttl), False))

    async def ttl(self, key: str) -> int:
        """剩余生存时间（秒）；-2 表示键不存在或读取失败"""
        full_key = self._key(key)
        return await self._guard("ttl", full_key, self._client.ttl(full_key), -2)

    async def health_check(self) -> bool:
        try:
            return bool(await self._client.ping())
        except (RedisError, OSError) as e:
            logger.error("redis_health_check_failed", error=str(e))
            return False


# ============= 进程级实例（由 FastAPI lifespan 管理） =============

_raw_client: Optional[aioredis.Redis] = None
_cache: Optional[RedisClient] = None
_lock: Optional[asyncio.Lock] = None


def _keepalive_options() -> dict:
    if all(hasattr(socket, opt) for opt in ("TCP_KEEPIDLE", "TCP_KEEPINTVL", "TCP_KEEPCNT")):
        return {socket.TCP_KEEPIDLE: 1, socket.TCP_KEEPINTVL: 1, socket.TCP_KEEPCNT: 3}
    return {}


async def init_redis_client(namespace: Optional[str] = None, **kwargs) -> RedisClient:
    """连接 Redis 并创建全局 RedisClient（重复调用返回同一实例）

    Raises:
        RuntimeError: 未配置 REDIS__URL
        RedisError / OSError: 首次 PING 失败
    """
    global _raw_client, _cache, _lock

    if _lock is None:
        _lock = asyncio.Lock()
    async with _lock:
        if _cache is not None:
            return _cache
        if not settings.redis.url:
            raise RuntimeError("REDIS__URL 未配置，无法初始化Redis客户端")

        client = aioredis.from_url(
            settings.redis.url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=settings.redis.max_connections,
            socket_keepalive=True,
            socket_keepalive_options=_keepalive_options(),
            **kwargs,
        )
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            logger.error("redis_init_failed", error=str(e))
            await client.aclose()
            raise

        ns = namespace or settings.redis.namespace
        _raw_client = client
        _cache = RedisClient(client, namespace=ns)
        logger.info("redis_initialized", namespace=ns)
        return _cache


def get_redis_client() -> Optional[RedisClient]:
    """全局 RedisClient，未初始化时返回 None"""
    return _cache


async def shutdown_redis_client() -> None:
    global _raw_client, _cache

    if _raw_client is None:
        return
    try:
        await _raw_client.aclose()
        logger.info("redis_closed")
    except (RedisError, OSError) as e:
        logger.error("redis_close_failed", error=str(e))
    finally:
        _raw_client = None
        _cache = None
