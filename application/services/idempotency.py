"""
下单幂等缓存

以 (user_id, 排序后的 (商品ID, 数量)) 的摘要为键，缓存完整的下单响应。
TTL 很短：吸收客户端重试/双击，但结账完成后相同内容的新购物车会生成新订单。
缓存是尽力而为的：不可用、读写失败都直接回落到 producer，不会阻塞下单。
"""
from __future__ import annotations

import hashlib
import json
from typing import Awaitable, Callable, Optional, Sequence

from pydantic import ValidationError

from application.dtos.orders import CreateOrderResponse
from application.ports.cache import CachePort
from core.logging_config import get_logger
from domain.order.pricing import CartLineLike


logger = get_logger(__name__)

IDEMPOTENCY_PREFIX = "order:idempotency:"


def cart_fingerprint(user_id: str, lines: Sequence[CartLineLike]) -> str:
    """sha256(JSON [user_id, [[id, qty], ...]])，商品按ID排序，与提交顺序无关

    编码无歧义：ID 或 user_id 中含有任何分隔字符都不会与其他购物车撞键。
    """
    items = sorted([line.catalog_item_id, line.quantity] for line in lines)
    canonical = json.dumps([user_id, items], ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class IdempotencyCache:
    def __init__(self, cache: Optional[CachePort], ttl_seconds: int = 60, prefix: str = IDEMPOTENCY_PREFIX):
        self._cache = cache
        self._ttl = ttl_seconds
        self._prefix = prefix

    def key(self, fingerprint: str) -> str:
        return f"{self._prefix}{fingerprint}"

    async def check_or_create(
        self,
        fingerprint: str,
        producer: Callable[[], Awaitable[CreateOrderResponse]],
    ) -> CreateOrderResponse:
        """命中则直接返回缓存响应；否则调用 producer 并写入缓存

        producer 抛出的异常原样传播，不会被缓存。
        """
        cached = await self._read(fingerprint)
        if cached is not None:
            logger.info("idempotency_hit", fingerprint=fingerprint, order_id=cached.order_id)
            return cached

        response = await producer()
        await self._write(fingerprint, response)
        return response

    async def _read(self, fingerprint: str) -> Optional[CreateOrderResponse]:
        if self._cache is None:
            return None
        try:
            raw = await self._cache.get(self.key(fingerprint))
        except Exception as exc:  # 缓存故障不影响下单
            logger.warning("idempotency_read_failed", fingerprint=fingerprint, error=str(exc))
            return None
        if raw is None:
            return None
        try:
            return CreateOrderResponse.model_validate(raw)
        except ValidationError as exc:
            logger.warning("idempotency_entry_invalid", fingerprint=fingerprint, error=str(exc))
            return None

    async def _write(self, fingerprint: str, response: CreateOrderResponse) -> None:
        if self._cache is None:
            return
        try:
            stored = await self._cache.set(self.key(fingerprint), response.model_dump(mode="json"), ttl=self._ttl)
        except Exception as exc:  # 缓存故障不影响下单
            logger.warning("idempotency_write_failed", fingerprint=fingerprint, error=str(exc))
            return
        if not stored:
            logger.warning("idempotency_write_skipped", fingerprint=fingerprint)
