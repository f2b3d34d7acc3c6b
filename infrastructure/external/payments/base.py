"""
支付网关适配器基类：httpx 连接池、超时与 tenacity 重试

具体网关继承本类，只实现报文映射与错误归类。
"""
from __future__ import annotations

from typing import Awaitable, Callable, Optional, TypeVar

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from application.dtos.payments import GatewayOrder, OpenPaymentOrder
from core.logging_config import get_logger
from core.settings import PaymentRetry, PaymentTimeouts


logger = get_logger(__name__)

R = TypeVar("R")


class BasePaymentClient:
    provider: str = "base"
    key_id: str = ""

    def __init__(
        self,
        *,
        timeouts: Optional[PaymentTimeouts] = None,
        retry: Optional[PaymentRetry] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._timeouts = timeouts or PaymentTimeouts()
        self._retry_cfg = retry or PaymentRetry()
        self._client = http_client

    @property
    def timeouts(self) -> httpx.Timeout:
        t = self._timeouts
        return httpx.Timeout(t.total, connect=t.connect, read=t.read, write=t.write)

    @property
    def http(self) -> httpx.AsyncClient:
        """懒加载并复用连接池，aclose() 时释放"""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeouts)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            try:
                await self._client.aclose()
            finally:
                self._client = None

    async def _with_retry(self, fn: Callable[[], Awaitable[R]]) -> R:
        """仅对传输层错误重试；默认 retry.max=0 即单次尝试"""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._retry_cfg.max + 1),
            wait=wait_exponential(multiplier=self._retry_cfg.base_backoff, min=0.1, max=2.0),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        ):
            with attempt:
                return await fn()
        raise AssertionError("unreachable")

    async def open_payment_order(self, req: OpenPaymentOrder) -> GatewayOrder:
        raise NotImplementedError

    def _log(self, event: str, **kwargs) -> None:
        logger.info(event, provider=self.provider, **kwargs)
