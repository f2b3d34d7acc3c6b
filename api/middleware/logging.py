"""
访问日志中间件：每个请求一条开始/结束日志，附带耗时与状态码

request_id、client_ip 由 RequestIDMiddleware 绑定到 structlog contextvars，
这里不重复记录。
"""
import json
import time
from typing import Any, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from core.config import settings
from core.logging_config import get_logger


logger = get_logger(__name__)

_QUIET_PATHS = frozenset({"/health", "/docs", "/redoc", "/openapi.json"})
# Webhook 原始报文写入审计表，访问日志只记元数据
_NO_BODY_PREFIXES = ("/api/v1/webhooks",)
_MASKED_FIELDS = frozenset({
    "password", "token", "access_token", "secret", "key_secret", "webhook_secret",
    "signature", "razorpay_signature",
})


def _mask(data: Any) -> Any:
    if isinstance(data, dict):
        return {k: "***" if str(k).lower() in _MASKED_FIELDS else _mask(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_mask(v) for v in data]
    return data


class LoggingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, *, log_body: Optional[bool] = None, max_body_bytes: Optional[int] = None):
        super().__init__(app)
        if log_body is None:
            log_body = settings.LOG_REQUEST_BODY_ENABLE_BY_DEFAULT and settings.DEBUG
        self.log_body = log_body
        self.max_body_bytes = max_body_bytes or settings.LOG_REQUEST_BODY_MAX_BYTES

    async def dispatch(self, request: Request, call_next):
        if request.url.path in _QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        fields = await self._request_fields(request)
        logger.info("request_started", **fields)

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "request_failed",
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
                error_type=type(exc).__name__,
                exc_info=True,
                **fields,
            )
            raise

        elapsed = time.perf_counter() - started
        response.headers["X-Process-Time"] = f"{elapsed:.3f}"
        self._log_completion(response, round(elapsed * 1000, 2), fields)
        return response

    async def _request_fields(self, request: Request) -> dict:
        fields: dict = {}
        if request.query_params:
            fields["query"] = dict(request.query_params)
        if request.method in ("POST", "PUT", "PATCH") and self._wants_body(request):
            body = await self._read_body(request)
            if body is not None:
                fields["body"] = body
        return fields

    def _wants_body(self, request: Request) -> bool:
        if request.url.path.startswith(_NO_BODY_PREFIXES):
            return False
        override = (request.headers.get("X-Log-Body") or "").lower()
        if override in ("true", "1"):
            return True
        if override in ("false", "0"):
            return False
        return self.log_body

    async def _read_body(self, request: Request) -> Any:
        raw = await request.body()
        if not raw:
            return None
        text = raw[: self.max_body_bytes].decode("utf-8", errors="ignore")
        if "application/json" not in request.headers.get("content-type", "").lower():
            return text
        try:
            return _mask(json.loads(text))
        except ValueError:
            # 截断后的 JSON 无法解析，按原文记录
            return text

    @staticmethod
    def _log_completion(response: Response, duration_ms: float, fields: dict) -> None:
        status_code = response.status_code
        if status_code >= 500:
            log = logger.error
        elif status_code >= 400:
            log = logger.warning
        else:
            log = logger.info
        log("request_completed", status_code=status_code, duration_ms=duration_ms, **fields)
