"""
structlog 配置

- get_logger(__name__) 获取 logger；事件名 snake_case，业务字段用关键字参数
- 标准库 logging（uvicorn、sqlalchemy、alembic）经 ProcessorFormatter 走同一条处理链
- DEBUG 下彩色控制台输出，否则单行 JSON
"""
import json
import logging
import sys
from typing import Any, List

import structlog
from structlog.contextvars import merge_contextvars
from structlog.stdlib import ProcessorFormatter

from core.config import settings


# 签名与密钥原文不落日志
_SECRET_FIELDS = frozenset({"signature", "razorpay_signature", "key_secret", "webhook_secret", "secret", "authorization"})

_NOISY_LOGGERS = {"sqlalchemy.engine": logging.WARNING, "httpx": logging.WARNING, "httpcore": logging.WARNING}


def mask_secret_fields(_logger: Any, _method: str, event_dict: dict) -> dict:
    for key, value in event_dict.items():
        if value and key.lower() in _SECRET_FIELDS:
            event_dict[key] = "***"
    return event_dict


def _json_renderer() -> structlog.processors.JSONRenderer:
    def dumps(obj, **kwargs):
        kwargs.setdefault("ensure_ascii", False)
        return json.dumps(obj, **kwargs)

    return structlog.processors.JSONRenderer(serializer=dumps)


def configure_logging(debug: bool = settings.DEBUG) -> None:
    pre_chain: List[Any] = [
        merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        mask_secret_fields,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    structlog.configure(
        processors=[*pre_chain, ProcessorFormatter.wrap_for_formatter],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer = structlog.dev.ConsoleRenderer(colors=True) if debug else _json_renderer()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if debug else logging.INFO)

    for name, level in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(level)
    if settings.database.echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


configure_logging()
