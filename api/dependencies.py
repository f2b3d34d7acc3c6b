"""
API依赖项 - 认证、授权与服务装配（组合根）
"""
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from application.ports.payment_gateway import PaymentGateway
from application.services.idempotency import IdempotencyCache
from application.services.order_service import OrderApplicationService
from application.services.webhook_service import WebhookIngestionService
from core.config import settings
from core.exceptions import ForbiddenException, UnauthorizedException
from core.logging_config import get_logger
from core.settings import payment_settings
from domain.services.signature import SignatureVerifier
from infrastructure.external.cache import get_redis_client
from infrastructure.external.payments import get_payment_gateway
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


logger = get_logger(__name__)

# HTTP Bearer for direct API calls
http_bearer = HTTPBearer(
    scheme_name="Bearer",
    description="JWT Bearer token authentication",
    auto_error=False,
)


@dataclass(frozen=True)
class Principal:
    """已认证的调用方（令牌由认证服务签发，本服务只做校验）"""
    user_id: str
    is_admin: bool = False


async def get_token(
    bearer_token: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer)
) -> str:
    """从Bearer token中提取token"""
    if bearer_token and bearer_token.credentials:
        return bearer_token.credentials

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Missing authentication credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_access_token(token: str) -> Principal:
    """校验访问令牌并解析调用方身份"""
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedException("Token expired")
    except jwt.InvalidTokenError:
        raise UnauthorizedException("Invalid authentication credentials")

    token_type = payload.get("type")
    if token_type is not None and token_type != "access":
        raise UnauthorizedException("Invalid token type")

    user_id = str(payload.get("sub") or "")
    if not user_id:
        raise UnauthorizedException("Invalid authentication credentials")

    is_admin = bool(payload.get("is_superuser")) or payload.get("role") == "admin"
    return Principal(user_id=user_id, is_admin=is_admin)


async def get_current_principal(token: str = Depends(get_token)) -> Principal:
    """获取当前调用方"""
    return decode_access_token(token)


async def get_current_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    """获取当前管理员"""
    if not principal.is_admin:
        raise ForbiddenException("Admin privileges required")
    return principal


# ============= 服务装配 =============

def get_gateway(request: Request) -> PaymentGateway:
    """支付网关在 lifespan 中创建并复用连接池；未创建时按需创建"""
    gateway = getattr(request.app.state, "payment_gateway", None)
    if gateway is None:
        gateway = get_payment_gateway()
        request.app.state.payment_gateway = gateway
    return gateway


def get_signature_verifier() -> SignatureVerifier:
    cfg = payment_settings.razorpay
    return SignatureVerifier(key_secret=cfg.key_secret, webhook_secret=cfg.webhook_secret)


def get_idempotency_cache() -> IdempotencyCache:
    # Redis 未配置/未初始化时缓存退化为直通
    return IdempotencyCache(
        get_redis_client(),
        ttl_seconds=payment_settings.order.idempotency_ttl_seconds,
    )


def get_order_service(
    gateway: PaymentGateway = Depends(get_gateway),
    verifier: SignatureVerifier = Depends(get_signature_verifier),
    idempotency: IdempotencyCache = Depends(get_idempotency_cache),
) -> OrderApplicationService:
    return OrderApplicationService(
        uow_factory=SQLAlchemyUnitOfWork,
        gateway=gateway,
        signature_verifier=verifier,
        idempotency_cache=idempotency,
        order_settings=payment_settings.order,
    )


def get_webhook_service(
    verifier: SignatureVerifier = Depends(get_signature_verifier),
) -> WebhookIngestionService:
    return WebhookIngestionService(
        uow_factory=SQLAlchemyUnitOfWork,
        signature_verifier=verifier,
        source=payment_settings.webhook.source,
        timeout_seconds=payment_settings.order.webhook_timeout_seconds,
    )
