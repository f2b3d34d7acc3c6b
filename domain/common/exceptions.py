"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode
from shared.codes.order_codes import OrderCode
from shared.codes.payment_codes import PaymentCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
        )


class InvalidCartException(BusinessException):
    """空购物车、非正数量或重复商品"""

    def __init__(self, reason: str, *, catalog_item_id: Optional[str] = None):
        details = {"reason": reason}
        if catalog_item_id is not None:
            details["catalog_item_id"] = catalog_item_id
        super().__init__(
            code=OrderCode.INVALID_CART,
            message=f"Invalid cart: {reason}",
            error_type="InvalidCart",
            details=details,
            field="items",
        )


class ItemUnavailableException(BusinessException):
    def __init__(self, catalog_item_ids: list[str]):
        super().__init__(
            code=OrderCode.ITEM_UNAVAILABLE,
            message="One or more items are not available",
            error_type="ItemUnavailable",
            details={"catalog_item_ids": catalog_item_ids},
            field="items",
        )


class OrderNotFoundException(BusinessException):
    def __init__(self, order_id: Optional[str] = None, *, gateway_order_id: Optional[str] = None):
        details = {}
        if order_id is not None:
            details["order_id"] = order_id
        if gateway_order_id is not None:
            details["gateway_order_id"] = gateway_order_id
        super().__init__(
            code=OrderCode.ORDER_NOT_FOUND,
            message="Order not found",
            error_type="NotFound",
            details=details or None,
        )


class InvalidStatusTransitionException(BusinessException):
    def __init__(self, order_id: str, current: str, target: str):
        super().__init__(
            code=OrderCode.INVALID_STATUS_TRANSITION,
            message=f"Cannot move order from {current} to {target}",
            error_type="InvalidStatusTransition",
            details={"order_id": order_id, "current": current, "target": target},
            field="status",
        )
        self.current = current
        self.target = target


class VersionConflictException(BusinessException):
    """乐观锁冲突：提交的版本号已过期"""

    def __init__(self, order_id: str, expected_version: int):
        super().__init__(
            code=OrderCode.VERSION_CONFLICT,
            message="Order was modified concurrently, please retry",
            error_type="VersionConflict",
            details={"order_id": order_id, "expected_version": expected_version},
        )


class GatewayUnavailableException(BusinessException):
    def __init__(self, message: str, *, provider: str, details: Optional[dict] = None):
        full_details = {"provider": provider}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.GATEWAY_UNAVAILABLE,
            message=message,
            error_type="GatewayUnavailable",
            details=full_details,
        )


class InvalidSignatureException(BusinessException):
    def __init__(self, message: str = "Invalid signature", *, details: Optional[dict] = None):
        super().__init__(
            code=PaymentCode.SIGNATURE_ERROR,
            message=message,
            error_type="InvalidSignature",
            details=details,
        )


class RequestTimeoutException(BusinessException):
    """有界超时被触发，调用方可重试"""

    def __init__(self, operation: str, timeout: float):
        super().__init__(
            code=PaymentCode.TIMEOUT,
            message=f"{operation} timed out, please retry",
            error_type="RequestTimeout",
            details={"operation": operation, "timeout_seconds": timeout, "retryable": True},
        )
