"""
业务码（各层共享的唯一来源）

通用码放在 BusinessCode；订单与支付网关相关的码分别在
order_codes（21xxx）与 payment_codes（6xxxx）中定义。
"""
from enum import IntEnum

from .order_codes import OrderCode
from .payment_codes import PaymentCode


class BusinessCode(IntEnum):
    SUCCESS = 0

    # 参数错误 1xxxx
    PARAM_ERROR = 10000
    PARAM_VALIDATION_ERROR = 10003

    # 业务错误 2xxxx
    BUSINESS_ERROR = 20000
    NOT_FOUND = 20006

    # 认证/授权 3xxxx
    UNAUTHORIZED = 30001
    FORBIDDEN = 30002

    # 系统错误 4xxxx
    SYSTEM_ERROR = 40000
    DATABASE_ERROR = 40001
    SERVICE_UNAVAILABLE = 40003

    # 限流 5xxxx
    TOO_MANY_REQUESTS = 50001


__all__ = ["BusinessCode", "OrderCode", "PaymentCode"]
