"""支付网关端口：应用层只依赖这个协议，具体网关在 infrastructure.external.payments 中实现"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from application.dtos.payments import GatewayOrder, OpenPaymentOrder


@runtime_checkable
class PaymentGateway(Protocol):
    # 写入订单记录的网关名，以及返回给前端唤起支付用的公钥
    provider: str
    key_id: str

    async def open_payment_order(self, req: OpenPaymentOrder) -> GatewayOrder:
        """在网关侧创建支付单

        Raises:
            GatewayUnavailableException: 网络错误、鉴权失败、上游 4xx/5xx 或响应缺少订单号
        """
        ...

    async def aclose(self) -> None:
        ...
