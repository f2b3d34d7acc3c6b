"""
订单仓储接口 - 定义订单数据访问的抽象接口
"""
from abc import ABC, abstractmethod
from typing import Optional, List

from .entity import Order, OrderStatus


class OrderRepository(ABC):
    """订单仓储抽象接口

    所有状态变更都是条件更新（compare-and-swap）：调用方提交读取时的版本号，
    版本不一致时抛出 VersionConflictException，而不是覆盖写入。
    """

    @abstractmethod
    async def create(self, order: Order) -> Order:
        """持久化新订单（含明细快照）"""
        pass

    @abstractmethod
    async def get_by_id(self, order_id: str) -> Optional[Order]:
        """根据ID获取订单（总是读取最新已提交状态）"""
        pass

    @abstractmethod
    async def get_by_gateway_order_id(self, gateway_order_id: str) -> Optional[Order]:
        """根据网关订单号获取订单"""
        pass

    @abstractmethod
    async def list_by_user(self, user_id: str, skip: int = 0, limit: int = 100) -> List[Order]:
        """获取用户订单列表（按创建时间倒序）"""
        pass

    @abstractmethod
    async def list_all(
        self,
        skip: int = 0,
        limit: int = 100,
        status: Optional[OrderStatus] = None,
    ) -> List[Order]:
        """获取全部订单（管理端）"""
        pass

    @abstractmethod
    async def update_status(
        self,
        order_id: str,
        *,
        expected_version: int,
        status: OrderStatus,
        gateway_order_id: Optional[str] = None,
        gateway_payment_id: Optional[str] = None,
    ) -> Order:
        """条件更新状态与网关引用，版本号 +1

        Raises:
            OrderNotFoundException: 订单不存在
            VersionConflictException: 版本号已变化
        """
        pass
