"""
订单API路由 - 下单、支付验签、订单查询
"""
from typing import List

from fastapi import APIRouter, Depends, Query, status

from api.dependencies import Principal, get_current_principal, get_order_service
from application.dtos.orders import (
    CreateOrderRequest,
    CreateOrderResponse,
    OrderDTO,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from application.services.order_service import OrderApplicationService
from core.config import settings
from core.response import Response as ApiResponse, success_response


router = APIRouter(
    prefix="/orders",
    tags=["订单"]
)


@router.post(
    "",
    summary="下单并开启支付",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[CreateOrderResponse],
)
async def create_order(
    payload: CreateOrderRequest,
    principal: Principal = Depends(get_current_principal),
    service: OrderApplicationService = Depends(get_order_service),
):
    """
    提交购物车创建订单

    - 金额由服务端按目录价格重新计算，客户端价格字段被忽略
    - 相同用户、相同购物车在短时间内重复提交会返回同一订单
    """
    result = await service.create_order(principal.user_id, payload.items)
    return success_response(data=result, message="Order created")


@router.post("/verify", summary="客户端支付验签", response_model=ApiResponse[VerifyPaymentResponse])
async def verify_payment(
    payload: VerifyPaymentRequest,
    principal: Principal = Depends(get_current_principal),
    service: OrderApplicationService = Depends(get_order_service),
):
    """验签失败返回 success=false（HTTP 200），不是服务端错误"""
    result = await service.verify_payment(principal.user_id, payload)
    return success_response(data=result, message=result.message)


@router.get("", summary="我的订单", response_model=ApiResponse[List[OrderDTO]])
async def list_my_orders(
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    principal: Principal = Depends(get_current_principal),
    service: OrderApplicationService = Depends(get_order_service),
):
    orders = await service.list_user_orders(principal.user_id, skip=skip, limit=limit)
    return success_response(data=orders)


@router.get("/{order_id}", summary="订单详情", response_model=ApiResponse[OrderDTO])
async def get_order(
    order_id: str,
    principal: Principal = Depends(get_current_principal),
    service: OrderApplicationService = Depends(get_order_service),
):
    order = await service.get_order(order_id, principal.user_id, is_admin=principal.is_admin)
    return success_response(data=order)
