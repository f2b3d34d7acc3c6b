"""
管理端API路由 - 订单总览、履约推进、Webhook 审计查询
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import (
    Principal,
    get_current_admin,
    get_order_service,
    get_webhook_service,
)
from application.dtos.orders import OrderDTO, UpdateOrderStatusRequest, WebhookAuditDTO
from application.services.order_service import OrderApplicationService
from application.services.webhook_service import WebhookIngestionService
from core.config import settings
from core.response import Response as ApiResponse, success_response
from domain.order.entity import OrderStatus


router = APIRouter(
    prefix="/admin/orders",
    tags=["管理端-订单"]
)


@router.get("", summary="全部订单", response_model=ApiResponse[List[OrderDTO]])
async def list_orders(
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    status: Optional[OrderStatus] = Query(None, description="按状态过滤"),
    _admin: Principal = Depends(get_current_admin),
    service: OrderApplicationService = Depends(get_order_service),
):
    orders = await service.list_all_orders(skip=skip, limit=limit, status=status)
    return success_response(data=orders)


@router.put("/{order_id}/status", summary="推进履约状态", response_model=ApiResponse[OrderDTO])
async def update_order_status(
    order_id: str,
    payload: UpdateOrderStatusRequest,
    _admin: Principal = Depends(get_current_admin),
    service: OrderApplicationService = Depends(get_order_service),
):
    """PAID → ACCEPTED → DELIVERED；非法转换返回 409"""
    order = await service.update_order_status(order_id, payload.status)
    return success_response(data=order, message="Order status updated")


@router.get("/{order_id}/webhooks", summary="订单 Webhook 审计记录", response_model=ApiResponse[List[WebhookAuditDTO]])
async def list_order_webhooks(
    order_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.MAX_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    _admin: Principal = Depends(get_current_admin),
    service: WebhookIngestionService = Depends(get_webhook_service),
):
    entries = await service.list_audit_entries(order_id, skip=skip, limit=limit)
    return success_response(data=entries)
