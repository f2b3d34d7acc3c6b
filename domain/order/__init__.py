"""Order domain exports."""
from .entity import Order, OrderItem, OrderStatus, PAID_STATUSES
from .repository import OrderRepository
from .state_machine import OrderStateMachine, TransitionResult

__all__ = [
    "Order",
    "OrderItem",
    "OrderStatus",
    "PAID_STATUSES",
    "OrderRepository",
    "OrderStateMachine",
    "TransitionResult",
]
