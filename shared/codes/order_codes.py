"""
Order specific business codes (21xxx).
"""
from __future__ import annotations

from enum import IntEnum


class OrderCode(IntEnum):
    INVALID_CART = 21001
    ITEM_UNAVAILABLE = 21002
    ORDER_NOT_FOUND = 21003
    INVALID_STATUS_TRANSITION = 21004
    VERSION_CONFLICT = 21005
