"""
DTO 基类 - 统一时间序列化为 UTC-Z
"""
from datetime import datetime

from pydantic import BaseModel, model_serializer

from core.response import to_utc_z


class DTOBase(BaseModel):
    """所有出入参 DTO 的基类：任意嵌套层级的 datetime 都输出为 UTC-Z 字符串"""

    @model_serializer(mode="wrap")
    def _serialize_model(self, handler):  # type: ignore[override]
        def convert(value):
            if isinstance(value, datetime):
                return to_utc_z(value)
            if isinstance(value, list):
                return [convert(v) for v in value]
            if isinstance(value, dict):
                return {k: convert(v) for k, v in value.items()}
            return value

        return convert(handler(self))
