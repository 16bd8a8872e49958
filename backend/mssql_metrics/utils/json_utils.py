"""
JSON 序列化工具类
统一处理驱动返回的各种动态类型
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Any
from uuid import UUID


def convert_for_json(obj: Any) -> Any:
    """
    递归转换对象为 JSON 可序列化的类型

    支持的转换:
    - Decimal -> float
    - datetime/date/time -> ISO格式字符串
    - UUID -> 字符串
    - bytes -> 十六进制字符串
    - dict/list/tuple -> 递归转换
    - 其他类型 -> 保持原样
    """
    if isinstance(obj, Decimal):
        return float(obj)
    elif isinstance(obj, (datetime, date, time)):
        return obj.isoformat()
    elif isinstance(obj, UUID):
        return str(obj)
    elif isinstance(obj, (bytes, bytearray)):
        return obj.hex()
    elif isinstance(obj, dict):
        return {k: convert_for_json(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [convert_for_json(item) for item in obj]
    return obj
