"""
数据处理: 结果行解码
"""

from .row_decoder import MEASUREMENT_COLUMN, RowDecoder

__all__ = ["MEASUREMENT_COLUMN", "RowDecoder"]
