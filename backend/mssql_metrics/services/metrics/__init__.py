"""
指标采集: 累加器与采集编排
"""

from .accumulator import Accumulator, JsonLinesAccumulator, MemoryAccumulator
from .gather_service import GatherService

__all__ = ["Accumulator", "GatherService", "JsonLinesAccumulator", "MemoryAccumulator"]
