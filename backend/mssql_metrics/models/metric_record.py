from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from mssql_metrics.core.exceptions import GatherUnitError
from mssql_metrics.utils.json_utils import convert_for_json


@dataclass
class MetricRecord:
    """一行查询结果转换得到的指标记录"""
    measurement: str
    tags: Dict[str, str]
    fields: Dict[str, Any]
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        """转换为可序列化的字典"""
        return {
            "measurement": self.measurement,
            "tags": dict(self.tags),
            "fields": convert_for_json(self.fields),
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class UnitOutcome:
    """单个 (server, query) 采集单元的执行结果"""
    server: str
    query: str
    rows: int = 0
    duration: float = 0.0
    error: Optional[GatherUnitError] = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class GatherResult:
    """
    一个采集周期的汇总结果

    records 为所有单元成功产出的记录；errors 中每个失败单元恰好一条。
    """
    records: List[MetricRecord] = field(default_factory=list)
    errors: List[GatherUnitError] = field(default_factory=list)
    outcomes: List[UnitOutcome] = field(default_factory=list)
    gather_id: Optional[str] = None
    execution_time: float = 0.0

    @property
    def unit_count(self) -> int:
        return len(self.outcomes)

    @property
    def failed_units(self) -> List[UnitOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.success]
