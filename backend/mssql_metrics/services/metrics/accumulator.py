"""
指标累加器

采集引擎只负责把记录和错误逐条交给累加器，持久化或传输由累加器实现决定。
"""

import json
import sys
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, TextIO

from mssql_metrics.core.exceptions import GatherUnitError
from mssql_metrics.models import MetricRecord


class Accumulator(ABC):
    """累加器接口"""

    @abstractmethod
    def add_fields(
        self,
        measurement: str,
        fields: Dict[str, Any],
        tags: Dict[str, str],
        timestamp: datetime,
    ) -> None:
        """接收一条指标记录"""

    @abstractmethod
    def add_error(self, error: GatherUnitError) -> None:
        """接收一个失败单元的错误"""

    def add_record(self, record: MetricRecord) -> None:
        self.add_fields(record.measurement, record.fields, record.tags, record.timestamp)


class MemoryAccumulator(Accumulator):
    """线程安全的内存累加器"""

    def __init__(self):
        self._lock = threading.Lock()
        self._records: List[MetricRecord] = []
        self._errors: List[GatherUnitError] = []

    def add_fields(self, measurement, fields, tags, timestamp) -> None:
        record = MetricRecord(
            measurement=measurement,
            tags=dict(tags),
            fields=dict(fields),
            timestamp=timestamp,
        )
        with self._lock:
            self._records.append(record)

    def add_error(self, error: GatherUnitError) -> None:
        with self._lock:
            self._errors.append(error)

    @property
    def records(self) -> List[MetricRecord]:
        with self._lock:
            return list(self._records)

    @property
    def errors(self) -> List[GatherUnitError]:
        with self._lock:
            return list(self._errors)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
            self._errors.clear()


class JsonLinesAccumulator(Accumulator):
    """每条记录输出一行 JSON，错误只计数"""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stdout
        self._lock = threading.Lock()
        self.record_count = 0
        self.error_count = 0

    def add_fields(self, measurement, fields, tags, timestamp) -> None:
        record = MetricRecord(measurement=measurement, tags=tags, fields=fields, timestamp=timestamp)
        line = json.dumps(record.to_dict(), ensure_ascii=False, default=str)
        with self._lock:
            self.stream.write(line + "\n")
            self.stream.flush()
            self.record_count += 1

    def add_error(self, error: GatherUnitError) -> None:
        # 失败单元已由采集服务记录日志，这里只计数
        with self._lock:
            self.error_count += 1
