"""
结果行解码器

将驱动返回的一行（列名 + 动态类型值，列集合在执行前未知）转换为一条指标记录：
- 名为 ``measurement`` 的列 -> 指标名（必须是文本）
- 列名属于 tag_keys -> tag（必须是文本）
- 其余列 -> field，值保持驱动返回的原生类型（包括 None）

分类只按列名进行，与列的位置无关。
"""

from datetime import datetime, timezone
from typing import AbstractSet, Any, Callable, Optional, Sequence

from mssql_metrics.core.exceptions import DecodeError
from mssql_metrics.models import MetricRecord

MEASUREMENT_COLUMN = "measurement"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RowDecoder:
    """按名称集合成员关系单次遍历分类列"""

    def __init__(
        self,
        tag_keys: AbstractSet[str] = frozenset(),
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.tag_keys = frozenset(tag_keys)
        self._clock = clock

    def decode(
        self,
        columns: Sequence[str],
        values: Sequence[Any],
        timestamp: Optional[datetime] = None,
    ) -> MetricRecord:
        """
        解码一行

        Args:
            columns: 本查询的列名（执行后获取一次）
            values: 本行与 columns 同序的值
            timestamp: 记录时间，默认为解码时刻

        Raises:
            DecodeError: 缺少 measurement 列，或 measurement/tag 列的值不是文本
        """
        if len(columns) != len(values):
            raise DecodeError(
                f"Row has {len(values)} values for {len(columns)} columns"
            )

        measurement = None
        tags = {}
        fields = {}

        for column, value in zip(columns, values):
            if column == MEASUREMENT_COLUMN:
                if not isinstance(value, str):
                    raise DecodeError(
                        f"Column {column!r} must be text, got {type(value).__name__}",
                        column=column,
                    )
                measurement = value
            elif column in self.tag_keys:
                if not isinstance(value, str):
                    raise DecodeError(
                        f"Tag column {column!r} must be text, got {type(value).__name__}",
                        column=column,
                    )
                tags[column] = value
            else:
                fields[column] = value

        if measurement is None:
            raise DecodeError(f"Row has no {MEASUREMENT_COLUMN!r} column", column=MEASUREMENT_COLUMN)

        return MetricRecord(
            measurement=measurement,
            tags=tags,
            fields=fields,
            timestamp=timestamp or self._clock(),
        )
