"""
全局测试配置 - 提供假连接器、连接记账和通用 fixtures
"""

import os
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

# 设置测试环境变量（必须在导入应用模块之前）
os.environ["MSSQL_METRICS_ENABLE_FILE_LOGGING"] = "false"

from mssql_metrics.core.config import SQLServerInputConfig
from mssql_metrics.core.exceptions import ConnectivityError, ExecutionError
from mssql_metrics.services.data.connectors import BaseConnector, ConnectorConfig, QueryCursor
from mssql_metrics.services.data.query import QueryDefinition, QuerySelection


class ConnectionLedger:
    """记录每个连接的打开与释放"""

    def __init__(self):
        self.opened: List[str] = []
        self.closed: List[str] = []
        self.attempts: List[str] = []

    @property
    def balanced(self) -> bool:
        return sorted(self.opened) == sorted(self.closed)


class FakeCursor(QueryCursor):
    def __init__(self, columns: Sequence[str], rows: Sequence[Tuple[Any, ...]], fail_after: Optional[int] = None):
        super().__init__(columns)
        self._rows = list(rows)
        self._fail_after = fail_after
        self.closed = False

    async def iter_rows(self):
        for index, row in enumerate(self._rows):
            if self._fail_after is not None and index >= self._fail_after:
                raise ExecutionError("connection reset while fetching rows")
            yield tuple(row)
        if self._fail_after is not None and self._fail_after >= len(self._rows):
            raise ExecutionError("connection reset while fetching rows")

    async def close(self) -> None:
        self.closed = True


class FakeConnector(BaseConnector):
    """按脚本返回结果的假连接器"""

    def __init__(self, server: str, backend: "FakeBackend"):
        super().__init__(ConnectorConfig(source_type="fake", name=server))
        self.server = server
        self.backend = backend

    async def connect(self) -> None:
        self.backend.ledger.attempts.append(self.server)
        if self.backend.connect_gate is not None:
            await self.backend.connect_gate(self.server)
        if self.server in self.backend.unreachable:
            raise ConnectivityError(f"cannot reach {self.server}", server=self.server)
        self.backend.ledger.opened.append(self.server)
        self._connected = True

    async def disconnect(self) -> None:
        if self._connected:
            self.backend.ledger.closed.append(self.server)
            self._connected = False

    async def execute_query(self, query: str) -> QueryCursor:
        self.backend.executed.append((self.server, query))
        script = self.backend.scripts.get((self.server, query)) or self.backend.scripts.get((None, query))
        if script is None:
            raise ExecutionError(f"Invalid object name in query {query!r}", server=self.server)
        if isinstance(script, Exception):
            raise script
        columns, rows, fail_after = script
        return FakeCursor(columns, rows, fail_after)


class FakeBackend:
    """假数据库集合：按 (server, query_text) 配置结果或错误"""

    def __init__(self):
        self.ledger = ConnectionLedger()
        self.scripts: Dict[Tuple[Optional[str], str], Any] = {}
        self.unreachable = set()
        self.executed: List[Tuple[str, str]] = []
        self.connect_gate = None

    def respond(
        self,
        query: str,
        columns: Sequence[str],
        rows: Sequence[Tuple[Any, ...]],
        server: Optional[str] = None,
        fail_after: Optional[int] = None,
    ) -> None:
        self.scripts[(server, query)] = (list(columns), list(rows), fail_after)

    def fail(self, query: str, error: Exception, server: Optional[str] = None) -> None:
        self.scripts[(server, query)] = error

    def factory(self, server: str) -> FakeConnector:
        return FakeConnector(server, self)


def make_selection(queries: Dict[str, str], tag_keys=()) -> QuerySelection:
    """直接构造查询选择结果"""
    return QuerySelection(
        queries={name: QueryDefinition(name=name, text=text) for name, text in queries.items()},
        tag_keys=frozenset(tag_keys),
    )


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def input_config():
    """构造采集输入配置的工厂"""
    def _make(**overrides) -> SQLServerInputConfig:
        return SQLServerInputConfig(**overrides)
    return _make


@pytest.fixture
def sample_catalog() -> Dict[str, QueryDefinition]:
    return {
        name: QueryDefinition(name=name, text=f"SELECT '{name}' AS measurement")
        for name in ("A", "B", "C", "D")
    }
