"""
集成测试配置

集成测试使用真实的 SQLAlchemy 引擎（内存 SQLite）走完整的连接、执行、流式读取、释放流程。
"""

import pytest

pytestmark = pytest.mark.integration

# 只返回字面量的查询，SQLite 与 SQL Server 都能执行
SINGLE_ROW_QUERY = "SELECT 'm' AS measurement, 'h1' AS host, 42 AS value"

MULTI_ROW_QUERY = """
SELECT 'm' AS measurement, 'h1' AS host, 1 AS value
UNION ALL SELECT 'm', 'h1', 2
UNION ALL SELECT 'm', 'h2', 3
UNION ALL SELECT 'm', 'h2', 4
UNION ALL SELECT 'm', 'h3', 5
"""


@pytest.fixture
def sqlite_target() -> str:
    return "sqlite://"


@pytest.fixture
def unreachable_target(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'missing' / 'dir' / 'metrics.db'}"
