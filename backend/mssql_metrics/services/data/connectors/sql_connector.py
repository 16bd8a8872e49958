"""
SQL Server 连接器
每个采集单元独占一个连接：打开、执行、流式读取、关闭，不使用连接池
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Optional, Tuple, Union

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Connection, CursorResult, Engine
from sqlalchemy.pool import NullPool

from mssql_metrics.core.exceptions import ConnectivityError, ExecutionError
from mssql_metrics.core.security_utils import mask_server
from .base_connector import BaseConnector, ConnectorConfig, QueryCursor

ODBC_DIALECT = "mssql+pyodbc"


@dataclass
class SQLServerConfig(ConnectorConfig):
    """SQL Server 连接器配置"""
    connection_string: Optional[str] = None
    odbc_driver: str = "ODBC Driver 18 for SQL Server"
    fetch_batch_size: int = 500
    echo: bool = False

    def __post_init__(self):
        if self.connection_string is None:
            raise ValueError("connection_string is required for SQLServerConfig")
        if self.fetch_batch_size <= 0:
            raise ValueError("fetch_batch_size must be positive")


def build_connection_url(target: str, odbc_driver: Optional[str] = None) -> Union[str, URL]:
    """
    将采集目标转换为 SQLAlchemy 可用的 URL

    - 含 ``://`` 的目标视为 SQLAlchemy URL，原样使用
    - 其余视为 ODBC 连接串，通过 ``odbc_connect`` 透传给 pyodbc；
      连接串未指定 Driver 时补上配置中的驱动
    """
    if "://" in target:
        return target

    odbc_connect = target
    if odbc_driver and "driver=" not in target.lower():
        odbc_connect = f"Driver={{{odbc_driver}}};{target}"

    return URL.create(ODBC_DIALECT, query={"odbc_connect": odbc_connect})


class SQLAlchemyCursor(QueryCursor):
    """基于 SQLAlchemy CursorResult 的分批流式游标"""

    def __init__(
        self,
        result: CursorResult,
        columns,
        run: Callable,
        batch_size: int,
        server: str,
    ):
        super().__init__(columns)
        self._result = result
        self._run = run
        self._batch_size = batch_size
        self._server = server

    async def iter_rows(self) -> AsyncIterator[Tuple[Any, ...]]:
        if not self.columns:
            return
        while True:
            try:
                batch = await self._run(self._result.fetchmany, self._batch_size)
            except Exception as e:
                raise ExecutionError(f"Failed to fetch rows: {e}", server=self._server) from e
            if not batch:
                break
            for row in batch:
                yield tuple(row)

    async def close(self) -> None:
        await self._run(self._result.close)


class SQLServerConnector(BaseConnector):
    """SQL Server 连接器"""

    def __init__(self, config: SQLServerConfig):
        super().__init__(config)
        self.config = config
        self.logger = logging.getLogger(__name__)
        self.engine: Optional[Engine] = None
        self.connection: Optional[Connection] = None
        # 同一连接上的所有驱动调用都在同一个线程中执行
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def display_name(self) -> str:
        return mask_server(self.config.connection_string)

    async def _run(self, func: Callable, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)

    def _open(self) -> Connection:
        url = build_connection_url(self.config.connection_string, self.config.odbc_driver)
        self.engine = create_engine(url, poolclass=NullPool, echo=self.config.echo)
        return self.engine.connect()

    async def connect(self) -> None:
        """建立数据库连接"""
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="mssql-unit")
        try:
            self.connection = await self._run(self._open)
        except Exception as e:
            self.logger.error(f"Failed to connect to SQL Server {self.display_name}: {e}")
            await self.disconnect()
            raise ConnectivityError(f"Failed to connect: {e}", server=self.display_name) from e

        self._connected = True
        self.logger.debug(f"SQL Server connection established: {self.display_name}")

    def _close(self) -> None:
        try:
            if self.connection is not None:
                self.connection.close()
        finally:
            self.connection = None
            if self.engine is not None:
                self.engine.dispose()
                self.engine = None

    async def disconnect(self) -> None:
        """断开数据库连接"""
        if self._executor is None:
            return
        try:
            await self._run(self._close)
        except Exception as e:
            self.logger.warning(f"Error while closing connection to {self.display_name}: {e}")
        finally:
            self._executor.shutdown(wait=False)
            self._executor = None
            self._connected = False
        self.logger.debug(f"SQL Server connection closed: {self.display_name}")

    async def execute_query(self, query: str) -> QueryCursor:
        """原样执行查询文本，不做参数绑定解析"""
        if self.connection is None:
            raise ExecutionError("Connection is not open", server=self.display_name)

        try:
            result = await self._run(self.connection.exec_driver_sql, query)
        except Exception as e:
            self.logger.error(f"SQL query failed on {self.display_name}: {e}")
            raise ExecutionError(f"Query execution failed: {e}", server=self.display_name) from e

        columns = list(result.keys()) if result.returns_rows else []
        return SQLAlchemyCursor(
            result,
            columns,
            run=self._run,
            batch_size=self.config.fetch_batch_size,
            server=self.display_name,
        )
