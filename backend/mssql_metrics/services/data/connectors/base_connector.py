"""
基础连接器接口
定义所有数据源连接器必须实现的接口
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterator, List, Tuple


@dataclass
class ConnectorConfig:
    """连接器配置基类"""
    source_type: str
    name: str


class QueryCursor(ABC):
    """
    查询游标

    列名在执行后只暴露一次；行通过 ``iter_rows`` 逐行流式读取，
    每一行是与 ``columns`` 同序的值元组。
    """

    def __init__(self, columns: List[str]):
        self.columns = list(columns)

    @abstractmethod
    def iter_rows(self) -> AsyncIterator[Tuple[Any, ...]]:
        """逐行读取结果"""

    async def close(self) -> None:
        """释放游标资源"""


class BaseConnector(ABC):
    """基础连接器抽象类"""

    def __init__(self, config: ConnectorConfig):
        self.config = config
        self._connected = False

    async def __aenter__(self):
        """异步上下文管理器入口"""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """异步上下文管理器出口"""
        await self.disconnect()

    @abstractmethod
    async def connect(self) -> None:
        """建立连接，失败时抛出 ConnectivityError"""

    @abstractmethod
    async def disconnect(self) -> None:
        """断开连接，必须可在任意状态下安全调用"""

    @abstractmethod
    async def execute_query(self, query: str) -> QueryCursor:
        """原样执行查询文本，失败时抛出 ExecutionError"""

    @property
    def connected(self) -> bool:
        return self._connected
