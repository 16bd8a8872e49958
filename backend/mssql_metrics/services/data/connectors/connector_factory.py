"""
连接器工厂
根据采集目标创建对应的连接器实例
"""

import logging
from typing import Callable

from mssql_metrics.core.config import SQLServerInputConfig
from mssql_metrics.core.security_utils import mask_server
from .base_connector import BaseConnector
from .sql_connector import SQLServerConfig, SQLServerConnector

logger = logging.getLogger(__name__)

# server target -> 新的、未打开的连接器
ConnectorFactory = Callable[[str], BaseConnector]


def create_connector(
    server: str,
    odbc_driver: str = "ODBC Driver 18 for SQL Server",
    fetch_batch_size: int = 500,
) -> BaseConnector:
    """
    为一个采集目标创建连接器

    Args:
        server: ODBC 连接串或 SQLAlchemy URL
        odbc_driver: 连接串未指定驱动时使用的 ODBC 驱动名
        fetch_batch_size: 每次 fetchmany 读取的行数

    Returns:
        未打开的连接器实例
    """
    config = SQLServerConfig(
        source_type="mssql",
        name=mask_server(server),
        connection_string=server,
        odbc_driver=odbc_driver,
        fetch_batch_size=fetch_batch_size,
    )
    return SQLServerConnector(config)


def connector_factory_from_config(config: SQLServerInputConfig) -> ConnectorFactory:
    """从输入配置构造连接器工厂"""

    def _factory(server: str) -> BaseConnector:
        return create_connector(
            server,
            odbc_driver=config.odbc_driver,
            fetch_batch_size=config.fetch_batch_size,
        )

    logger.debug(f"Connector factory configured with driver {config.odbc_driver!r}")
    return _factory
