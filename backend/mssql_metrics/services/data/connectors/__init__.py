"""
数据源连接器
"""

from .base_connector import BaseConnector, ConnectorConfig, QueryCursor
from .connector_factory import ConnectorFactory, connector_factory_from_config, create_connector
from .sql_connector import SQLServerConfig, SQLServerConnector, build_connection_url

__all__ = [
    "BaseConnector",
    "ConnectorConfig",
    "ConnectorFactory",
    "QueryCursor",
    "SQLServerConfig",
    "SQLServerConnector",
    "build_connection_url",
    "connector_factory_from_config",
    "create_connector",
]
