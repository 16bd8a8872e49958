import os
from dataclasses import dataclass, field
from typing import FrozenSet, List, Tuple

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings

# 安全加载 dotenv，避免在容器环境中的 AssertionError
try:
    load_dotenv()
except (AssertionError, AttributeError):
    # 在某些容器环境中直接使用环境变量
    pass


ENV_PREFIX = "MSSQL_METRICS_"

# 默认排除开销较大的调度器与活动请求查询
DEFAULT_EXCLUDE_QUERY = "Schedulers,SqlRequests"

# 服务器列表中的连接串本身包含 ';' 和 ','，因此使用 '|' 分隔
SERVER_SEPARATOR = "|"


def _env(name: str, default: str) -> str:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


def split_list(value: str, separator: str = ",") -> List[str]:
    """拆分逗号（或指定分隔符）分隔的配置值，忽略空白项"""
    if not value:
        return []
    return [item.strip() for item in value.split(separator) if item.strip()]


@dataclass(frozen=True)
class SQLServerInputConfig:
    """采集引擎使用的不可变输入配置"""
    servers: Tuple[str, ...] = ()
    query_version: int = 2
    azuredb: bool = False
    include_query: FrozenSet[str] = field(default_factory=frozenset)
    exclude_query: FrozenSet[str] = field(default_factory=frozenset)
    tag_keys: FrozenSet[str] = field(default_factory=frozenset)
    local_instances_auto_discovery: bool = False
    odbc_driver: str = "ODBC Driver 18 for SQL Server"
    fetch_batch_size: int = 500


class Settings(BaseSettings):
    # 数值和布尔项由 pydantic-settings 按 env_prefix 读取并校验

    # 采集目标: '|' 分隔的 ODBC 连接串或 SQLAlchemy URL
    SERVERS: str = _env("SERVERS", "")
    LOCAL_INSTANCES_AUTO_DISCOVERY: bool = False

    # 查询集配置
    # 2 - SQL Server 2012 及以后版本以及 Azure SQL DB
    QUERY_VERSION: int = 2
    AZUREDB: bool = False
    INCLUDE_QUERY: str = _env("INCLUDE_QUERY", "")
    EXCLUDE_QUERY: str = _env("EXCLUDE_QUERY", DEFAULT_EXCLUDE_QUERY)
    TAG_KEYS: str = _env("TAG_KEYS", "")

    # 连接配置
    ODBC_DRIVER: str = _env("ODBC_DRIVER", "ODBC Driver 18 for SQL Server")
    FETCH_BATCH_SIZE: int = 500

    # 采集周期(秒)
    GATHER_INTERVAL: int = 10

    # 日志配置
    LOG_LEVEL: str = _env("LOG_LEVEL", "INFO")
    ENABLE_FILE_LOGGING: bool = False
    LOG_DIR: str = _env("LOG_DIR", "logs")

    @field_validator("QUERY_VERSION")
    @classmethod
    def _check_query_version(cls, value: int) -> int:
        if value not in (1, 2):
            raise ValueError(f"QUERY_VERSION must be 1 or 2, got {value}")
        return value

    @field_validator("FETCH_BATCH_SIZE", "GATHER_INTERVAL")
    @classmethod
    def _check_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("value must be positive")
        return value

    def get_servers(self) -> List[str]:
        """获取采集目标列表"""
        return split_list(self.SERVERS, SERVER_SEPARATOR)

    def get_include_query(self) -> List[str]:
        return split_list(self.INCLUDE_QUERY)

    def get_exclude_query(self) -> List[str]:
        return split_list(self.EXCLUDE_QUERY)

    def get_tag_keys(self) -> List[str]:
        return split_list(self.TAG_KEYS)

    def to_input_config(self) -> SQLServerInputConfig:
        """转换为采集引擎使用的不可变配置"""
        return SQLServerInputConfig(
            servers=tuple(self.get_servers()),
            query_version=self.QUERY_VERSION,
            azuredb=self.AZUREDB,
            include_query=frozenset(self.get_include_query()),
            exclude_query=frozenset(self.get_exclude_query()),
            tag_keys=frozenset(self.get_tag_keys()),
            local_instances_auto_discovery=self.LOCAL_INSTANCES_AUTO_DISCOVERY,
            odbc_driver=self.ODBC_DRIVER,
            fetch_batch_size=self.FETCH_BATCH_SIZE,
        )

    class Config:
        case_sensitive = True
        env_file = ".env"
        env_prefix = ENV_PREFIX
        extra = "ignore"


settings = Settings()
