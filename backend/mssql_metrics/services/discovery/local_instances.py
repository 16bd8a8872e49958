"""
本机 SQL Server 实例发现

在 Windows 上读取注册表中已安装的实例列表，生成使用集成认证的连接串。
任何失败（非 Windows、注册表键不存在、权限不足）都不是致命错误，只返回空列表。
"""

import socket
import sys
from typing import Callable, List, Optional

from mssql_metrics.core.logging_config import get_module_logger

logger = get_module_logger("discovery")

REGISTRY_PATH = r"SOFTWARE\Microsoft\Microsoft SQL Server"
REGISTRY_VALUE = "InstalledInstances"
DEFAULT_INSTANCE = "MSSQLSERVER"


def read_installed_instances() -> List[str]:
    """从注册表读取已安装实例名；非 Windows 平台抛出 OSError"""
    if sys.platform != "win32":
        raise OSError(f"Local instance discovery is not supported on {sys.platform}")

    import winreg

    with winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, REGISTRY_PATH, 0, winreg.KEY_QUERY_VALUE) as key:
        instances, _ = winreg.QueryValueEx(key, REGISTRY_VALUE)
    return list(instances or [])


def build_connection_string(hostname: str, instance: str) -> str:
    """默认实例只用主机名，命名实例使用 host\\instance"""
    if instance.upper() == DEFAULT_INSTANCE:
        server = hostname
    else:
        server = f"{hostname}\\{instance}"
    return f"Server={server};Trusted_Connection=yes;"


def discover_local_instances(
    reader: Optional[Callable[[], List[str]]] = None,
    hostname: Optional[str] = None,
) -> List[str]:
    """
    发现本机实例并返回连接串列表

    Args:
        reader: 实例名读取函数，默认读取注册表
        hostname: 主机名，默认 socket.gethostname()

    Returns:
        连接串列表，发现失败时为空列表
    """
    reader = reader or read_installed_instances
    try:
        instances = reader()
        hostname = hostname or socket.gethostname()
    except Exception as e:
        logger.warning("Local instance discovery skipped", reason=str(e))
        return []

    servers = [build_connection_string(hostname, instance) for instance in instances]
    logger.info("Local instances discovered", count=len(servers), instances=instances)
    return servers
