"""
统一异常处理系统

定义采集引擎中使用的所有异常类型。单元级异常（连接、执行、解码）只终止所属的
(server, query) 采集单元，不会让整个采集周期失败。
"""

from typing import Any, Dict, Optional


class AppException(Exception):
    """应用程序基础异常类"""

    def __init__(
        self,
        message: str,
        code: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """转换为可序列化的字典"""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(AppException):
    """配置异常"""

    def __init__(self, message: str, setting: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            code="CONFIGURATION_ERROR",
            details=details or {}
        )
        if setting:
            self.details["setting"] = setting


class GatherUnitError(AppException):
    """采集单元异常基类，携带出错的服务器和查询名称"""

    default_code = "GATHER_UNIT_ERROR"

    def __init__(
        self,
        message: str,
        server: Optional[str] = None,
        query: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code=self.default_code,
            details=details or {}
        )
        self.server = server
        self.query = query
        if server is not None:
            self.details["server"] = server
        if query is not None:
            self.details["query"] = query

    def bind(self, server: str, query: str) -> "GatherUnitError":
        """补充单元上下文（连接器抛出时并不知道查询名称）"""
        if self.server is None:
            self.server = server
            self.details["server"] = server
        if self.query is None:
            self.query = query
            self.details["query"] = query
        return self

    def __str__(self) -> str:
        if self.server is None and self.query is None:
            return self.message
        return f"[server={self.server} query={self.query}] {self.message}"


class ConnectivityError(GatherUnitError):
    """目标不可达或拒绝连接"""

    default_code = "CONNECTIVITY_ERROR"


class ExecutionError(GatherUnitError):
    """远端引擎拒绝或执行查询失败"""

    default_code = "EXECUTION_ERROR"


class DecodeError(GatherUnitError):
    """结果行无法分类为 measurement/tag/field"""

    default_code = "DECODE_ERROR"

    def __init__(
        self,
        message: str,
        column: Optional[str] = None,
        server: Optional[str] = None,
        query: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, server=server, query=query, details=details)
        self.column = column
        if column is not None:
            self.details["column"] = column
