"""
查询目录

按协议版本划分的两个互斥查询目录，以及 azuredb 开启时追加的扩展目录。
查询文本对采集引擎不透明：只按名称选择，原样执行。
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Mapping

from mssql_metrics.core.exceptions import ConfigurationError
from . import queries_azure, queries_v1, queries_v2


@dataclass(frozen=True)
class QueryDefinition:
    """命名查询"""
    name: str
    text: str


QuerySet = Mapping[str, QueryDefinition]


def _build(queries: Dict[str, str]) -> QuerySet:
    return MappingProxyType(
        {name: QueryDefinition(name=name, text=text) for name, text in queries.items()}
    )


CATALOGS: Dict[int, QuerySet] = {
    1: _build(queries_v1.QUERIES),
    2: _build(queries_v2.QUERIES),
}

EXTENDED_CATALOG: QuerySet = _build(queries_azure.QUERIES)


def get_catalog(version: int) -> QuerySet:
    """获取指定版本的查询目录"""
    try:
        return CATALOGS[version]
    except KeyError:
        raise ConfigurationError(
            f"Unsupported query version: {version}",
            setting="query_version",
            details={"supported": sorted(CATALOGS)},
        )


def get_extended_catalog() -> QuerySet:
    """获取 AzureDB 扩展查询目录"""
    return EXTENDED_CATALOG
