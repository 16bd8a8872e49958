"""
查询选择器

根据配置决定一个采集周期要执行的命名查询集合：
- include 列表非空时，只有出现在其中的查询才是候选（白名单）
- exclude 列表非空时，出现在其中的查询一律移除（exclude 优先于 include）
- 两者都为空时，目录中的全部查询都是候选

即 selected = (catalog ∩ include) − exclude。结果为空是合法的。
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import AbstractSet, FrozenSet, Iterable, Mapping

from mssql_metrics.core.config import SQLServerInputConfig
from mssql_metrics.core.logging_config import get_module_logger
from .catalog import QueryDefinition, QuerySet, get_catalog, get_extended_catalog

logger = get_module_logger("query")


def should_include(name: str, include: AbstractSet[str], exclude: AbstractSet[str]) -> bool:
    """判断单个查询名称是否入选"""
    if include and name not in include:
        return False
    if exclude and name in exclude:
        return False
    return True


def filter_catalog(
    catalog: Mapping[str, QueryDefinition],
    include: AbstractSet[str],
    exclude: AbstractSet[str],
) -> QuerySet:
    """按 include/exclude 过滤目录，返回只读查询集"""
    return MappingProxyType(
        {
            name: definition
            for name, definition in catalog.items()
            if should_include(name, include, exclude)
        }
    )


@dataclass(frozen=True)
class QuerySelection:
    """
    一次性构建、之后只读的查询选择结果

    同时冻结 include/exclude/tag_keys 三个查找集合，供行解码器复用。
    """
    queries: QuerySet
    include_names: FrozenSet[str] = field(default_factory=frozenset)
    exclude_names: FrozenSet[str] = field(default_factory=frozenset)
    tag_keys: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def names(self) -> FrozenSet[str]:
        return frozenset(self.queries)

    def __len__(self) -> int:
        return len(self.queries)


def select_queries(
    query_version: int,
    azuredb: bool = False,
    include_query: Iterable[str] = (),
    exclude_query: Iterable[str] = (),
    tag_keys: Iterable[str] = (),
) -> QuerySelection:
    """
    构建活动查询集

    Args:
        query_version: 查询目录版本 (1 或 2)
        azuredb: 是否追加 AzureDB 扩展查询
        include_query: 白名单
        exclude_query: 黑名单
        tag_keys: 作为 tag 处理的列名

    Returns:
        QuerySelection
    """
    include = frozenset(include_query)
    exclude = frozenset(exclude_query)

    candidates = {}
    if azuredb:
        candidates.update(get_extended_catalog())
    candidates.update(get_catalog(query_version))

    selection = QuerySelection(
        queries=filter_catalog(candidates, include, exclude),
        include_names=include,
        exclude_names=exclude,
        tag_keys=frozenset(tag_keys),
    )

    logger.info(
        "Query set built",
        query_version=query_version,
        azuredb=azuredb,
        selected=sorted(selection.names),
        skipped=sorted(set(candidates) - selection.names),
    )
    return selection


def select_queries_from_config(config: SQLServerInputConfig) -> QuerySelection:
    """从输入配置构建查询集"""
    return select_queries(
        query_version=config.query_version,
        azuredb=config.azuredb,
        include_query=config.include_query,
        exclude_query=config.exclude_query,
        tag_keys=config.tag_keys,
    )
