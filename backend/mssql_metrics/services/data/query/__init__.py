"""
查询目录与查询选择
"""

from .catalog import QueryDefinition, QuerySet, get_catalog, get_extended_catalog
from .query_selector import QuerySelection, filter_catalog, select_queries, select_queries_from_config, should_include

__all__ = [
    "QueryDefinition",
    "QuerySelection",
    "QuerySet",
    "filter_catalog",
    "get_catalog",
    "get_extended_catalog",
    "select_queries",
    "select_queries_from_config",
    "should_include",
]
