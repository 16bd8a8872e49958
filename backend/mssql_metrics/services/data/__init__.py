"""
数据层入口

- connectors: 数据连接器
- query: 查询目录与选择
- processing: 结果行解码
"""

from . import connectors, processing, query

__all__ = ["connectors", "processing", "query"]
