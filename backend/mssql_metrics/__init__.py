"""
mssql_metrics - SQL Server 运维指标采集引擎
"""

__version__ = "0.1.0"
