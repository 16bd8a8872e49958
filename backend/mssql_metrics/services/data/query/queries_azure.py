"""
Azure SQL DB 扩展查询（azuredb 开启时追加）
"""

from .queries_v2 import PREAMBLE

AZURE_DB_RESOURCE_STATS = PREAMBLE + """
SELECT TOP (1)
    'sqlserver_azurestats' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [sql_instance],
    DB_NAME() AS [database_name],
    rs.[avg_cpu_percent],
    rs.[avg_data_io_percent],
    rs.[avg_log_write_percent],
    rs.[avg_memory_usage_percent],
    rs.[xtp_storage_percent],
    rs.[max_worker_percent],
    rs.[max_session_percent],
    rs.[dtu_limit],
    rs.[avg_login_rate_percent],
    rs.[end_time]
FROM sys.dm_db_resource_stats AS rs
ORDER BY rs.[end_time] DESC
"""

AZURE_DB_RESOURCE_GOVERNANCE = PREAMBLE + """
SELECT
    'sqlserver_db_resource_governance' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [sql_instance],
    DB_NAME() AS [database_name],
    rg.[slo_name],
    rg.[dtu_limit],
    rg.[max_cpu],
    rg.[cap_cpu],
    rg.[instance_cap_cpu],
    rg.[max_db_memory],
    rg.[max_db_max_size_in_mb],
    rg.[db_file_growth_in_mb],
    rg.[log_size_in_mb],
    rg.[instance_max_worker_threads],
    rg.[primary_group_max_workers],
    rg.[primary_max_log_rate],
    rg.[primary_group_max_io],
    rg.[max_sessions]
FROM sys.dm_user_db_resource_governance AS rg
WHERE rg.[database_id] = DB_ID()
"""

QUERIES = {
    "AzureDBResourceStats": AZURE_DB_RESOURCE_STATS,
    "AzureDBResourceGovernance": AZURE_DB_RESOURCE_GOVERNANCE,
}
