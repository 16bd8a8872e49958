"""
Version 1 诊断查询（兼容原有仪表盘的旧版查询集）
"""

from .queries_v2 import PREAMBLE

PERFORMANCE_COUNTERS = PREAMBLE + """
SELECT
    'Performance counters' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [servername],
    'Performance counters' AS [type],
    RTRIM(pc.[counter_name]) + CASE WHEN RTRIM(pc.[instance_name]) = '' THEN '' ELSE ' | ' + RTRIM(pc.[instance_name]) END AS [counter],
    CAST(pc.[cntr_value] AS FLOAT) AS [value]
FROM sys.dm_os_performance_counters AS pc
WHERE pc.[counter_name] IN (
    'Batch Requests/sec', 'SQL Compilations/sec', 'SQL Re-Compilations/sec',
    'User Connections', 'Processes blocked', 'Page life expectancy',
    'Lock Waits/sec', 'Number of Deadlocks/sec', 'Transactions/sec'
)
"""

WAIT_STATS_CATEGORIZED = PREAMBLE + """
SELECT
    'Wait time (ms)' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [servername],
    'Wait stats' AS [type],
    ws.[wait_type],
    ws.[wait_time_ms] AS [value]
FROM sys.dm_os_wait_stats AS ws
WHERE ws.[wait_time_ms] > 0
    AND ws.[wait_type] NOT LIKE 'SLEEP%'
    AND ws.[wait_type] NOT IN ('WAITFOR', 'BROKER_TASK_STOP', 'XE_TIMER_EVENT', 'LAZYWRITER_SLEEP')
"""

CPU_HISTORY = PREAMBLE + """
SELECT TOP (1)
    'CPU (%)' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [servername],
    x.[SQLProcessUtilization] AS [SQL process],
    100 - x.[SystemIdle] - x.[SQLProcessUtilization] AS [External process],
    x.[SystemIdle] AS [SystemIdle]
FROM (
    SELECT
        rb.[timestamp],
        CAST(rb.[record] AS XML).value('(./Record/SchedulerMonitorEvent/SystemHealth/SystemIdle)[1]', 'int') AS [SystemIdle],
        CAST(rb.[record] AS XML).value('(./Record/SchedulerMonitorEvent/SystemHealth/ProcessUtilization)[1]', 'int') AS [SQLProcessUtilization]
    FROM sys.dm_os_ring_buffers AS rb
    WHERE rb.[ring_buffer_type] = N'RING_BUFFER_SCHEDULER_MONITOR'
        AND rb.[record] LIKE '%<SystemHealth>%'
) AS x
ORDER BY x.[timestamp] DESC
"""

DATABASE_IO = PREAMBLE + """
SELECT
    'Database IO' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [servername],
    DB_NAME(vfs.[database_id]) AS [database_name],
    'Database IO' AS [type],
    SUM(vfs.[num_of_bytes_read]) AS [read_bytes],
    SUM(vfs.[num_of_bytes_written]) AS [write_bytes],
    SUM(vfs.[io_stall_read_ms]) AS [read_latency_ms],
    SUM(vfs.[io_stall_write_ms]) AS [write_latency_ms]
FROM sys.dm_io_virtual_file_stats(NULL, NULL) AS vfs
GROUP BY vfs.[database_id]
"""

DATABASE_SIZE = PREAMBLE + """
SELECT
    'Log size (bytes)' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [servername],
    DB_NAME(mf.[database_id]) AS [database_name],
    'Database size' AS [type],
    SUM(CASE WHEN mf.[type] = 0 THEN CAST(mf.[size] AS BIGINT) ELSE 0 END) * 8192 AS [data_size_bytes],
    SUM(CASE WHEN mf.[type] = 1 THEN CAST(mf.[size] AS BIGINT) ELSE 0 END) * 8192 AS [log_size_bytes]
FROM sys.master_files AS mf
GROUP BY mf.[database_id]
"""

DATABASE_STATS = PREAMBLE + """
SELECT
    'Log writes (bytes/sec)' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [servername],
    RTRIM(pc.[instance_name]) AS [database_name],
    'Database stats' AS [type],
    MAX(CASE WHEN pc.[counter_name] = 'Log Bytes Flushed/sec' THEN pc.[cntr_value] END) AS [log_bytes_flushed],
    MAX(CASE WHEN pc.[counter_name] = 'Transactions/sec' THEN pc.[cntr_value] END) AS [transactions]
FROM sys.dm_os_performance_counters AS pc
WHERE pc.[object_name] LIKE '%:Databases%'
    AND pc.[counter_name] IN ('Log Bytes Flushed/sec', 'Transactions/sec')
    AND RTRIM(pc.[instance_name]) NOT IN ('_Total', 'mssqlsystemresource')
GROUP BY RTRIM(pc.[instance_name])
"""

DATABASE_PROPERTIES = PREAMBLE + """
SELECT
    'Database properties' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [servername],
    'Database properties' AS [type],
    COUNT(*) AS [Total],
    SUM(CASE WHEN d.[state] = 0 THEN 1 ELSE 0 END) AS [Online],
    SUM(CASE WHEN d.[state] = 1 THEN 1 ELSE 0 END) AS [Restoring],
    SUM(CASE WHEN d.[state] = 2 THEN 1 ELSE 0 END) AS [Recovering],
    SUM(CASE WHEN d.[state] = 4 THEN 1 ELSE 0 END) AS [Suspect],
    SUM(CASE WHEN d.[state] = 6 THEN 1 ELSE 0 END) AS [Offline],
    SUM(CASE WHEN d.[recovery_model] = 1 THEN 1 ELSE 0 END) AS [RecoveryModelFull],
    SUM(CASE WHEN d.[recovery_model] = 3 THEN 1 ELSE 0 END) AS [RecoveryModelSimple]
FROM sys.databases AS d
"""

MEMORY_CLERK = PREAMBLE + """
SELECT
    'Memory breakdown (%)' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [servername],
    'Memory clerk' AS [type],
    mc.[type] AS [clerk_type],
    CAST(100.0 * SUM(mc.[pages_kb]) / NULLIF((SELECT SUM([pages_kb]) FROM sys.dm_os_memory_clerks), 0) AS DECIMAL(5, 2)) AS [value]
FROM sys.dm_os_memory_clerks AS mc
GROUP BY mc.[type]
HAVING SUM(mc.[pages_kb]) >= 1024
"""

VOLUME_SPACE = PREAMBLE + """
SELECT DISTINCT
    'Volume total space (bytes)' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [servername],
    'Volume space' AS [type],
    vs.[volume_mount_point],
    vs.[total_bytes] AS [value]
FROM sys.master_files AS mf
CROSS APPLY sys.dm_os_volume_stats(mf.[database_id], mf.[file_id]) AS vs
"""

PERFORMANCE_METRICS = PREAMBLE + """
SELECT
    'Performance metrics' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [servername],
    'Performance metrics' AS [type],
    MAX(CASE WHEN pc.[counter_name] = 'Page life expectancy' THEN pc.[cntr_value] END) AS [Page life expectancy],
    MAX(CASE WHEN pc.[counter_name] = 'Buffer cache hit ratio' THEN pc.[cntr_value] END) AS [Buffer cache hit ratio],
    MAX(CASE WHEN pc.[counter_name] = 'User Connections' THEN pc.[cntr_value] END) AS [User Connections],
    MAX(CASE WHEN pc.[counter_name] = 'Processes blocked' THEN pc.[cntr_value] END) AS [Processes blocked],
    MAX(CASE WHEN pc.[counter_name] = 'Memory Grants Pending' THEN pc.[cntr_value] END) AS [Memory Grants Pending]
FROM sys.dm_os_performance_counters AS pc
WHERE pc.[counter_name] IN (
    'Page life expectancy', 'Buffer cache hit ratio', 'User Connections',
    'Processes blocked', 'Memory Grants Pending'
)
"""

QUERIES = {
    "PerformanceCounters": PERFORMANCE_COUNTERS,
    "WaitStatsCategorized": WAIT_STATS_CATEGORIZED,
    "CPUHistory": CPU_HISTORY,
    "DatabaseIO": DATABASE_IO,
    "DatabaseSize": DATABASE_SIZE,
    "DatabaseStats": DATABASE_STATS,
    "DatabaseProperties": DATABASE_PROPERTIES,
    "MemoryClerk": MEMORY_CLERK,
    "VolumeSpace": VOLUME_SPACE,
    "PerformanceMetrics": PERFORMANCE_METRICS,
}
