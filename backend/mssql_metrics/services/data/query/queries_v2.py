"""
Version 2 诊断查询（SQL Server 2012 及以后版本、Azure SQL DB）

每条查询都返回 ``measurement`` 列；其余列按 tag_keys 配置分为 tag 或 field。
"""

PREAMBLE = "SET DEADLOCK_PRIORITY -10;\nSET NOCOUNT ON;\n"

PERFORMANCE_COUNTERS = PREAMBLE + """
SELECT
    'sqlserver_performance' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [sql_instance],
    RTRIM(pc.[object_name]) AS [object],
    RTRIM(pc.[counter_name]) AS [counter],
    CASE WHEN RTRIM(pc.[instance_name]) = '' THEN '_Total' ELSE RTRIM(pc.[instance_name]) END AS [instance],
    CAST(pc.[cntr_value] AS FLOAT) AS [value],
    CAST(pc.[cntr_type] AS VARCHAR(25)) AS [counter_type]
FROM sys.dm_os_performance_counters AS pc
WHERE pc.[counter_name] IN (
    'Batch Requests/sec', 'SQL Compilations/sec', 'SQL Re-Compilations/sec',
    'User Connections', 'Processes blocked', 'Page life expectancy',
    'Lock Waits/sec', 'Number of Deadlocks/sec', 'Transactions/sec',
    'Log Flushes/sec', 'Memory Grants Pending', 'Target Server Memory (KB)',
    'Total Server Memory (KB)', 'Page reads/sec', 'Page writes/sec'
)
"""

WAIT_STATS_CATEGORIZED = PREAMBLE + """
SELECT
    'sqlserver_waitstats' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [sql_instance],
    ws.[wait_type],
    ws.[wait_time_ms],
    ws.[wait_time_ms] - ws.[signal_wait_time_ms] AS [resource_wait_ms],
    ws.[signal_wait_time_ms],
    ws.[max_wait_time_ms],
    ws.[waiting_tasks_count],
    CASE
        WHEN ws.[wait_type] LIKE 'LCK[_]%' THEN 'Lock'
        WHEN ws.[wait_type] LIKE 'PAGEIOLATCH[_]%' THEN 'Buffer IO'
        WHEN ws.[wait_type] LIKE 'PAGELATCH[_]%' THEN 'Buffer Latch'
        WHEN ws.[wait_type] IN ('WRITELOG', 'LOGBUFFER') THEN 'Tran Log IO'
        WHEN ws.[wait_type] IN ('SOS_SCHEDULER_YIELD', 'THREADPOOL') THEN 'CPU'
        WHEN ws.[wait_type] IN ('ASYNC_NETWORK_IO', 'NET_WAITFOR_PACKET') THEN 'Network IO'
        WHEN ws.[wait_type] LIKE 'CXPACKET%' OR ws.[wait_type] = 'CXCONSUMER' THEN 'Parallelism'
        WHEN ws.[wait_type] LIKE 'RESOURCE_SEMAPHORE%' THEN 'Memory'
        ELSE 'Other'
    END AS [wait_category]
FROM sys.dm_os_wait_stats AS ws
WHERE ws.[waiting_tasks_count] > 0
    AND ws.[wait_type] NOT IN (
        'BROKER_TASK_STOP', 'CHECKPOINT_QUEUE', 'CLR_AUTO_EVENT', 'DIRTY_PAGE_POLL',
        'HADR_FILESTREAM_IOMGR_IOCOMPLETION', 'LAZYWRITER_SLEEP', 'LOGMGR_QUEUE',
        'REQUEST_FOR_DEADLOCK_SEARCH', 'SLEEP_TASK', 'SQLTRACE_BUFFER_FLUSH',
        'WAITFOR', 'XE_DISPATCHER_WAIT', 'XE_TIMER_EVENT'
    )
"""

DATABASE_IO = PREAMBLE + """
SELECT
    'sqlserver_database_io' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [sql_instance],
    DB_NAME(vfs.[database_id]) AS [database_name],
    mf.[name] AS [logical_filename],
    mf.[physical_name] AS [physical_filename],
    CASE WHEN mf.[type_desc] = 'ROWS' THEN 'DATA' ELSE mf.[type_desc] END AS [file_type],
    vfs.[io_stall_read_ms] AS [read_latency_ms],
    vfs.[num_of_reads] AS [reads],
    vfs.[num_of_bytes_read] AS [read_bytes],
    vfs.[io_stall_write_ms] AS [write_latency_ms],
    vfs.[num_of_writes] AS [writes],
    vfs.[num_of_bytes_written] AS [write_bytes]
FROM sys.dm_io_virtual_file_stats(NULL, NULL) AS vfs
INNER JOIN sys.master_files AS mf
    ON mf.[database_id] = vfs.[database_id] AND mf.[file_id] = vfs.[file_id]
"""

SERVER_PROPERTIES = PREAMBLE + """
SELECT
    'sqlserver_server_properties' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [sql_instance],
    CAST(SERVERPROPERTY('Edition') AS NVARCHAR(128)) AS [sku],
    CAST(SERVERPROPERTY('ProductVersion') AS NVARCHAR(128)) AS [sql_version],
    CAST(SERVERPROPERTY('EngineEdition') AS INT) AS [engine_edition],
    si.[cpu_count],
    si.[physical_memory_kb] / 1024 AS [server_memory],
    DATEDIFF(MINUTE, si.[sqlserver_start_time], GETDATE()) AS [uptime],
    (SELECT COUNT(*) FROM sys.databases) AS [db_count],
    (SELECT COUNT(*) FROM sys.databases WHERE [state] = 0) AS [db_online],
    (SELECT COUNT(*) FROM sys.databases WHERE [state] = 1) AS [db_restoring],
    (SELECT COUNT(*) FROM sys.databases WHERE [state] = 2) AS [db_recovering],
    (SELECT COUNT(*) FROM sys.databases WHERE [state] = 4) AS [db_suspect],
    (SELECT COUNT(*) FROM sys.databases WHERE [state] = 6) AS [db_offline]
FROM sys.dm_os_sys_info AS si
"""

MEMORY_CLERK = PREAMBLE + """
SELECT
    'sqlserver_memory_clerks' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [sql_instance],
    mc.[type] AS [clerk_type],
    SUM(mc.[pages_kb]) AS [size_kb]
FROM sys.dm_os_memory_clerks AS mc
GROUP BY mc.[type]
HAVING SUM(mc.[pages_kb]) >= 1024
"""

SCHEDULERS = PREAMBLE + """
SELECT
    'sqlserver_schedulers' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [sql_instance],
    CAST(s.[scheduler_id] AS VARCHAR(4)) AS [scheduler_id],
    CAST(s.[cpu_id] AS VARCHAR(4)) AS [cpu_id],
    s.[is_online],
    s.[is_idle],
    s.[preemptive_switches_count],
    s.[context_switches_count],
    s.[current_tasks_count],
    s.[runnable_tasks_count],
    s.[current_workers_count],
    s.[active_workers_count],
    s.[work_queue_count],
    s.[pending_disk_io_count],
    s.[load_factor]
FROM sys.dm_os_schedulers AS s
"""

SQL_REQUESTS = PREAMBLE + """
SELECT
    'sqlserver_requests' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [sql_instance],
    DB_NAME(r.[database_id]) AS [database_name],
    CAST(s.[session_id] AS VARCHAR(10)) AS [session_id],
    CAST(r.[request_id] AS VARCHAR(10)) AS [request_id],
    COALESCE(r.[status], s.[status]) AS [status],
    r.[command],
    r.[wait_type],
    r.[wait_time] AS [wait_time_ms],
    r.[cpu_time] AS [cpu_time_ms],
    r.[total_elapsed_time] AS [total_elapsed_time_ms],
    r.[logical_reads],
    r.[writes],
    CAST(r.[blocking_session_id] AS VARCHAR(10)) AS [blocking_session_id],
    s.[program_name],
    s.[host_name],
    s.[login_name]
FROM sys.dm_exec_sessions AS s
LEFT JOIN sys.dm_exec_requests AS r ON s.[session_id] = r.[session_id]
WHERE s.[session_id] <> @@SPID
    AND (r.[session_id] IS NOT NULL OR s.[open_transaction_count] > 0)
"""

VOLUME_SPACE = PREAMBLE + """
SELECT DISTINCT
    'sqlserver_volume_space' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [sql_instance],
    vs.[volume_mount_point],
    vs.[total_bytes] AS [total_space_bytes],
    vs.[available_bytes] AS [available_space_bytes],
    vs.[total_bytes] - vs.[available_bytes] AS [used_space_bytes]
FROM sys.master_files AS mf
CROSS APPLY sys.dm_os_volume_stats(mf.[database_id], mf.[file_id]) AS vs
"""

CPU = PREAMBLE + """
SELECT TOP (1)
    'sqlserver_cpu' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [sql_instance],
    x.[SQLProcessUtilization] AS [sqlserver_process_cpu],
    x.[SystemIdle] AS [system_idle_cpu],
    100 - x.[SystemIdle] - x.[SQLProcessUtilization] AS [other_process_cpu]
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

ALWAYS_ON_HEALTH = PREAMBLE + """
SELECT
    'sqlserver_always_on_health' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [sql_instance],
    ag.[name] AS [availability_group],
    ar.[replica_server_name],
    ars.[role_desc],
    ars.[operational_state_desc],
    ars.[connected_state_desc],
    ars.[synchronization_health_desc],
    CASE ars.[synchronization_health] WHEN 2 THEN 1 ELSE 0 END AS [is_healthy]
FROM sys.availability_groups AS ag
INNER JOIN sys.availability_replicas AS ar ON ag.[group_id] = ar.[group_id]
INNER JOIN sys.dm_hadr_availability_replica_states AS ars ON ar.[replica_id] = ars.[replica_id]
"""

CACHED_PLANS = PREAMBLE + """
SELECT
    'sqlserver_cached_plans' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [sql_instance],
    cp.[objtype] AS [object_type],
    COUNT_BIG(*) AS [plan_count],
    SUM(CAST(cp.[size_in_bytes] AS BIGINT)) / 1024 AS [size_kb],
    SUM(CASE WHEN cp.[usecounts] = 1 THEN 1 ELSE 0 END) AS [single_use_plans]
FROM sys.dm_exec_cached_plans AS cp
GROUP BY cp.[objtype]
"""

INSTANCE_WAITS = PREAMBLE + """
SELECT TOP (20)
    'sqlserver_instance_waits' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [sql_instance],
    ws.[wait_type],
    ws.[wait_time_ms],
    ws.[waiting_tasks_count],
    CAST(100.0 * ws.[wait_time_ms] / NULLIF(SUM(ws.[wait_time_ms]) OVER (), 0) AS DECIMAL(5, 2)) AS [wait_pct]
FROM sys.dm_os_wait_stats AS ws
WHERE ws.[wait_time_ms] > 0
    AND ws.[wait_type] NOT LIKE 'SLEEP%'
    AND ws.[wait_type] NOT IN ('WAITFOR', 'BROKER_TASK_STOP', 'XE_TIMER_EVENT', 'LAZYWRITER_SLEEP')
ORDER BY ws.[wait_time_ms] DESC
"""

PAGE_LIFE_EXPECTANCY = PREAMBLE + """
SELECT
    'sqlserver_page_life_expectancy' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [sql_instance],
    CASE WHEN RTRIM(pc.[instance_name]) = '' THEN '_Total' ELSE RTRIM(pc.[instance_name]) END AS [numa_node],
    pc.[cntr_value] AS [page_life_expectancy_seconds]
FROM sys.dm_os_performance_counters AS pc
WHERE pc.[counter_name] = 'Page life expectancy'
    AND pc.[object_name] LIKE '%Buffer%'
"""

LOG_USAGE = PREAMBLE + """
SELECT
    'sqlserver_log_usage' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [sql_instance],
    RTRIM(pc.[instance_name]) AS [database_name],
    MAX(CASE WHEN pc.[counter_name] = 'Log File(s) Size (KB)' THEN pc.[cntr_value] END) AS [log_size_kb],
    MAX(CASE WHEN pc.[counter_name] = 'Log File(s) Used Size (KB)' THEN pc.[cntr_value] END) AS [log_used_kb],
    MAX(CASE WHEN pc.[counter_name] = 'Percent Log Used' THEN pc.[cntr_value] END) AS [log_used_pct]
FROM sys.dm_os_performance_counters AS pc
WHERE pc.[object_name] LIKE '%:Databases%'
    AND pc.[counter_name] IN ('Log File(s) Size (KB)', 'Log File(s) Used Size (KB)', 'Percent Log Used')
    AND RTRIM(pc.[instance_name]) NOT IN ('_Total', 'mssqlsystemresource')
GROUP BY RTRIM(pc.[instance_name])
"""

DATABASES_BY_INSTANCE = PREAMBLE + """
SELECT
    'sqlserver_databases_by_instance' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [sql_instance],
    COUNT(*) AS [database_count],
    SUM(CASE WHEN d.[database_id] > 4 THEN 1 ELSE 0 END) AS [user_database_count]
FROM sys.databases AS d
"""

DATABASES_ON_AG = PREAMBLE + """
SELECT
    'sqlserver_databases_on_ag' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [sql_instance],
    ag.[name] AS [availability_group],
    d.[name] AS [database_name],
    drs.[synchronization_state_desc],
    drs.[synchronization_health_desc],
    drs.[log_send_queue_size] AS [log_send_queue_kb],
    drs.[redo_queue_size] AS [redo_queue_kb]
FROM sys.dm_hadr_database_replica_states AS drs
INNER JOIN sys.databases AS d ON drs.[database_id] = d.[database_id]
INNER JOIN sys.availability_groups AS ag ON drs.[group_id] = ag.[group_id]
WHERE drs.[is_local] = 1
"""

JOB_RUNS = PREAMBLE + """
SELECT
    'sqlserver_job_runs' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [sql_instance],
    j.[name] AS [job_name],
    CAST(j.[enabled] AS INT) AS [enabled],
    h.[run_status] AS [last_run_status],
    msdb.dbo.agent_datetime(h.[run_date], h.[run_time]) AS [last_run_time],
    (h.[run_duration] / 10000) * 3600 + ((h.[run_duration] / 100) % 100) * 60 + h.[run_duration] % 100 AS [last_run_duration_seconds]
FROM msdb.dbo.sysjobs AS j
OUTER APPLY (
    SELECT TOP (1) jh.[run_status], jh.[run_date], jh.[run_time], jh.[run_duration]
    FROM msdb.dbo.sysjobhistory AS jh
    WHERE jh.[job_id] = j.[job_id] AND jh.[step_id] = 0
    ORDER BY jh.[instance_id] DESC
) AS h
"""

DATABASE_PROPERTIES = PREAMBLE + """
SELECT
    'sqlserver_database_properties' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [sql_instance],
    d.[name] AS [database_name],
    d.[state_desc],
    d.[recovery_model_desc],
    d.[compatibility_level],
    CAST(d.[is_read_only] AS INT) AS [is_read_only],
    CAST(d.[is_auto_close_on] AS INT) AS [is_auto_close_on],
    CAST(d.[is_auto_shrink_on] AS INT) AS [is_auto_shrink_on],
    d.[page_verify_option_desc],
    d.[log_reuse_wait_desc]
FROM sys.databases AS d
"""

BACKUPS = PREAMBLE + """
SELECT
    'sqlserver_backups' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [sql_instance],
    d.[name] AS [database_name],
    MAX(CASE WHEN b.[type] = 'D' THEN b.[backup_finish_date] END) AS [last_full_backup],
    MAX(CASE WHEN b.[type] = 'I' THEN b.[backup_finish_date] END) AS [last_diff_backup],
    MAX(CASE WHEN b.[type] = 'L' THEN b.[backup_finish_date] END) AS [last_log_backup],
    DATEDIFF(HOUR, MAX(CASE WHEN b.[type] = 'D' THEN b.[backup_finish_date] END), GETDATE()) AS [hours_since_full_backup]
FROM sys.databases AS d
LEFT JOIN msdb.dbo.backupset AS b ON b.[database_name] = d.[name]
WHERE d.[name] <> 'tempdb'
GROUP BY d.[name]
"""

ORPHANED_USERS = PREAMBLE + """
SELECT
    'sqlserver_orphaned_users' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [sql_instance],
    DB_NAME() AS [database_name],
    dp.[name] AS [user_name],
    dp.[type_desc] AS [user_type],
    1 AS [orphaned]
FROM sys.database_principals AS dp
LEFT JOIN sys.server_principals AS sp ON dp.[sid] = sp.[sid]
WHERE sp.[sid] IS NULL
    AND dp.[type] IN ('S', 'U', 'G')
    AND dp.[authentication_type] = 1
    AND dp.[principal_id] > 4
"""

USERS_SYSADMIN = PREAMBLE + """
SELECT
    'sqlserver_users_sysadmin' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [sql_instance],
    sp.[name] AS [login_name],
    sp.[type_desc] AS [login_type],
    CAST(sp.[is_disabled] AS INT) AS [is_disabled]
FROM sys.server_principals AS sp
WHERE IS_SRVROLEMEMBER('sysadmin', sp.[name]) = 1
    AND sp.[name] NOT LIKE 'NT SERVICE\\%'
"""

LOCKED_USERS = PREAMBLE + """
SELECT
    'sqlserver_locked_users' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [sql_instance],
    sl.[name] AS [login_name],
    CAST(LOGINPROPERTY(sl.[name], 'IsLocked') AS INT) AS [is_locked],
    CAST(LOGINPROPERTY(sl.[name], 'BadPasswordCount') AS INT) AS [bad_password_count],
    CAST(LOGINPROPERTY(sl.[name], 'LockoutTime') AS DATETIME) AS [lockout_time]
FROM sys.sql_logins AS sl
WHERE CAST(LOGINPROPERTY(sl.[name], 'IsLocked') AS INT) = 1
"""

POLICY_CHECKED = PREAMBLE + """
SELECT
    'sqlserver_policy_checked' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [sql_instance],
    sl.[name] AS [login_name],
    CAST(sl.[is_policy_checked] AS INT) AS [is_policy_checked],
    CAST(sl.[is_expiration_checked] AS INT) AS [is_expiration_checked]
FROM sys.sql_logins AS sl
WHERE sl.[is_disabled] = 0
"""

DISK_USAGE = PREAMBLE + """
SELECT
    'sqlserver_disk_usage' AS [measurement],
    REPLACE(@@SERVERNAME, '\\', ':') AS [sql_instance],
    DB_NAME(mf.[database_id]) AS [database_name],
    mf.[type_desc] AS [file_type],
    SUM(CAST(mf.[size] AS BIGINT)) * 8 AS [allocated_kb],
    SUM(CASE WHEN mf.[max_size] = -1 THEN 0 ELSE CAST(mf.[max_size] AS BIGINT) END) * 8 AS [max_size_kb]
FROM sys.master_files AS mf
GROUP BY mf.[database_id], mf.[type_desc]
"""

QUERIES = {
    "PerformanceCounters": PERFORMANCE_COUNTERS,
    "WaitStatsCategorized": WAIT_STATS_CATEGORIZED,
    "DatabaseIO": DATABASE_IO,
    "ServerProperties": SERVER_PROPERTIES,
    "MemoryClerk": MEMORY_CLERK,
    "Schedulers": SCHEDULERS,
    "SqlRequests": SQL_REQUESTS,
    "VolumeSpace": VOLUME_SPACE,
    "Cpu": CPU,
    "AlwaysOnHealth": ALWAYS_ON_HEALTH,
    "CachedPlans": CACHED_PLANS,
    "InstanceWaits": INSTANCE_WAITS,
    "PageLifeExpectancy": PAGE_LIFE_EXPECTANCY,
    "LogUsage": LOG_USAGE,
    "DatabasesByInstance": DATABASES_BY_INSTANCE,
    "DatabasesOnAG": DATABASES_ON_AG,
    "JobRuns": JOB_RUNS,
    "DatabaseProperties": DATABASE_PROPERTIES,
    "Backups": BACKUPS,
    "OrphanedUsers": ORPHANED_USERS,
    "UsersSysadmin": USERS_SYSADMIN,
    "LockedUsers": LOCKED_USERS,
    "PolicyChecked": POLICY_CHECKED,
    "DiskUsage": DISK_USAGE,
}
