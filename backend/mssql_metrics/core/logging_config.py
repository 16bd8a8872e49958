import logging
import os
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Dict, Optional

import structlog

from mssql_metrics.core.config import settings

# Context variable for gather cycle tracking
gather_id_context: ContextVar[str] = ContextVar('gather_id', default='')
gather_start_time_context: ContextVar[float] = ContextVar('gather_start_time', default=0.0)

# Module-specific logger configurations
MODULE_LOGGERS = {
    'gather': {
        'level': 'INFO',
        'handlers': ['console', 'file'],
        'propagate': False
    },
    'query': {
        'level': 'INFO',
        'handlers': ['console', 'file'],
        'propagate': False
    },
    'discovery': {
        'level': 'INFO',
        'handlers': ['console', 'file'],
        'propagate': False
    },
    'performance': {
        'level': 'INFO',
        'handlers': ['console', 'performance_file'],
        'propagate': False
    }
}


def add_gather_context(logger, method_name, event_dict):
    """Add gather cycle context to log entries."""
    gather_id = gather_id_context.get('')
    if gather_id:
        event_dict['gather_id'] = gather_id

    start_time = gather_start_time_context.get(0.0)
    if start_time > 0:
        event_dict['cycle_elapsed'] = round(time.time() - start_time, 3)

    return event_dict


def add_performance_metrics(logger, method_name, event_dict):
    """Add performance metrics to log entries."""
    if 'duration' in event_dict or 'execution_time' in event_dict:
        event_dict['metric_type'] = 'performance'
    return event_dict


def begin_gather_cycle() -> str:
    """为当前采集周期生成 ID 并写入上下文"""
    gather_id = uuid.uuid4().hex[:12]
    gather_id_context.set(gather_id)
    gather_start_time_context.set(time.time())
    return gather_id


def _build_file_handlers(log_dir: str) -> Dict[str, logging.Handler]:
    handlers: Dict[str, logging.Handler] = {}
    try:
        os.makedirs(log_dir, exist_ok=True)

        # Main application log file
        file_handler = logging.FileHandler(os.path.join(log_dir, 'collector.log'))
        file_handler.setLevel(logging.INFO)
        handlers['file'] = file_handler

        # Performance-specific log file
        perf_handler = logging.FileHandler(os.path.join(log_dir, 'performance.log'))
        perf_handler.setLevel(logging.INFO)
        handlers['performance_file'] = perf_handler
    except (PermissionError, OSError) as e:
        # 权限问题或其他IO错误，回退到标准错误输出
        print(f"⚠️ 无法创建日志文件 ({e})，日志将输出到标准错误流", file=sys.stderr)
        handlers = {}
    return handlers


def setup_logging(
    log_level: str = "INFO",
    enable_file_logging: Optional[bool] = None,
    log_dir: Optional[str] = None,
):
    """
    Configures structured logging for the collector with modular support.

    Args:
        log_level: 日志级别 (DEBUG, INFO, WARNING, ERROR)
        enable_file_logging: 是否启用文件日志，None表示读取配置
        log_dir: 日志目录，None表示读取配置
    """
    if enable_file_logging is None:
        enable_file_logging = settings.ENABLE_FILE_LOGGING
    if log_dir is None:
        log_dir = settings.LOG_DIR

    # 采集结果写到标准输出，日志统一写到标准错误
    logging.basicConfig(
        level=log_level.upper(),
        format="%(message)s",
        stream=sys.stderr,
    )

    handlers = _build_file_handlers(log_dir) if enable_file_logging else {}

    # Console handler
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(getattr(logging, log_level.upper()))
    handlers['console'] = console_handler

    # Configure structlog
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            add_gather_context,
            add_performance_metrics,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Configure module-specific loggers
    setup_module_loggers(handlers, log_level)


def setup_module_loggers(handlers: Dict[str, logging.Handler], log_level: str = "INFO"):
    """Setup dedicated loggers for each service module."""
    for module_name, config in MODULE_LOGGERS.items():
        logger = logging.getLogger(f"mssql_metrics.services.{module_name}")
        level = min(getattr(logging, config['level'].upper()), getattr(logging, log_level.upper()))
        logger.setLevel(level)

        # Clear existing handlers
        logger.handlers.clear()

        # Add configured handlers
        for handler_name in config['handlers']:
            if handler_name in handlers:
                logger.addHandler(handlers[handler_name])

        logger.propagate = config['propagate']


def get_module_logger(module_name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger for a specific module.

    Args:
        module_name: Name of the module (e.g., 'gather', 'query', 'discovery')

    Returns:
        Configured structlog logger for the module
    """
    logger_name = f"mssql_metrics.services.{module_name}"
    return structlog.get_logger(logger_name)


def get_performance_logger() -> structlog.stdlib.BoundLogger:
    """Get a logger specifically for performance metrics."""
    return structlog.get_logger("mssql_metrics.services.performance")
