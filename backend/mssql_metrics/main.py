#!/usr/bin/env python3
"""
mssql-metrics 采集入口

Example:
    python -m mssql_metrics.main --once
    python -m mssql_metrics.main --server "Server=db1;UID=sa;PWD=secret;" --interval 30
"""

import argparse
import asyncio
import dataclasses
import sys
from typing import List, Optional

from mssql_metrics.core.config import SQLServerInputConfig, settings
from mssql_metrics.core.logging_config import get_module_logger, setup_logging
from mssql_metrics.services.metrics import GatherService, JsonLinesAccumulator

logger = get_module_logger("gather")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Collect SQL Server metrics as JSON lines")
    parser.add_argument("--once", action="store_true", help="run one gather cycle and exit")
    parser.add_argument("--interval", type=int, default=None, help="seconds between gather cycles")
    parser.add_argument(
        "--server",
        action="append",
        default=None,
        help="connection string or SQLAlchemy URL (repeatable, overrides configured servers)",
    )
    parser.add_argument("--query-version", type=int, choices=(1, 2), default=None)
    parser.add_argument("--azuredb", action="store_true", default=None, help="add AzureDB resource queries")
    parser.add_argument("--include", action="append", default=None, help="query name to include (repeatable)")
    parser.add_argument("--exclude", action="append", default=None, help="query name to exclude (repeatable)")
    parser.add_argument("--tag-key", action="append", default=None, help="column to emit as tag (repeatable)")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
    return parser


def build_input_config(args: argparse.Namespace) -> SQLServerInputConfig:
    """以配置为基础，应用命令行覆盖项"""
    config = settings.to_input_config()
    overrides = {}
    if args.server:
        overrides["servers"] = tuple(args.server)
    if args.query_version is not None:
        overrides["query_version"] = args.query_version
    if args.azuredb:
        overrides["azuredb"] = True
    if args.include is not None:
        overrides["include_query"] = frozenset(args.include)
    if args.exclude is not None:
        overrides["exclude_query"] = frozenset(args.exclude)
    if args.tag_key is not None:
        overrides["tag_keys"] = frozenset(args.tag_key)
    return dataclasses.replace(config, **overrides)


async def run(service: GatherService, accumulator: JsonLinesAccumulator, once: bool, interval: int) -> int:
    await service.initialize()
    if not service.servers:
        logger.warning("No servers configured")

    while True:
        result = await service.gather(accumulator)
        if once:
            return 1 if result.failed_units else 0
        await asyncio.sleep(interval)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level or settings.LOG_LEVEL)

    config = build_input_config(args)
    service = GatherService(config)
    accumulator = JsonLinesAccumulator(sys.stdout)
    interval = args.interval or settings.GATHER_INTERVAL

    try:
        return asyncio.run(run(service, accumulator, args.once, interval))
    except KeyboardInterrupt:
        logger.info("Collector stopped")
        return 0


if __name__ == "__main__":
    sys.exit(main())
