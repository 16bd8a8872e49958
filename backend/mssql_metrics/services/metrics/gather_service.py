"""
采集编排服务

对 servers × queries 的每一对启动一个独立的并发采集单元：
- 每个单元独占一个连接，任何退出路径上都会释放
- 查询文本原样执行，结果行逐行解码并立即交给累加器
- 单元失败只放弃该单元，错误带上 server 和 query 名称被收集
- 等待全部单元结束后返回汇总结果；采集周期本身从不整体失败
"""

import asyncio
import time
from typing import Callable, List, Optional, Sequence, Tuple

from mssql_metrics.core.config import SQLServerInputConfig
from mssql_metrics.core.exceptions import ConnectivityError, ExecutionError, GatherUnitError
from mssql_metrics.core.logging_config import begin_gather_cycle, get_module_logger, get_performance_logger
from mssql_metrics.core.security_utils import mask_server
from mssql_metrics.models import GatherResult, MetricRecord, UnitOutcome
from mssql_metrics.services.data.connectors import ConnectorFactory, connector_factory_from_config
from mssql_metrics.services.data.processing import RowDecoder
from mssql_metrics.services.data.query import QueryDefinition, QuerySelection, select_queries_from_config
from mssql_metrics.services.discovery import discover_local_instances
from .accumulator import Accumulator

logger = get_module_logger("gather")

# 超过该耗时(秒)的单元记录到性能日志
SLOW_UNIT_THRESHOLD = 5.0


class GatherService:
    """SQL Server 指标采集编排"""

    def __init__(
        self,
        config: SQLServerInputConfig,
        connector_factory: Optional[ConnectorFactory] = None,
        discovery: Optional[Callable[[], List[str]]] = None,
    ):
        self.config = config
        self.connector_factory = connector_factory or connector_factory_from_config(config)
        self.discovery = discovery or discover_local_instances

        self._init_lock = asyncio.Lock()
        self._initialized = False
        self.selection: Optional[QuerySelection] = None
        self.decoder: Optional[RowDecoder] = None
        self.servers: Tuple[str, ...] = tuple(config.servers)

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """
        一次性初始化：构建查询集、冻结查找集合、（可选）追加本机发现的实例

        重复调用是幂等的。
        """
        async with self._init_lock:
            if self._initialized:
                return

            selection = select_queries_from_config(self.config)

            servers = list(self.config.servers)
            if self.config.local_instances_auto_discovery:
                loop = asyncio.get_running_loop()
                servers.extend(await loop.run_in_executor(None, self.discovery))

            self.selection = selection
            self.decoder = RowDecoder(selection.tag_keys)
            self.servers = tuple(servers)
            self._initialized = True

            logger.info(
                "Gather service initialized",
                servers=len(self.servers),
                queries=len(selection),
            )

    def plan_units(self) -> List[Tuple[str, QueryDefinition]]:
        """列出本周期的全部 (server, query) 单元"""
        if self.selection is None:
            return []
        return [
            (server, query)
            for server in self.servers
            for query in self.selection.queries.values()
        ]

    async def gather(self, accumulator: Optional[Accumulator] = None) -> GatherResult:
        """
        执行一个采集周期

        Args:
            accumulator: 接收记录和错误的累加器，可选

        Returns:
            GatherResult，包含全部成功记录、每个失败单元的一条错误和各单元结果
        """
        await self.initialize()

        gather_id = begin_gather_cycle()
        start_time = time.perf_counter()
        result = GatherResult(gather_id=gather_id)

        units = self.plan_units()
        logger.debug("Gather cycle started", units=len(units))

        outcomes = await asyncio.gather(
            *(self._gather_unit(server, query, accumulator, result.records) for server, query in units),
            return_exceptions=True,
        )

        for (server, query), outcome in zip(units, outcomes):
            if isinstance(outcome, BaseException):
                # 单元内部已捕获 Exception，这里只会是取消之类的情况，错误尚未转发
                outcome = UnitOutcome(
                    server=mask_server(server),
                    query=query.name,
                    error=ExecutionError(
                        f"Gather unit aborted: {outcome!r}",
                        server=mask_server(server),
                        query=query.name,
                    ),
                )
                if accumulator is not None:
                    accumulator.add_error(outcome.error)
            result.outcomes.append(outcome)
            if outcome.error is not None:
                result.errors.append(outcome.error)

        result.execution_time = time.perf_counter() - start_time
        logger.info(
            "Gather cycle completed",
            units=result.unit_count,
            records=len(result.records),
            errors=len(result.errors),
            duration=round(result.execution_time, 3),
        )
        return result

    async def _gather_unit(
        self,
        server: str,
        query: QueryDefinition,
        accumulator: Optional[Accumulator],
        records: List[MetricRecord],
    ) -> UnitOutcome:
        """执行单个 (server, query) 单元，从不抛出 Exception"""
        display_server = mask_server(server)
        outcome = UnitOutcome(server=display_server, query=query.name)
        start_time = time.perf_counter()

        try:
            try:
                connector = self.connector_factory(server)
            except Exception as e:
                raise ConnectivityError(f"Failed to create connector: {e}") from e

            async with connector:
                cursor = await connector.execute_query(query.text)
                try:
                    columns: Sequence[str] = cursor.columns
                    async for row in cursor.iter_rows():
                        record = self.decoder.decode(columns, row)
                        records.append(record)
                        if accumulator is not None:
                            accumulator.add_record(record)
                        outcome.rows += 1
                finally:
                    await self._close_cursor(cursor, display_server, query.name)

        except GatherUnitError as e:
            outcome.error = e.bind(display_server, query.name)
        except Exception as e:
            outcome.error = ExecutionError(
                f"Unexpected error: {e}",
                server=display_server,
                query=query.name,
                details={"error_type": type(e).__name__},
            )
        finally:
            outcome.duration = time.perf_counter() - start_time

        if outcome.error is not None:
            logger.warning("Gather unit failed", rows=outcome.rows, **outcome.error.to_dict())
            # 错误与记录一样在单元结束时立即转发，不等待其他单元
            if accumulator is not None:
                accumulator.add_error(outcome.error)
        if outcome.duration > SLOW_UNIT_THRESHOLD:
            get_performance_logger().warning(
                "Slow gather unit detected",
                server=display_server,
                query=query.name,
                duration=round(outcome.duration, 3),
            )
        return outcome

    @staticmethod
    async def _close_cursor(cursor, server: str, query: str) -> None:
        try:
            await cursor.close()
        except Exception as e:
            logger.warning("Failed to close cursor", server=server, query=query, error=str(e))
