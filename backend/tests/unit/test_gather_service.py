"""
采集编排服务测试

使用假连接器验证并发扇出、失败隔离、连接释放和一次性初始化。
"""

import asyncio
import io
from unittest.mock import MagicMock

import pytest
from structlog.testing import capture_logs

from mssql_metrics.core.exceptions import ConnectivityError, DecodeError, ExecutionError
from mssql_metrics.services.metrics import GatherService, JsonLinesAccumulator, MemoryAccumulator
from mssql_metrics.services.metrics import gather_service as gather_module
from tests.conftest import make_selection

Q1 = "SELECT 1"
Q2 = "SELECT 2"
Q3 = "SELECT 3"


def build_service(fake_backend, input_config, monkeypatch, queries, servers, tag_keys=(), **config):
    """构造使用假连接器和固定查询集的服务"""
    selection = make_selection(queries, tag_keys=tag_keys)
    monkeypatch.setattr(gather_module, "select_queries_from_config", lambda _config: selection)
    return GatherService(
        input_config(servers=tuple(servers), tag_keys=frozenset(tag_keys), **config),
        connector_factory=fake_backend.factory,
    )


class TestGatherScenarios:
    """测试典型采集场景"""

    @pytest.mark.asyncio
    async def test_two_servers_one_query(self, fake_backend, input_config, monkeypatch):
        """测试两台服务器、一个查询、每台返回一行"""
        fake_backend.respond(Q1, ["measurement", "host", "value"], [("m", "h1", 42)])
        service = build_service(
            fake_backend, input_config, monkeypatch,
            queries={"Q": Q1}, servers=["srv1", "srv2"], tag_keys=["host"],
        )
        accumulator = MemoryAccumulator()

        result = await service.gather(accumulator)

        assert len(result.records) == 2
        for record in result.records:
            assert record.measurement == "m"
            assert record.tags == {"host": "h1"}
            assert record.fields == {"value": 42}
        assert result.errors == []
        assert len(accumulator.records) == 2
        assert accumulator.errors == []

    @pytest.mark.asyncio
    async def test_connection_open_failure(self, fake_backend, input_config, monkeypatch):
        """测试连接失败：零条记录、一个连接错误、周期正常结束"""
        fake_backend.respond(Q1, ["measurement"], [("m",)])
        fake_backend.unreachable.add("srv1")
        service = build_service(fake_backend, input_config, monkeypatch, queries={"Q": Q1}, servers=["srv1"])
        accumulator = MemoryAccumulator()

        result = await service.gather(accumulator)

        assert result.records == []
        assert len(result.errors) == 1
        error = result.errors[0]
        assert isinstance(error, ConnectivityError)
        assert error.server == "srv1"
        assert error.query == "Q"
        assert accumulator.errors == [error]
        assert fake_backend.ledger.opened == []

    @pytest.mark.asyncio
    async def test_no_servers_or_no_queries(self, fake_backend, input_config, monkeypatch):
        """测试空的服务器列表或查询集产生零个单元"""
        service = build_service(fake_backend, input_config, monkeypatch, queries={"Q": Q1}, servers=[])
        result = await service.gather()
        assert result.unit_count == 0

        service = build_service(fake_backend, input_config, monkeypatch, queries={}, servers=["srv1"])
        result = await service.gather()
        assert result.unit_count == 0
        assert result.records == [] and result.errors == []


class TestFanOut:
    """测试扇出与失败隔离"""

    @pytest.mark.asyncio
    async def test_launches_n_times_m_units(self, fake_backend, input_config, monkeypatch):
        """测试 N 台服务器 × M 个查询启动 N×M 个单元"""
        for query in (Q1, Q2, Q3):
            fake_backend.respond(query, ["measurement"], [("m",)])
        servers = ["srv1", "srv2", "srv3", "srv4"]
        service = build_service(
            fake_backend, input_config, monkeypatch,
            queries={"Q1": Q1, "Q2": Q2, "Q3": Q3}, servers=servers,
        )

        result = await service.gather()

        assert result.unit_count == 12
        assert len(fake_backend.executed) == 12
        assert {(o.server, o.query) for o in result.outcomes} == {
            (server, name) for server in servers for name in ("Q1", "Q2", "Q3")
        }
        assert len(result.records) == 12

    @pytest.mark.asyncio
    async def test_units_run_concurrently(self, fake_backend, input_config, monkeypatch):
        """测试全部单元同时在途：所有连接都到达屏障后才放行"""
        fake_backend.respond(Q1, ["measurement"], [("m",)])
        fake_backend.respond(Q2, ["measurement"], [("m",)])
        total = 6
        arrived = []
        release = asyncio.Event()

        async def gate(server):
            arrived.append(server)
            if len(arrived) == total:
                release.set()
            await release.wait()

        fake_backend.connect_gate = gate
        service = build_service(
            fake_backend, input_config, monkeypatch,
            queries={"Q1": Q1, "Q2": Q2}, servers=["srv1", "srv2", "srv3"],
        )

        result = await asyncio.wait_for(service.gather(), timeout=5)

        assert len(arrived) == total
        assert len(result.records) == total

    @pytest.mark.asyncio
    async def test_single_failure_does_not_reduce_other_records(self, fake_backend, input_config, monkeypatch):
        """测试一个单元失败不影响其他单元产出的记录数"""
        fake_backend.respond(Q1, ["measurement", "value"], [("m", 1), ("m", 2)])
        fake_backend.respond(Q2, ["measurement", "value"], [("n", 1)])
        fake_backend.fail(Q2, ExecutionError("Invalid column name 'x'"), server="srv2")
        service = build_service(
            fake_backend, input_config, monkeypatch,
            queries={"Q1": Q1, "Q2": Q2}, servers=["srv1", "srv2"],
        )

        result = await service.gather()

        assert result.unit_count == 4
        assert len(result.errors) == 1
        assert result.errors[0].server == "srv2"
        assert result.errors[0].query == "Q2"
        assert len(result.records) == 2 + 2 + 1

    @pytest.mark.asyncio
    async def test_every_failing_unit_reports_exactly_one_error(self, fake_backend, input_config, monkeypatch):
        """测试每个失败单元恰好一条错误且带有上下文"""
        fake_backend.respond(Q1, ["value"], [(1,), (2,)])
        fake_backend.unreachable.add("srv2")
        service = build_service(
            fake_backend, input_config, monkeypatch,
            queries={"Q1": Q1, "Q2": Q2}, servers=["srv1", "srv2"],
        )

        result = await service.gather()

        contexts = sorted((e.server, e.query, type(e).__name__) for e in result.errors)
        assert contexts == [
            ("srv1", "Q1", "DecodeError"),
            ("srv1", "Q2", "ExecutionError"),
            ("srv2", "Q1", "ConnectivityError"),
            ("srv2", "Q2", "ConnectivityError"),
        ]
        assert len(result.failed_units) == 4

    @pytest.mark.asyncio
    async def test_connector_factory_failure_is_unit_scoped(self, fake_backend, input_config, monkeypatch):
        """测试连接器创建失败只影响所属单元"""
        fake_backend.respond(Q1, ["measurement"], [("m",)])

        def factory(server):
            if server == "bad":
                raise ValueError("malformed connection string")
            return fake_backend.factory(server)

        selection = make_selection({"Q": Q1})
        monkeypatch.setattr(gather_module, "select_queries_from_config", lambda _config: selection)
        service = GatherService(input_config(servers=("good", "bad")), connector_factory=factory)

        result = await service.gather()

        assert len(result.records) == 1
        assert len(result.errors) == 1
        assert isinstance(result.errors[0], ConnectivityError)
        assert result.errors[0].server == "bad"

    @pytest.mark.asyncio
    async def test_unexpected_accumulator_error_is_unit_scoped(self, fake_backend, input_config, monkeypatch):
        """测试累加器抛出的意外异常被归为该单元的执行错误"""
        fake_backend.respond(Q1, ["measurement"], [("m",)])
        service = build_service(fake_backend, input_config, monkeypatch, queries={"Q": Q1}, servers=["srv1"])
        accumulator = MagicMock()
        accumulator.add_record.side_effect = RuntimeError("sink closed")

        result = await service.gather(accumulator)

        assert len(result.errors) == 1
        assert isinstance(result.errors[0], ExecutionError)
        assert result.errors[0].details["error_type"] == "RuntimeError"
        accumulator.add_error.assert_called_once_with(result.errors[0])
        assert fake_backend.ledger.balanced


class TestErrorForwarding:
    """测试错误通道"""

    @pytest.mark.asyncio
    async def test_error_forwarded_while_other_unit_still_running(self, fake_backend, input_config, monkeypatch):
        """测试一个单元仍被阻塞时，另一个单元的错误已交给累加器"""
        fake_backend.respond(Q1, ["measurement"], [("m",)])
        fake_backend.unreachable.add("bad")
        release = asyncio.Event()

        async def gate(server):
            if server == "slow":
                await release.wait()

        fake_backend.connect_gate = gate
        service = build_service(fake_backend, input_config, monkeypatch, queries={"Q": Q1}, servers=["slow", "bad"])
        accumulator = MemoryAccumulator()

        task = asyncio.create_task(service.gather(accumulator))
        try:
            for _ in range(200):
                if accumulator.errors:
                    break
                await asyncio.sleep(0.01)

            assert not task.done()
            assert len(accumulator.errors) == 1
            assert accumulator.errors[0].server == "bad"
        finally:
            release.set()

        result = await asyncio.wait_for(task, timeout=5)

        assert len(result.records) == 1
        assert result.errors == accumulator.errors

    @pytest.mark.asyncio
    async def test_failed_unit_logged_once(self, fake_backend, input_config, monkeypatch):
        """测试每个失败单元只记录一条失败日志"""
        fake_backend.respond(Q1, ["measurement"], [("m",)])
        fake_backend.unreachable.add("srv1")
        service = build_service(fake_backend, input_config, monkeypatch, queries={"Q": Q1}, servers=["srv1"])
        accumulator = JsonLinesAccumulator(io.StringIO())

        with capture_logs() as logs:
            await service.gather(accumulator)

        failures = [entry for entry in logs if entry["event"] == "Gather unit failed"]
        assert len(failures) == 1
        assert failures[0]["error"] == "CONNECTIVITY_ERROR"
        assert failures[0]["details"]["server"] == "srv1"
        assert failures[0]["details"]["query"] == "Q"
        assert accumulator.error_count == 1


class TestConnectionRelease:
    """测试每条退出路径上连接都被释放"""

    @pytest.mark.asyncio
    async def test_released_on_success(self, fake_backend, input_config, monkeypatch):
        fake_backend.respond(Q1, ["measurement"], [("m",)])
        service = build_service(fake_backend, input_config, monkeypatch, queries={"Q": Q1}, servers=["a", "b"])

        await service.gather()

        assert len(fake_backend.ledger.opened) == 2
        assert fake_backend.ledger.balanced

    @pytest.mark.asyncio
    async def test_released_on_execution_error(self, fake_backend, input_config, monkeypatch):
        fake_backend.fail(Q1, ExecutionError("Incorrect syntax near 'FROM'"))
        service = build_service(fake_backend, input_config, monkeypatch, queries={"Q": Q1}, servers=["a"])

        result = await service.gather()

        assert isinstance(result.errors[0], ExecutionError)
        assert fake_backend.ledger.opened == ["a"]
        assert fake_backend.ledger.balanced

    @pytest.mark.asyncio
    async def test_released_on_decode_error(self, fake_backend, input_config, monkeypatch):
        fake_backend.respond(Q1, ["measurement", "host"], [("m", "h1"), ("m", 5)])
        service = build_service(
            fake_backend, input_config, monkeypatch,
            queries={"Q": Q1}, servers=["a"], tag_keys=["host"],
        )

        result = await service.gather()

        assert isinstance(result.errors[0], DecodeError)
        assert result.errors[0].column == "host"
        assert fake_backend.ledger.balanced

    @pytest.mark.asyncio
    async def test_mid_stream_failure_keeps_rows_already_produced(self, fake_backend, input_config, monkeypatch):
        """测试读取中途失败时已产出的行仍被上报"""
        rows = [("m", i) for i in range(5)]
        fake_backend.respond(Q1, ["measurement", "value"], rows, fail_after=3)
        service = build_service(fake_backend, input_config, monkeypatch, queries={"Q": Q1}, servers=["a"])
        accumulator = MemoryAccumulator()

        result = await service.gather(accumulator)

        assert [r.fields["value"] for r in accumulator.records] == [0, 1, 2]
        assert result.outcomes[0].rows == 3
        assert isinstance(result.errors[0], ExecutionError)
        assert result.errors[0].query == "Q"
        assert fake_backend.ledger.balanced


class TestInitialization:
    """测试一次性初始化"""

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, fake_backend, input_config, monkeypatch):
        calls = []
        selection = make_selection({"Q": Q1})

        def fake_select(config):
            calls.append(config)
            return selection

        monkeypatch.setattr(gather_module, "select_queries_from_config", fake_select)
        service = GatherService(input_config(servers=("a",)), connector_factory=fake_backend.factory)

        await asyncio.gather(service.initialize(), service.initialize())
        await service.gather()
        await service.gather()

        assert len(calls) == 1
        assert service.initialized
        assert service.selection is selection

    @pytest.mark.asyncio
    async def test_first_gather_triggers_initialization(self, fake_backend, input_config, monkeypatch):
        fake_backend.respond(Q1, ["measurement"], [("m",)])
        service = build_service(fake_backend, input_config, monkeypatch, queries={"Q": Q1}, servers=["a"])

        assert not service.initialized
        result = await service.gather()

        assert service.initialized
        assert len(result.records) == 1

    @pytest.mark.asyncio
    async def test_discovered_targets_are_appended_once(self, fake_backend, input_config, monkeypatch):
        fake_backend.respond(Q1, ["measurement"], [("m",)])
        discovery = MagicMock(return_value=["Server=HOST;Trusted_Connection=yes;"])
        selection = make_selection({"Q": Q1})
        monkeypatch.setattr(gather_module, "select_queries_from_config", lambda _config: selection)
        service = GatherService(
            input_config(servers=("a",), local_instances_auto_discovery=True),
            connector_factory=fake_backend.factory,
            discovery=discovery,
        )

        await service.gather()
        result = await service.gather()

        discovery.assert_called_once_with()
        assert service.servers == ("a", "Server=HOST;Trusted_Connection=yes;")
        assert result.unit_count == 2

    @pytest.mark.asyncio
    async def test_discovery_not_called_when_disabled(self, fake_backend, input_config, monkeypatch):
        discovery = MagicMock(return_value=["extra"])
        selection = make_selection({"Q": Q1})
        monkeypatch.setattr(gather_module, "select_queries_from_config", lambda _config: selection)
        service = GatherService(
            input_config(servers=("a",)),
            connector_factory=fake_backend.factory,
            discovery=discovery,
        )

        await service.initialize()

        discovery.assert_not_called()
        assert service.servers == ("a",)

    @pytest.mark.asyncio
    async def test_tag_keys_come_from_selection(self, fake_backend, input_config, monkeypatch):
        fake_backend.respond(Q1, ["measurement", "sql_instance", "value"], [("m", "srv:inst", 3)])
        service = build_service(
            fake_backend, input_config, monkeypatch,
            queries={"Q": Q1}, servers=["a"], tag_keys=["sql_instance"],
        )

        result = await service.gather()

        assert result.records[0].tags == {"sql_instance": "srv:inst"}
        assert service.decoder.tag_keys == frozenset({"sql_instance"})
