"""
测试本机实例发现
"""

import pytest

from mssql_metrics.services.discovery import local_instances
from mssql_metrics.services.discovery.local_instances import (
    build_connection_string,
    discover_local_instances,
    read_installed_instances,
)


class TestBuildConnectionString:
    """测试实例名到连接串的转换"""

    def test_default_instance_uses_hostname(self):
        assert build_connection_string("HOST", "MSSQLSERVER") == "Server=HOST;Trusted_Connection=yes;"

    def test_default_instance_is_case_insensitive(self):
        assert build_connection_string("HOST", "mssqlserver") == "Server=HOST;Trusted_Connection=yes;"

    def test_named_instance(self):
        assert build_connection_string("HOST", "SQLEXPRESS") == (
            "Server=HOST\\SQLEXPRESS;Trusted_Connection=yes;"
        )


class TestDiscoverLocalInstances:
    """测试实例发现"""

    def test_discovered_instances(self):
        servers = discover_local_instances(reader=lambda: ["MSSQLSERVER", "SQLEXPRESS"], hostname="HOST")

        assert servers == [
            "Server=HOST;Trusted_Connection=yes;",
            "Server=HOST\\SQLEXPRESS;Trusted_Connection=yes;",
        ]

    def test_no_instances(self):
        assert discover_local_instances(reader=lambda: [], hostname="HOST") == []

    def test_reader_failure_is_not_fatal(self):
        def failing_reader():
            raise PermissionError("access denied")

        assert discover_local_instances(reader=failing_reader, hostname="HOST") == []

    def test_hostname_defaults_to_local_host(self, monkeypatch):
        monkeypatch.setattr(local_instances.socket, "gethostname", lambda: "LOCALBOX")

        assert discover_local_instances(reader=lambda: ["MSSQLSERVER"]) == [
            "Server=LOCALBOX;Trusted_Connection=yes;"
        ]

    def test_unsupported_platform(self, monkeypatch):
        monkeypatch.setattr(local_instances.sys, "platform", "linux")

        with pytest.raises(OSError):
            read_installed_instances()
        assert discover_local_instances() == []
