"""
Unit test specific configuration and fixtures.

Unit tests should be fast and isolated: connectors are faked and no database
engine is opened.
"""

import pytest

from mssql_metrics.services.data.processing import RowDecoder


@pytest.fixture
def decoder() -> RowDecoder:
    return RowDecoder(tag_keys={"host", "sql_instance"})


# Automatically mark all tests in this directory as unit tests
pytestmark = pytest.mark.unit
