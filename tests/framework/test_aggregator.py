"""Tests for reportgen.framework.aggregator.TabularAggregator."""

from unittest.mock import MagicMock

import pytest

from reportgen.core.errors import AggregationError, ErrorCode
from reportgen.core.params import ParameterMap, ParamType
from reportgen.core.tables import ABSENT, ResultSet
from reportgen.framework.aggregator import TabularAggregator
from reportgen.framework.sources.memory import InMemoryDataSource
from reportgen.framework.sources.protocol import DataSource


@pytest.fixture
def params():
    p = ParameterMap()
    p.add("mnt", 275, ParamType.INT32)
    return p


class TestAggregateMerged:
    """Single merged table."""

    def test_union_in_source_order(self, params):
        source = InMemoryDataSource(
            {
                "a": ResultSet(columns=["id", "x"], rows=[{"id": 1, "x": "a"}]),
                "b": ResultSet(columns=["id", "y"], rows=[{"id": 2, "y": "b"}]),
            }
        )
        table = TabularAggregator(source).aggregate(["a", "b"], params, table_name="report")
        assert table.name == "report"
        assert table.columns == ("id", "x", "y")
        assert table.rows == [{"id": 1, "x": "a", "y": ABSENT}, {"id": 2, "x": ABSENT, "y": "b"}]

    def test_sources_invoked_once_in_order_with_parameters(self, params):
        source = InMemoryDataSource({"a": [], "b": []})
        TabularAggregator(source).aggregate("a; b; a", params, table_name="t")
        assert [name for name, _ in source.calls] == ["a", "b"]
        assert source.calls[0][1] == {"mnt": 275}

    def test_failure_aborts_and_names_source(self, params, arbiter, sink):
        source = MagicMock(spec=DataSource)
        source.execute.side_effect = [ResultSet.from_records([{"a": 1}]), RuntimeError("timeout")]
        aggregator = TabularAggregator(source, arbiter)

        with pytest.raises(AggregationError) as exc_info:
            aggregator.aggregate(["first", "second"], params, table_name="t")

        assert exc_info.value.source_name == "second"
        assert isinstance(exc_info.value.cause, RuntimeError)
        assert sink.events[0].code == ErrorCode.DB_STORED_PROC_EXECUTION_FAILED


class TestAggregateBySource:
    """One table per source."""

    def test_tables_keyed_by_source(self, params):
        source = InMemoryDataSource({"a": [{"x": 1}], "b": [{"y": 2}, {"y": 3}]})
        tables = TabularAggregator(source).aggregate_by_source(["a", "b"], params)
        assert list(tables) == ["a", "b"]
        assert tables["a"].columns == ("x",)
        assert len(tables["b"]) == 2

    def test_no_partial_result_on_failure(self, params):
        source = InMemoryDataSource({"a": [{"x": 1}]})
        with pytest.raises(AggregationError, match="missing"):
            TabularAggregator(source).aggregate_by_source(["a", "missing"], params)

    def test_accepts_plain_mapping(self):
        source = InMemoryDataSource({"a": lambda p: [{"echo": p["k"]}]})
        tables = TabularAggregator(source).aggregate_by_source(["a"], {"k": "v"})
        assert tables["a"].rows == [{"echo": "v"}]
