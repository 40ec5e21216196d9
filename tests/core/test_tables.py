"""Tests for reportgen.core.tables: schema union and the ABSENT marker."""

import copy
import pickle

from reportgen.core.tables import ABSENT, NamedTable, OrderedSchema, ResultSet, find_table_key


class TestOrderedSchema:
    """Ordered list with set membership."""

    def test_first_seen_order_and_dedup(self):
        schema = OrderedSchema(["b", "a", "b"])
        assert schema.columns == ("b", "a")
        assert schema.add("a") is False
        assert schema.add("c") is True
        assert list(schema) == ["b", "a", "c"]
        assert "c" in schema and len(schema) == 3


class TestAbsent:
    """The ABSENT sentinel."""

    def test_singleton_and_distinct_from_empty_values(self):
        assert ABSENT is copy.copy(ABSENT)
        assert pickle.loads(pickle.dumps(ABSENT)) is ABSENT
        assert ABSENT is not None
        assert ABSENT != 0 and ABSENT != ""
        assert repr(ABSENT) == "ABSENT"


class TestNamedTableMerge:
    """Schema-union merging."""

    def test_later_result_widens_schema(self):
        table = NamedTable("t")
        table.merge(ResultSet(columns=["a", "b"], rows=[{"a": 1, "b": 2}]))
        table.merge(ResultSet(columns=["b", "c"], rows=[{"b": 3, "c": 4}]))

        assert table.columns == ("a", "b", "c")
        assert table.rows[0] == {"a": 1, "b": 2, "c": ABSENT}
        assert table.rows[1] == {"a": ABSENT, "b": 3, "c": 4}

    def test_no_value_is_lost(self):
        """Every original value survives; everything else is ABSENT."""
        inputs = [
            [{"x": 1}, {"y": None}],
            [{"z": ""}, {"x": 0, "z": "q"}],
            [],
            [{"w": 5}],
        ]
        table = NamedTable("t")
        for records in inputs:
            table.merge(ResultSet.from_records(records))

        all_columns = {key for records in inputs for row in records for key in row}
        assert set(table.columns) == all_columns

        originals = [row for records in inputs for row in records]
        assert len(table) == len(originals)
        for merged, original in zip(table.rows, originals):
            assert set(merged) == all_columns
            for column in all_columns:
                if column in original:
                    assert merged[column] == original[column]
                else:
                    assert merged[column] is ABSENT

    def test_none_is_kept_as_value(self):
        table = NamedTable("t")
        table.merge(ResultSet.from_records([{"a": None}]))
        assert table.rows[0]["a"] is None

    def test_empty_result_still_adds_declared_columns(self):
        table = NamedTable("t")
        table.merge(ResultSet(columns=["a"], rows=[]))
        assert table.columns == ("a",)
        assert table.is_empty()

    def test_to_records_replaces_absent(self):
        table = NamedTable("t")
        table.merge(ResultSet.from_records([{"a": 1}]))
        table.merge(ResultSet.from_records([{"b": 2}]))
        assert table.to_records() == [{"a": 1, "b": None}, {"a": None, "b": 2}]


class TestFindTableKey:
    """Tolerant dataset name resolution."""

    def test_exact_and_case_insensitive(self):
        assert find_table_key("Sales", ["sales"]) == "sales"

    def test_schema_prefix_either_way(self):
        assert find_table_key("sales", ["dbo.sales"]) == "dbo.sales"
        assert find_table_key("dbo.sales", ["sales"]) == "sales"

    def test_prefix_match(self):
        assert find_table_key("sales", ["dbo.sales(2024)"]) == "dbo.sales(2024)"

    def test_missing(self):
        assert find_table_key("sales", ["salesman"]) is None
