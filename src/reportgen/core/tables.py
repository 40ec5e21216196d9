"""
Tabular result model with schema-union merging.

A ``NamedTable`` accumulates rows from one or more data-source results. Its
schema is the union of every column ever merged into it, in first-seen order.
Cells a source never supplied hold the ``ABSENT`` marker, which is distinct
from ``None`` (an explicit database NULL), ``0`` and ``""``.

Architecture:
    ::

        ResultSet (columns, rows)  ──merge──▶  NamedTable
                                                 ├── OrderedSchema  (list + set)
                                                 └── rows: list[dict[column, value | ABSENT]]

Examples:
    >>> table = NamedTable("sales")
    >>> table.merge(ResultSet(columns=["a"], rows=[{"a": 1}]))
    >>> table.merge(ResultSet(columns=["b"], rows=[{"b": 2}]))
    >>> table.schema.columns
    ('a', 'b')
    >>> table.rows[0]["b"] is ABSENT
    True

Tags:
    tables, schema-union, aggregation, reportgen

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any


class _Absent:
    """Singleton marker for a column the row's source did not supply."""

    _instance: _Absent | None = None

    def __new__(cls) -> _Absent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()


def is_absent(value: Any) -> bool:
    return value is ABSENT


class OrderedSchema:
    """Ordered column list with set membership checks."""

    def __init__(self, columns: Iterable[str] = ()):
        self._columns: list[str] = []
        self._members: set[str] = set()
        for column in columns:
            self.add(column)

    def add(self, column: str) -> bool:
        """Append ``column`` if unseen. Returns True when it was added."""
        if column in self._members:
            return False
        self._columns.append(column)
        self._members.add(column)
        return True

    @property
    def columns(self) -> tuple[str, ...]:
        return tuple(self._columns)

    def __contains__(self, column: object) -> bool:
        return column in self._members

    def __iter__(self) -> Iterator[str]:
        return iter(self._columns)

    def __len__(self) -> int:
        return len(self._columns)

    def __repr__(self) -> str:
        return f"OrderedSchema({self._columns!r})"


@dataclass
class ResultSet:
    """
    Raw result returned by a data source.

    ``columns`` is the declared column order (from the cursor description).
    Rows may omit columns; keys not listed in ``columns`` are appended in
    first-seen order.
    """

    columns: Sequence[str] = ()
    rows: list[Mapping[str, Any]] = field(default_factory=list)

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> ResultSet:
        """Build a result from dict records, inferring the columns."""
        rows = list(records)
        schema = OrderedSchema()
        for row in rows:
            for key in row:
                schema.add(key)
        return cls(columns=schema.columns, rows=rows)

    def column_order(self) -> list[str]:
        schema = OrderedSchema(self.columns)
        for row in self.rows:
            for key in row:
                schema.add(key)
        return list(schema)

    def __len__(self) -> int:
        return len(self.rows)


class NamedTable:
    """A logical result set keyed by name, built additively from results."""

    def __init__(self, name: str, columns: Iterable[str] = ()):
        self.name = name
        self.schema = OrderedSchema(columns)
        self._rows: list[dict[str, Any]] = []

    @property
    def rows(self) -> list[dict[str, Any]]:
        return self._rows

    @property
    def columns(self) -> tuple[str, ...]:
        return self.schema.columns

    def merge(self, result: ResultSet) -> None:
        """
        Union ``result`` into this table.

        New columns are appended to the schema, existing rows get ``ABSENT``
        for them, and incoming rows get ``ABSENT`` for known columns they
        lack.
        """
        added = [column for column in result.column_order() if self.schema.add(column)]
        if added:
            for row in self._rows:
                for column in added:
                    row[column] = ABSENT
        for incoming in result.rows:
            self._rows.append(
                {column: incoming[column] if column in incoming else ABSENT for column in self.schema}
            )

    def is_empty(self) -> bool:
        return not self._rows

    def column_values(self, column: str) -> list[Any]:
        return [row[column] for row in self._rows]

    def to_records(self, absent: Any = None) -> list[dict[str, Any]]:
        """Return plain dict rows with ``ABSENT`` replaced by ``absent``."""
        return [
            {key: (absent if value is ABSENT else value) for key, value in row.items()}
            for row in self._rows
        ]

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return iter(self._rows)

    def __repr__(self) -> str:
        return f"NamedTable({self.name!r}, columns={len(self.schema)}, rows={len(self._rows)})"


SCHEMA_PREFIX = "dbo."


def find_table_key(name: str, keys: Iterable[str]) -> str | None:
    """
    Resolve a dataset reference against the available table keys.

    Tried in order, case-insensitively: exact name, name with or without the
    ``dbo.`` schema prefix, then keys that start with ``name.`` or ``name(``.
    """
    keys = list(keys)
    folded = {key.casefold(): key for key in keys}
    wanted = name.strip().casefold()
    prefix = SCHEMA_PREFIX.casefold()

    if wanted in folded:
        return folded[wanted]
    bare = wanted[len(prefix):] if wanted.startswith(prefix) else wanted
    for candidate in (prefix + bare, bare):
        if candidate in folded:
            return folded[candidate]
    for key in keys:
        k = key.casefold()
        if k.startswith(prefix):
            k = k[len(prefix):]
        if k.startswith(bare + ".") or k.startswith(bare + "("):
            return key
    return None
