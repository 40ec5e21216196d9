"""
Column display labels.

A ``ColumnMappings`` snapshot is fetched once per report. Labels are keyed
by ``(table, column)``; columns of the report's own sources are also keyed
by column alone, which is what ``{{HEADER:column}}`` tokens use.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(frozen=True)
class ColumnMapping:
    """One stored label."""

    table_name: str
    column_name: str
    alias: str


class ColumnMappings:
    """Read-only, case-insensitive column → label lookup."""

    def __init__(
        self,
        mappings: Iterable[ColumnMapping] = (),
        *,
        source_names: Iterable[str] | None = None,
    ):
        self._scoped: dict[tuple[str, str], str] = {}
        self._by_column: dict[str, str] = {}
        sources = {name.casefold() for name in source_names} if source_names is not None else None
        for mapping in mappings:
            table = mapping.table_name.casefold()
            column = mapping.column_name.casefold()
            self._scoped.setdefault((table, column), mapping.alias)
            if sources is None or table in sources:
                self._by_column.setdefault(column, mapping.alias)

    @classmethod
    def from_dict(cls, labels: dict[str, str]) -> ColumnMappings:
        """Build from ``{"column": label}`` or ``{"table_column": label}`` pairs."""
        mappings = cls()
        for key, label in labels.items():
            mappings._by_column.setdefault(key.casefold(), label)
        return mappings

    def label_for(self, column: str, table: str | None = None) -> str | None:
        """Label for ``column`` (optionally scoped to ``table``), or None."""
        if table is not None:
            label = self._scoped.get((table.casefold(), column.casefold()))
            if label is not None:
                return label
        return self._by_column.get(column.casefold())

    def resolve(self, name: str) -> str:
        """
        Resolve a header reference.

        Order: table-agnostic label for ``name``; for ``table_column`` shaped
        names the ``(table, column)`` label; otherwise ``name`` itself.
        """
        label = self._by_column.get(name.casefold())
        if label is not None:
            return label
        folded = name.casefold()
        for i, char in enumerate(folded):
            if char == "_" and 0 < i < len(folded) - 1:
                label = self._scoped.get((folded[:i], folded[i + 1:]))
                if label is not None:
                    return label
        return name

    def __len__(self) -> int:
        return len(self._scoped) + len(self._by_column)

    def __bool__(self) -> bool:
        return bool(self._scoped or self._by_column)
