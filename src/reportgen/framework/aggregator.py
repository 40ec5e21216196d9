"""
Multi-source tabular aggregation.

Runs the sources of a report exactly once each, strictly in list order, and
unions their results either into one ``NamedTable`` or into one table per
source. Merging is sequential because later sources may widen the shared
schema; the merge order is part of the observable result.

A failing source aborts the whole aggregation with an ``AggregationError``
naming it. Partial results are never returned.

Examples:
    >>> aggregator = TabularAggregator(data_source)
    >>> table = aggregator.aggregate(["rpt_a", "rpt_b"], params, table_name="monthly")
    >>> tables = aggregator.aggregate_by_source(["rpt_a", "rpt_b"], params)
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from reportgen.core.errors import AggregationError, ErrorCode
from reportgen.core.params import ParameterMap
from reportgen.core.tables import NamedTable, ResultSet
from reportgen.framework.arbitration import ErrorArbiter, ErrorReporter
from reportgen.framework.logging import get_logger, log_step
from reportgen.framework.sources.protocol import DataSource, parse_source_descriptor

logger = get_logger(__name__)


class TabularAggregator:
    """Executes named data sources and unions their results."""

    def __init__(self, data_source: DataSource, reporter: ErrorReporter | None = None):
        self.data_source = data_source
        self.reporter = reporter or ErrorArbiter()

    def aggregate(
        self,
        source_names: Sequence[str] | str,
        parameters: ParameterMap | Mapping[str, Any],
        *,
        table_name: str,
    ) -> NamedTable:
        """Union every source's result into one table named ``table_name``."""
        table = NamedTable(table_name)
        for name, result in self._run(source_names, parameters):
            table.merge(result)
        logger.debug("aggregator.merged", table=table_name, columns=len(table.schema), rows=len(table))
        return table

    def aggregate_by_source(
        self,
        source_names: Sequence[str] | str,
        parameters: ParameterMap | Mapping[str, Any],
    ) -> dict[str, NamedTable]:
        """One table per source, keyed by source name, in source order."""
        tables: dict[str, NamedTable] = {}
        for name, result in self._run(source_names, parameters):
            table = NamedTable(name)
            table.merge(result)
            tables[name] = table
        return tables

    def _run(
        self,
        source_names: Sequence[str] | str,
        parameters: ParameterMap | Mapping[str, Any],
    ) -> list[tuple[str, ResultSet]]:
        names = parse_source_descriptor(source_names) if isinstance(source_names, str) else _unique(source_names)
        values = parameters.values_by_name() if isinstance(parameters, ParameterMap) else dict(parameters)

        # Collect everything first so a late failure leaves no partial table behind.
        results: list[tuple[str, ResultSet]] = []
        for name in names:
            try:
                with log_step("aggregator.source", source=name) as timer:
                    result = self.data_source.execute(name, values)
                    timer.add_metric("rows", len(result))
            except Exception as e:
                error = AggregationError(name, cause=e)
                self.reporter.error(ErrorCode.DB_STORED_PROC_EXECUTION_FAILED, error.message, exception=e)
                raise error from e
            results.append((name, result))
        return results


def _unique(names: Sequence[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for name in names:
        name = name.strip()
        if not name:
            continue
        if name.casefold() in seen:
            logger.warning("sources.duplicate_skipped", source=name)
            continue
        seen.add(name.casefold())
        result.append(name)
    return result
