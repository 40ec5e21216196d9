"""
In-memory implementations of the collaborator protocols.

Used by the test suite and by ``reportgen render`` for rendering templates
against JSON fixtures without a database.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any, Union

from reportgen.core.errors import DataSourceError, TemplateNotFoundError
from reportgen.core.tables import ResultSet
from reportgen.framework.sources.protocol import DeclaredParameter, ReportConfig
from reportgen.rendering.headers import ColumnMapping, ColumnMappings

SourceBody = Union[ResultSet, Iterable[Mapping[str, Any]], Callable[[Mapping[str, Any]], Any]]


class InMemoryDataSource:
    """
    Data source backed by a dict of source name → result.

    A result may be a ``ResultSet``, a list of dict records, or a callable
    taking the parameter dict and returning either. Every call is recorded in
    ``calls`` as ``(name, params)``.
    """

    def __init__(
        self,
        sources: Mapping[str, SourceBody] | None = None,
        declared: Mapping[str, list[DeclaredParameter]] | None = None,
    ):
        self._sources = {k.casefold(): v for k, v in (sources or {}).items()}
        self._declared = {k.casefold(): list(v) for k, v in (declared or {}).items()}
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def add_source(self, name: str, body: SourceBody, declared: list[DeclaredParameter] | None = None) -> None:
        self._sources[name.casefold()] = body
        if declared is not None:
            self._declared[name.casefold()] = list(declared)

    def execute(self, name: str, parameters: Mapping[str, Any]) -> ResultSet:
        params = dict(parameters)
        self.calls.append((name, params))
        try:
            body = self._sources[name.casefold()]
        except KeyError:
            raise DataSourceError(f"Unknown data source: {name}").with_context(source_name=name) from None
        if callable(body):
            body = body(params)
        if isinstance(body, ResultSet):
            return body
        return ResultSet.from_records(body)

    def get_declared_parameters(self, name: str) -> list[DeclaredParameter]:
        return list(self._declared.get(name.casefold(), []))


class InMemoryLookupService:
    """Lookup service over plain dicts, with the SQL adapter's fallbacks."""

    def __init__(
        self,
        *,
        months: Mapping[int, str] | None = None,
        periods: Mapping[int, str] | None = None,
        charge_types: Mapping[int, str] | None = None,
        settlements: Mapping[int, str] | None = None,
        organization: str = "מועצה לא ידועה",
    ):
        self.months = dict(months or {})
        self.periods = dict(periods or {})
        self.charge_types = dict(charge_types or {})
        self.settlements = dict(settlements or {})
        self.organization = organization

    def month_name(self, code: int) -> str:
        return self.months.get(code, f"חודש {code}")

    def period_name(self, code: int) -> str:
        return self.periods.get(code, f"תקופה {code}")

    def charge_type_name(self, code: int) -> str:
        return self.charge_types.get(code, f"סוג חיוב {code}")

    def settlement_name(self, code: int) -> str:
        return self.settlements.get(code, f"יישוב {code}")

    def organization_name(self) -> str:
        return self.organization


class InMemoryTemplateStore:
    """Template store over a dict."""

    def __init__(self, templates: Mapping[str, str] | None = None):
        self._templates = {k.casefold(): v for k, v in (templates or {}).items()}

    def exists(self, name: str) -> bool:
        return name.casefold() in self._templates

    def get(self, name: str) -> str:
        try:
            return self._templates[name.casefold()]
        except KeyError:
            raise TemplateNotFoundError(name) from None

    def save(self, name: str, content: str) -> None:
        self._templates[name.casefold()] = content


class InMemoryReportConfigStore:
    """Report definitions held in a dict."""

    def __init__(self, configs: Iterable[ReportConfig] = ()):
        self._configs = {c.report_name.casefold(): c for c in configs}

    def add(self, config: ReportConfig) -> None:
        self._configs[config.report_name.casefold()] = config

    def get_report_config(self, name: str) -> ReportConfig | None:
        return self._configs.get(name.casefold())


class InMemoryColumnMappingStore:
    """Column mappings held in a list."""

    def __init__(self, mappings: Iterable[ColumnMapping] = ()):
        self._mappings = list(mappings)

    def get_mappings(self, source_names: str) -> ColumnMappings:
        names = [n.strip() for n in source_names.split(";") if n.strip()]
        return ColumnMappings(self._mappings, source_names=names)
