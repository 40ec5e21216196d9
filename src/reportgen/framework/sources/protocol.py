"""
Collaborator protocols for the report assembly pipeline.

The core never talks to a database, a template folder or a lookup table
directly; it depends on these protocols. ``reportgen.framework.sources.sql``
implements them over SQLAlchemy and ``reportgen.framework.sources.memory``
implements them in memory.

Architecture:
    ::

        ReportConfigStore ── get_report_config(name) → ReportConfig | None
        DataSource        ── execute(name, params) → ResultSet
                          └─ get_declared_parameters(name) → [DeclaredParameter]
        LookupService     ── month_name / period_name / charge_type_name /
                             settlement_name / organization_name
        TemplateStore     ── exists(name) / get(name)
        ColumnMappingStore── get_mappings(joined_source_names) → ColumnMappings

Tags:
    protocol, data-source, lookups, collaborators, reportgen

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from reportgen.core.params import ParamType, sql_type_to_param_type
from reportgen.core.tables import ResultSet
from reportgen.framework.logging import get_logger

if TYPE_CHECKING:
    from reportgen.rendering.headers import ColumnMappings

logger = get_logger(__name__)

SOURCE_SEPARATOR = ";"


def parse_source_descriptor(descriptor: str | None) -> list[str]:
    """
    Split a ``"proc_a; proc_b;"`` descriptor into source names.

    Whitespace is trimmed, empty entries dropped and repeated names kept
    only at their first position.
    """
    names: list[str] = []
    seen: set[str] = set()
    for part in (descriptor or "").split(SOURCE_SEPARATOR):
        name = part.strip()
        if not name:
            continue
        key = name.casefold()
        if key in seen:
            logger.warning("sources.duplicate_skipped", source=name)
            continue
        seen.add(key)
        names.append(name)
    return names


@dataclass(frozen=True)
class DeclaredParameter:
    """A parameter declared by a data source."""

    name: str
    type_name: str = "nvarchar"
    nullable: bool = True
    default: Any = None

    @property
    def param_type(self) -> ParamType:
        return sql_type_to_param_type(self.type_name)


@dataclass(frozen=True)
class ReportConfig:
    """Stored definition of a report."""

    report_name: str
    source_descriptor: str
    title: str = ""
    description: str = ""
    report_id: int | None = None
    merge_sources: bool = False

    @property
    def source_names(self) -> list[str]:
        return parse_source_descriptor(self.source_descriptor)

    @property
    def primary_source(self) -> str | None:
        names = self.source_names
        return names[0] if names else None

    @property
    def display_title(self) -> str:
        return self.title or self.report_name


@runtime_checkable
class DataSource(Protocol):
    """Executes named, parameterized data retrieval operations."""

    def execute(self, name: str, parameters: Mapping[str, Any]) -> ResultSet: ...

    def get_declared_parameters(self, name: str) -> list[DeclaredParameter]: ...


@runtime_checkable
class LookupService(Protocol):
    """Resolves codes to display names. Each call may fail independently."""

    def month_name(self, code: int) -> str: ...

    def period_name(self, code: int) -> str: ...

    def charge_type_name(self, code: int) -> str: ...

    def settlement_name(self, code: int) -> str: ...

    def organization_name(self) -> str: ...


@runtime_checkable
class TemplateStore(Protocol):
    """Stores HTML templates by report name."""

    def exists(self, name: str) -> bool: ...

    def get(self, name: str) -> str: ...


@runtime_checkable
class ColumnMappingStore(Protocol):
    """Supplies column display labels for a report's sources."""

    def get_mappings(self, source_names: str) -> ColumnMappings: ...


@runtime_checkable
class ReportConfigStore(Protocol):
    """Looks up report definitions."""

    def get_report_config(self, name: str) -> ReportConfig | None: ...
