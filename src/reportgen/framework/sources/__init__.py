"""Collaborator protocols and their in-memory and SQL implementations."""

from reportgen.framework.sources.protocol import (
    ColumnMappingStore,
    DataSource,
    DeclaredParameter,
    LookupService,
    ReportConfig,
    ReportConfigStore,
    TemplateStore,
    parse_source_descriptor,
)

__all__ = [
    "ColumnMappingStore",
    "DataSource",
    "DeclaredParameter",
    "LookupService",
    "ReportConfig",
    "ReportConfigStore",
    "TemplateStore",
    "parse_source_descriptor",
]
