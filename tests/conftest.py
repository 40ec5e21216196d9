"""
Shared pytest fixtures for reportgen tests.

This module provides:
- Settings cache and log context cleanup for test isolation
- A fixed clock for deterministic date/time output
- In-memory collaborators (data source, lookups, templates, mappings)
- A recording error sink
"""

import sys
from datetime import datetime
from decimal import Decimal
from pathlib import Path

import pytest

# Ensure reportgen package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from reportgen.core.settings import clear_settings_cache
from reportgen.core.tables import ResultSet
from reportgen.framework.arbitration import ErrorArbiter, ErrorEvent
from reportgen.framework.logging import clear_context
from reportgen.framework.sources.memory import (
    InMemoryColumnMappingStore,
    InMemoryDataSource,
    InMemoryLookupService,
    InMemoryReportConfigStore,
    InMemoryTemplateStore,
)
from reportgen.framework.sources.protocol import DeclaredParameter, ReportConfig
from reportgen.rendering.headers import ColumnMapping


FIXED_NOW = datetime(2024, 3, 15, 9, 5, 7)


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def _isolate(monkeypatch):
    """Reset cached settings and log context around every test."""
    for var in ("REPORTGEN_ERROR_LOG_THRESHOLD", "REPORTGEN_ERROR_BREAK_THRESHOLD"):
        monkeypatch.delenv(var, raising=False)
    clear_settings_cache()
    clear_context()
    yield
    clear_settings_cache()
    clear_context()


# =============================================================================
# Helpers
# =============================================================================


class RecordingSink:
    """Error sink that keeps every event it receives."""

    def __init__(self):
        self.events: list[ErrorEvent] = []

    def write(self, event: ErrorEvent) -> None:
        self.events.append(event)


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def arbiter(sink) -> ErrorArbiter:
    return ErrorArbiter([sink])


@pytest.fixture
def lookups() -> InMemoryLookupService:
    return InMemoryLookupService(
        months={275: "מרץ 2024"},
        periods={275: "רבעון 1"},
        charge_types={4: "ארנונה"},
        settlements={12: "גבעת עדה"},
        organization="מועצה אזורית",
    )


@pytest.fixture
def data_source() -> InMemoryDataSource:
    return InMemoryDataSource(
        sources={
            "rpt_charges": ResultSet(
                columns=["name", "amount"],
                rows=[
                    {"name": "Cohen", "amount": Decimal("1234.5")},
                    {"name": "Levi", "amount": Decimal("10")},
                ],
            ),
            "rpt_totals": [{"total": Decimal("1244.5"), "hesder": -1}],
        },
        declared={
            "rpt_charges": [
                DeclaredParameter("mnt", "int", nullable=False),
                DeclaredParameter("sugtslist", "nvarchar"),
                DeclaredParameter("fromdate", "datetime"),
            ],
        },
    )


@pytest.fixture
def config_store() -> InMemoryReportConfigStore:
    return InMemoryReportConfigStore(
        [
            ReportConfig(
                report_name="charges",
                source_descriptor="rpt_charges; rpt_totals",
                title="Monthly charges",
                report_id=1,
            ),
            ReportConfig(
                report_name="charges_merged",
                source_descriptor="rpt_charges;rpt_totals",
                title="Merged charges",
                merge_sources=True,
            ),
        ]
    )


@pytest.fixture
def template_store() -> InMemoryTemplateStore:
    return InMemoryTemplateStore(
        {
            "charges": (
                "<h1>{{ReportTitle}}</h1><p>{{mntname}} {{rashutName}}</p>"
                "<table><tr><th>{{HEADER:name}}</th><th>{{HEADER:amount}}</th></tr>"
                "<tr data-table-row=\"rpt_charges\"><td>{{name}}</td><td>{{amount}}</td></tr></table>"
            ),
        }
    )


@pytest.fixture
def mapping_store() -> InMemoryColumnMappingStore:
    return InMemoryColumnMappingStore(
        [
            ColumnMapping("rpt_charges", "name", "שם"),
            ColumnMapping("rpt_charges", "amount", "סכום"),
        ]
    )
