"""
CLI helpers: consoles, parameter parsing and pipeline wiring.
"""

from __future__ import annotations

from rich.console import Console

from reportgen.core.errors import ParameterStructureError
from reportgen.core.params import ParameterRequest, ParamType
from reportgen.core.settings import ReportSettings
from reportgen.framework.arbitration import ErrorArbiter
from reportgen.framework.sinks import FallbackErrorSink, FileErrorSink, SqlErrorSink
from reportgen.framework.sources.sql import SqlReportRepository, create_engine
from reportgen.output.pdf import WeasyPrintPdfBackend
from reportgen.output.spreadsheet import OpenpyxlSpreadsheetBackend
from reportgen.pipeline import ReportPipeline
from reportgen.rendering.store import FileTemplateStore

console = Console()
err_console = Console(stderr=True)


def parse_param_option(option: str) -> tuple[str, str, ParamType]:
    """
    Parse ``name=value`` or ``name=value:TYPE``.

    ``TYPE`` is a ``ParamType`` name (``INT32``) or number (``11``); the
    default is ``STRING``.
    """
    name, sep, rest = option.partition("=")
    if not sep or not name.strip():
        raise ParameterStructureError(f"Expected name=value[:TYPE], got {option!r}")
    value, param_type = rest, ParamType.STRING
    head, colon, tail = rest.rpartition(":")
    if colon:
        key = tail.strip().upper()
        if key in ParamType.__members__:
            value, param_type = head, ParamType[key]
        elif key.isdigit() and int(key) in ParamType._value2member_map_:
            value, param_type = head, ParamType(int(key))
    return name.strip(), value, param_type


def build_request(options: list[str]) -> ParameterRequest:
    builder = ParameterRequest.builder()
    for option in options:
        name, value, param_type = parse_param_option(option)
        builder.add(name, value, param_type)
    return builder.build()


def build_pipeline(settings: ReportSettings) -> ReportPipeline:
    """Wire a pipeline against the configured database and folders."""
    engine = create_engine(
        settings.database_url,
        echo=settings.database_echo,
        pool_timeout=settings.database_pool_timeout,
    )
    repository = SqlReportRepository.from_settings(settings, engine)
    sink = FallbackErrorSink(SqlErrorSink(engine), FileErrorSink(settings.logs_folder))
    return ReportPipeline(
        config_store=repository,
        data_source=repository,
        lookups=repository,
        templates=FileTemplateStore(settings.templates_folder),
        mappings=repository,
        pdf_backend=WeasyPrintPdfBackend(base_url=settings.templates_folder),
        spreadsheet_backend=OpenpyxlSpreadsheetBackend(),
        arbiter=ErrorArbiter.from_settings(settings, [sink]),
        settings=settings,
    )
