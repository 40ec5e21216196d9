"""
Report pipeline orchestration.

``ReportPipeline.generate`` sequences one report execution:

    config lookup → parameter enrichment → column mappings → aggregation
        → render (PDF) or pass tables (spreadsheet) → output backend

Every execution is independent. The only shared mutable state is the
``ErrorArbiter``; each run reports through its own ``ReportScope`` so the
issues it collects belong to that run alone.

Fatal failures never escape ``generate``: they are reported CRITICAL through
the arbiter and returned as a failed ``ReportOutcome`` carrying a tagged
``ReportFailure``. ``outcome.raise_for_status()`` re-raises the original
error for callers that prefer exceptions.

Examples:
    >>> pipeline = ReportPipeline(config_store=repo, data_source=repo, lookups=repo,
    ...                           templates=FileTemplateStore("templates"),
    ...                           mappings=repo, pdf_backend=WeasyPrintPdfBackend(),
    ...                           spreadsheet_backend=OpenpyxlSpreadsheetBackend())
    >>> outcome = pipeline.generate("monthly_charges", "pdf", request)
    >>> outcome.raise_for_status().payload[:4]
    b'%PDF'

Tags:
    pipeline, orchestration, report, reportgen

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from reportgen.core.errors import (
    ErrorCode,
    ReportConfigError,
    ReportGenError,
    ReportNotFoundError,
    TemplateNotFoundError,
    error_code_of,
)
from reportgen.core.settings import ReportSettings, get_settings
from reportgen.core.tables import NamedTable
from reportgen.framework.aggregator import TabularAggregator
from reportgen.framework.arbitration import ErrorArbiter, ErrorEvent, ReportScope
from reportgen.framework.enrichment import ParameterEnricher, RawParameters
from reportgen.framework.logging import bind_context, get_logger, log_step, push_context
from reportgen.framework.sources.protocol import (
    ColumnMappingStore,
    DataSource,
    LookupService,
    ReportConfig,
    ReportConfigStore,
    TemplateStore,
)
from reportgen.output.protocol import OutputFormat, PdfBackend, SpreadsheetBackend
from reportgen.rendering.engine import TemplateRenderer
from reportgen.rendering.headers import ColumnMappings

logger = get_logger(__name__)


@dataclass(frozen=True)
class ReportFailure:
    """Tagged fatal failure: code + human description + original cause."""

    code: ErrorCode
    description: str
    cause: BaseException

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "description": self.description,
            "cause": f"{type(self.cause).__name__}: {self.cause}",
        }


@dataclass
class ReportOutcome:
    """Result of one report execution."""

    report_name: str
    output_format: OutputFormat | None
    payload: bytes = b""
    success: bool = True
    issues: list[ErrorEvent] = field(default_factory=list)
    failure: ReportFailure | None = None
    duration_ms: float = 0.0
    html: str | None = None

    @property
    def size_kb(self) -> float:
        return round(len(self.payload) / 1024, 1)

    def raise_for_status(self) -> ReportOutcome:
        """Re-raise the original error of a failed outcome; return self otherwise."""
        if self.failure is not None:
            raise self.failure.cause
        return self


class ReportPipeline:
    """Orchestrates report assembly against injected collaborators."""

    def __init__(
        self,
        *,
        config_store: ReportConfigStore,
        data_source: DataSource,
        lookups: LookupService,
        templates: TemplateStore,
        mappings: ColumnMappingStore,
        pdf_backend: PdfBackend | None = None,
        spreadsheet_backend: SpreadsheetBackend | None = None,
        arbiter: ErrorArbiter | None = None,
        settings: ReportSettings | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.settings = settings or get_settings()
        self.config_store = config_store
        self.data_source = data_source
        self.lookups = lookups
        self.templates = templates
        self.mappings = mappings
        self.pdf_backend = pdf_backend
        self.spreadsheet_backend = spreadsheet_backend
        self.arbiter = arbiter or ErrorArbiter.from_settings(self.settings)
        self.clock = clock
        self._executor: ThreadPoolExecutor | None = None

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def generate(
        self,
        report_name: str,
        output_format: OutputFormat | str,
        parameters: RawParameters = None,
        *,
        job_number: int = 0,
    ) -> ReportOutcome:
        """Generate one report. Never raises for report-level failures, an unknown format included."""
        scope = self.arbiter.scope(report_name, job_number)
        outcome = ReportOutcome(report_name=report_name, output_format=None)
        token = push_context(report=report_name, job_number=job_number)
        try:
            fmt = OutputFormat.parse(output_format)
            outcome.output_format = fmt
            bind_context(output_format=fmt.value)
            scope.info(ErrorCode.GENERAL_INFO, f"Report generation started: {report_name} ({fmt.value})")
            with log_step("report.generate", report=report_name, format=fmt.value) as timer:
                payload, html = self._run(report_name, fmt, parameters, scope)
                timer.add_metric("size_kb", round(len(payload) / 1024, 1))
            outcome.payload = payload
            outcome.html = html
            outcome.duration_ms = round(timer.duration_ms, 2)
            scope.info(
                ErrorCode.GENERAL_INFO,
                f"Report generated: {report_name} in {outcome.duration_ms:.0f} ms, {outcome.size_kb} KB",
            )
        except Exception as e:
            outcome.success = False
            outcome.failure = self._fail(report_name, e, scope)
        finally:
            token.restore()
        outcome.issues = scope.issues
        return outcome

    def submit(
        self,
        report_name: str,
        output_format: OutputFormat | str,
        parameters: RawParameters = None,
        *,
        job_number: int = 0,
    ) -> Future[ReportOutcome]:
        """Generate in the background on a shared thread pool."""
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.settings.max_workers,
                thread_name_prefix="reportgen",
            )
        return self._executor.submit(self.generate, report_name, output_format, parameters, job_number=job_number)

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None

    # ------------------------------------------------------------------ #
    # Steps
    # ------------------------------------------------------------------ #

    def _run(
        self,
        report_name: str,
        fmt: OutputFormat,
        parameters: RawParameters,
        scope: ReportScope,
    ) -> tuple[bytes, str | None]:
        config = self._load_config(report_name)
        sources = config.source_names
        if not sources:
            raise ReportConfigError(f"Report '{report_name}' has no data sources").with_context(
                report_name=report_name
            )

        enricher = ParameterEnricher(self.data_source, self.lookups, scope, self.settings.labels)
        with log_step("report.enrich", report=report_name):
            params = enricher.enrich(report_name, sources[0], parameters)

        mappings = self._load_mappings(config, scope)

        aggregator = TabularAggregator(self.data_source, scope)
        with log_step("report.aggregate", report=report_name, sources=len(sources)) as timer:
            if config.merge_sources:
                tables = {report_name: aggregator.aggregate(sources, params, table_name=report_name)}
            else:
                tables = aggregator.aggregate_by_source(sources, params)
            timer.add_metric("rows", sum(len(t) for t in tables.values()))

        if fmt is OutputFormat.PDF:
            return self._render_pdf(config, params, tables, mappings, scope)
        return self._render_spreadsheet(config, tables, mappings), None

    def _load_config(self, report_name: str) -> ReportConfig:
        config = self.config_store.get_report_config(report_name)
        if config is None:
            raise ReportNotFoundError(report_name)
        return config

    def _load_mappings(self, config: ReportConfig, scope: ReportScope) -> ColumnMappings:
        try:
            return self.mappings.get_mappings(config.source_descriptor)
        except Exception as e:
            if not scope.warning(
                ErrorCode.DB_COLUMN_MAPPING_NOT_FOUND,
                f"Column mappings unavailable for '{config.report_name}'; raw column names will be used",
                exception=e,
            ):
                raise
            return ColumnMappings()

    def _render_pdf(
        self,
        config: ReportConfig,
        params: Any,
        tables: Mapping[str, NamedTable],
        mappings: ColumnMappings,
        scope: ReportScope,
    ) -> tuple[bytes, str]:
        if self.pdf_backend is None:
            raise ReportConfigError("No PDF backend configured", code=ErrorCode.PDF_GENERATION_FAILED)
        if not self.templates.exists(config.report_name):
            raise TemplateNotFoundError(config.report_name)

        template = self.templates.get(config.report_name)
        renderer = TemplateRenderer(scope, clock=self.clock, no_data_label=self.settings.no_data_label)
        with log_step("report.render", report=config.report_name):
            html = renderer.render(template, config.display_title, params, tables, mappings)
        with log_step("report.pdf", report=config.report_name):
            return self.pdf_backend.render_pdf(html, config.display_title), html

    def _render_spreadsheet(
        self,
        config: ReportConfig,
        tables: Mapping[str, NamedTable],
        mappings: ColumnMappings,
    ) -> bytes:
        if self.spreadsheet_backend is None:
            raise ReportConfigError("No spreadsheet backend configured", code=ErrorCode.EXCEL_GENERATION_FAILED)
        with log_step("report.spreadsheet", report=config.report_name):
            return self.spreadsheet_backend.render_spreadsheet(tables, config.display_title, mappings=mappings)

    def _fail(self, report_name: str, error: Exception, scope: ReportScope) -> ReportFailure:
        code = error_code_of(error)
        description = error.message if isinstance(error, ReportGenError) else str(error)
        scope.critical(
            code if code is not ErrorCode.GENERAL_ERROR else ErrorCode.REPORT_GENERATION_FAILED,
            f"Report '{report_name}' failed: {description}",
            exception=error,
        )
        return ReportFailure(code=code, description=description, cause=error)
