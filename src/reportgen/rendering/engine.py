"""
HTML template substitution engine.

Renders a report template against a title, a parameter map and named
tables. Rendering is deterministic for a fixed clock and does no I/O.

Manifesto:
    - **Ordered phases:** Each phase consumes the previous phase's text
    - **Orthogonal phases:** Parameter substitution does not touch row-block
      fragments; rows resolve their own tokens (columns first, then parameters)
    - **Values are opaque:** Substituted titles, parameters and cells are held
      behind markers and restored last, so data never becomes template syntax
    - **Local failures stay local:** A malformed header, row-block or
      conditional is reported and left as-is; only an empty template is fatal

Architecture:
    ::

        template
          │ 1. {{ReportTitle}}
          │ 2. {{CurrentDate}} {{CurrentTime}} {{CurrentDateTime}}
          │ 3. {{param}}                       (outside row-blocks)
          │ 4. {{HEADER:column}}               ── ColumnMappings.resolve
          │ 5. <tr data-table-row="t">…</tr>   ── one copy per row / no-data row
          │ 6. {{#if f == v}}…{{else}}…{{/if}}
          │ 7. {{PageNumber}} {{TotalPages}}
          ▼
        html

Examples:
    >>> renderer = TemplateRenderer(clock=lambda: datetime(2024, 3, 1, 8, 30))
    >>> renderer.render("<h1>{{ReportTitle}}</h1>", "Charges", {}, {})
    '<h1>Charges</h1>'

Tags:
    template, html, rendering, row-expansion, reportgen

Doc-Types:
    - API Reference
    - Template Authoring Guide
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from html import escape
from typing import Any

from reportgen.core.errors import ErrorCode, InvalidTemplateError, ReportAbortedError
from reportgen.core.params import Parameter, ParameterMap
from reportgen.core.tables import NamedTable, ResultSet, find_table_key
from reportgen.framework.arbitration import ErrorArbiter, ErrorReporter, ErrorSeverity
from reportgen.framework.logging import get_logger
from reportgen.rendering.formatting import DATE_FORMAT, DATETIME_FORMAT, TIME_FORMAT, format_value
from reportgen.rendering.headers import ColumnMappings

logger = get_logger(__name__)

TITLE_TOKEN = "{{ReportTitle}}"
DATE_TOKEN = "{{CurrentDate}}"
TIME_TOKEN = "{{CurrentTime}}"
DATETIME_TOKEN = "{{CurrentDateTime}}"
PAGE_NUMBER_TOKEN = "{{PageNumber}}"
TOTAL_PAGES_TOKEN = "{{TotalPages}}"

ROW_MARKER = "data-table-row"

# Synthetic summary rows are flagged with hesder == -1.
SUMMARY_FLAG_FIELD = "hesder"
SUMMARY_FLAG_VALUE = -1

_TOKEN = re.compile(r"\{\{\s*([^{}#/:\s][^{}:]*?)\s*\}\}")
_HEADER = re.compile(r"\{\{HEADER:([^}]*)\}\}")
_ROW_BLOCK = re.compile(
    r"<(?P<tag>tr|div)\b(?P<before>[^>]*?)\s*\bdata-table-row\s*=\s*(?P<q>[\"'])(?P<name>[^\"']*)(?P=q)"
    r"(?P<after>[^>]*)>(?P<body>.*?)</(?P=tag)\s*>",
    re.DOTALL | re.IGNORECASE,
)
_CONDITION = re.compile(
    r"\{\{#if\s+(?P<field>[^\s}=]+)\s*==\s*(?P<value>\"[^\"]*\"|'[^']*'|[^\s}]+)\s*\}\}"
    r"(?P<then>.*?)(?:\{\{else\}\}(?P<otherwise>.*?))?\{\{/if\}\}",
    re.DOTALL,
)
_CELL = re.compile(r"<t[dh]\b", re.IGNORECASE)
_HELD = re.compile("\x00(\\d+)\x00")


class RowBlockError(ValueError):
    """A row-block that cannot be expanded."""


class _HeldValues:
    """Substituted values kept out of the text until every structural phase has run."""

    def __init__(self):
        self._values: list[str] = []

    def hold(self, value: str) -> str:
        if not value:
            return value
        self._values.append(value)
        return f"\x00{len(self._values) - 1}\x00"

    def restore(self, text: str) -> str:
        return _HELD.sub(lambda m: self._values[int(m.group(1))], text)


def evaluate_condition(field: str, value: str) -> bool:
    """
    Evaluate ``field == value``.

    Only the summary-row flag (``hesder == -1``) is recognized; every other
    condition is false.
    """
    raw = value.strip()
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in "\"'":
        raw = raw[1:-1].strip()
    try:
        number = int(raw)
    except ValueError:
        return False
    return field.casefold() == SUMMARY_FLAG_FIELD and number == SUMMARY_FLAG_VALUE


def _as_table(name: str, value: Any) -> NamedTable:
    if isinstance(value, NamedTable):
        return value
    if isinstance(value, ResultSet):
        table = NamedTable(name)
        table.merge(value)
        return table
    table = NamedTable(name)
    table.merge(ResultSet.from_records(value))
    return table


def _parameter_values(parameters: ParameterMap | Mapping[str, Any] | None) -> dict[str, Any]:
    """Case-folded name → raw value."""
    if parameters is None:
        return {}
    result = {}
    for name in parameters:
        value = parameters[name]
        if isinstance(value, Parameter):
            value = value.value
        result[name.casefold()] = value
    return result


class TemplateRenderer:
    """
    Renders report templates.

    Stateless apart from its collaborators, so one instance can serve
    concurrent reports; pass a per-report ``reporter`` to ``render`` to
    attribute issues to that report.
    """

    def __init__(
        self,
        reporter: ErrorReporter | None = None,
        *,
        clock: Callable[[], datetime] = datetime.now,
        no_data_label: str = "אין נתונים להצגה",
    ):
        self.reporter = reporter or ErrorArbiter()
        self.clock = clock
        self.no_data_label = no_data_label

    def render(
        self,
        template: str | None,
        title: str,
        parameters: ParameterMap | Mapping[str, Any] | None,
        tables: Mapping[str, Any] | None = None,
        mappings: ColumnMappings | None = None,
        *,
        reporter: ErrorReporter | None = None,
    ) -> str:
        """
        Produce the final HTML.

        Raises:
            InvalidTemplateError: ``template`` is None, empty or whitespace.
        """
        reporter = reporter or self.reporter
        if template is None or not template.strip():
            error = InvalidTemplateError("Template is empty")
            reporter.error(ErrorCode.TEMPLATE_INVALID_FORMAT, error.message)
            raise error

        values = _parameter_values(parameters)
        named = {name: _as_table(name, value) for name, value in (tables or {}).items()}
        mappings = mappings if mappings is not None else ColumnMappings()
        now = self.clock()
        held = _HeldValues()

        html = template.replace(TITLE_TOKEN, held.hold(title or ""))
        html = (
            html.replace(DATETIME_TOKEN, now.strftime(DATETIME_FORMAT))
            .replace(DATE_TOKEN, now.strftime(DATE_FORMAT))
            .replace(TIME_TOKEN, now.strftime(TIME_FORMAT))
        )
        html = self._substitute_parameters(html, values, held)
        html = self._guarded("headers", html, reporter, lambda text: self._resolve_headers(text, mappings, reporter))
        html = self._guarded(
            "rows", html, reporter, lambda text: self._expand_rows(text, named, values, held, reporter)
        )
        html = self._guarded("conditions", html, reporter, lambda text: self._evaluate_conditions(text, reporter))
        html = html.replace(PAGE_NUMBER_TOKEN, "<span class='pageNumber'></span>").replace(
            TOTAL_PAGES_TOKEN, "<span class='totalPages'></span>"
        )
        html = held.restore(html)
        logger.debug("template.rendered", length=len(html), tables=len(named), parameters=len(values))
        return html

    # ------------------------------------------------------------------ #
    # Phases
    # ------------------------------------------------------------------ #

    @staticmethod
    def _substitute_parameters(text: str, values: Mapping[str, Any], held: _HeldValues) -> str:
        def replace(match: re.Match[str]) -> str:
            key = match.group(1).casefold()
            if key in values:
                return held.hold(format_value(values[key]))
            return match.group(0)

        # Row-block fragments are left for row expansion.
        parts = []
        position = 0
        for block in _ROW_BLOCK.finditer(text):
            parts.append(_TOKEN.sub(replace, text[position:block.start()]))
            parts.append(block.group(0))
            position = block.end()
        parts.append(_TOKEN.sub(replace, text[position:]))
        return "".join(parts)

    def _resolve_headers(self, text: str, mappings: ColumnMappings, reporter: ErrorReporter) -> str:
        def replace(match: re.Match[str]) -> str:
            column = match.group(1).strip()
            if not column:
                self._report(reporter, ErrorCode.TEMPLATE_MISSING_PLACEHOLDER, "Empty column name in HEADER token")
                return match.group(0)
            return mappings.resolve(column)

        return _HEADER.sub(replace, text)

    def _expand_rows(
        self,
        text: str,
        tables: Mapping[str, NamedTable],
        values: Mapping[str, Any],
        held: _HeldValues,
        reporter: ErrorReporter,
    ) -> str:
        def replace(match: re.Match[str]) -> str:
            try:
                return self._expand_block(match, tables, values, held, reporter)
            except RowBlockError as e:
                self._report(
                    reporter,
                    ErrorCode.TEMPLATE_TABLE_ROW_INVALID,
                    str(e),
                    exception=e,
                    severity=ErrorSeverity.ERROR,
                )
                return match.group(0)

        return _ROW_BLOCK.sub(replace, text)

    def _expand_block(
        self,
        match: re.Match[str],
        tables: Mapping[str, NamedTable],
        values: Mapping[str, Any],
        held: _HeldValues,
        reporter: ErrorReporter,
    ) -> str:
        tag = match.group("tag")
        name = match.group("name").strip()
        body = match.group("body")
        if not name:
            raise RowBlockError("Row-block without a dataset name")
        if ROW_MARKER in body.lower():
            raise RowBlockError(f"Nested row-block inside '{name}' is not supported")

        key = find_table_key(name, tables.keys())
        if key is None:
            self._report(
                reporter,
                ErrorCode.TEMPLATE_TABLE_ROW_MISSING,
                f"Dataset '{name}' referenced by the template was not returned",
            )
            return self._no_data_row(tag, body, "missing-data")

        table = tables[key]
        if table.is_empty():
            return self._no_data_row(tag, body, "empty-data")

        attributes = (match.group("before") + match.group("after")).rstrip()
        open_tag = f"<{tag}{attributes}>"
        close_tag = f"</{tag}>"
        return "".join(f"{open_tag}{self._fill_row(body, row, values, held)}{close_tag}" for row in table)

    @staticmethod
    def _fill_row(body: str, row: Mapping[str, Any], values: Mapping[str, Any], held: _HeldValues) -> str:
        cells = {column.casefold(): value for column, value in row.items()}

        def replace(match: re.Match[str]) -> str:
            key = match.group(1).casefold()
            if key in cells:
                return held.hold(format_value(cells[key]))
            if key in values:
                return held.hold(format_value(values[key]))
            return match.group(0)

        return _TOKEN.sub(replace, body)

    def _no_data_row(self, tag: str, body: str, kind: str) -> str:
        label = escape(self.no_data_label)
        if tag.lower() == "tr":
            width = max(1, len(_CELL.findall(body)))
            return f'<tr class="no-data {kind}"><td colspan="{width}">{label}</td></tr>'
        return f'<{tag} class="no-data {kind}">{label}</{tag}>'

    def _evaluate_conditions(self, text: str, reporter: ErrorReporter) -> str:
        def replace(match: re.Match[str]) -> str:
            then = match.group("then")
            otherwise = match.group("otherwise") or ""
            if "{{#if" in then or "{{#if" in otherwise:
                self._report(
                    reporter,
                    ErrorCode.TEMPLATE_CONDITION_INVALID,
                    f"Nested conditional inside '{match.group('field')}' block is not supported",
                )
                return match.group(0)
            if evaluate_condition(match.group("field"), match.group("value")):
                return then
            return otherwise

        return _CONDITION.sub(replace, text)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _guarded(
        self,
        phase: str,
        text: str,
        reporter: ErrorReporter,
        transform: Callable[[str], str],
    ) -> str:
        """Run ``transform``; on failure report it and return ``text`` unchanged."""
        try:
            return transform(text)
        except ReportAbortedError:
            raise
        except Exception as e:
            self._report(
                reporter,
                ErrorCode.TEMPLATE_PROCESSING_FAILED,
                f"Template phase '{phase}' failed: {e}",
                exception=e,
                severity=ErrorSeverity.ERROR,
            )
            return text

    @staticmethod
    def _report(
        reporter: ErrorReporter,
        code: ErrorCode,
        message: str,
        *,
        exception: BaseException | None = None,
        severity: ErrorSeverity = ErrorSeverity.WARNING,
    ) -> None:
        if not reporter.report(code, severity, message, exception=exception):
            raise ReportAbortedError(message, code=code, cause=exception)


def datasets_referenced(template: str) -> list[str]:
    """Dataset names referenced by row-blocks, in template order."""
    return [m.group("name").strip() for m in _ROW_BLOCK.finditer(template)]


def placeholders(template: str) -> Iterable[str]:
    """Simple ``{{name}}`` tokens used by ``template``."""
    return sorted({m.group(1) for m in _TOKEN.finditer(template)})
