"""
Structured error types for report generation.

Every failure that can surface from the report assembly pipeline is a
``ReportGenError``. Errors carry an ``ErrorCode`` from the report error
catalogue, a coarse ``ErrorCategory`` for routing, structured context and the
chained underlying cause.

Manifesto:
    - **Typed Error Hierarchy:** Parameter, data-source, template and
      backend failures are distinct types
    - **Catalogued Codes:** Every error maps to one ``ErrorCode`` so the
      arbitration layer and the error log speak the same vocabulary
    - **Error Chaining:** Original exceptions are preserved as ``cause``

Architecture:
    ::

        ReportGenError (code, category, context, cause)
        ├── ParameterError            (VALIDATION)
        │   ├── ParameterStructureError
        │   ├── ParameterTypeError
        │   └── DuplicateParameterError
        ├── DataSourceError           (DATABASE)
        │   └── AggregationError
        ├── TemplateError             (TEMPLATE)
        │   ├── InvalidTemplateError
        │   └── TemplateNotFoundError
        ├── ReportNotFoundError       (CONFIG)
        ├── ReportConfigError         (CONFIG)
        ├── RenderBackendError        (OUTPUT)
        ├── ReportAbortedError        (PIPELINE)
        └── ReportGenerationError     (PIPELINE)

Tags:
    error-handling, exception-hierarchy, error-codes, reportgen

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Coarse error categories used for routing and reporting."""

    DATABASE = "DATABASE"
    VALIDATION = "VALIDATION"
    TEMPLATE = "TEMPLATE"
    CONFIG = "CONFIG"
    OUTPUT = "OUTPUT"
    PIPELINE = "PIPELINE"
    INTERNAL = "INTERNAL"


class ErrorCode(str, Enum):
    """
    Catalogue of report error codes.

    The values are the stable identifiers written to the error log, so they
    must not be renamed.
    """

    GENERAL_ERROR = "General_Error"
    GENERAL_INFO = "General_Info"

    # Database
    DB_CONNECTION_FAILED = "DB_Connection_Failed"
    DB_QUERY_FAILED = "DB_Query_Failed"
    DB_REPORT_NOT_FOUND = "DB_Report_NotFound"
    DB_REPORT_CONFIG_INVALID = "DB_Report_Config_Invalid"
    DB_COLUMN_MAPPING_NOT_FOUND = "DB_ColumnMapping_NotFound"
    DB_MONTH_NAME_NOT_FOUND = "DB_MonthName_NotFound"
    DB_CHARGE_TYPE_NAME_NOT_FOUND = "DB_SugtsName_NotFound"
    DB_SETTLEMENT_NAME_NOT_FOUND = "DB_IshvName_NotFound"
    DB_ORGANIZATION_NAME_NOT_FOUND = "DB_MoazaName_NotFound"
    DB_STORED_PROC_MISSING_PARAM = "DB_StoredProc_MissingParam"
    DB_STORED_PROC_EXECUTION_FAILED = "DB_StoredProc_Execution_Failed"
    DB_TABLE_FUNC_EXECUTION_FAILED = "DB_TableFunc_Execution_Failed"

    # Parameters
    PARAMETERS_INVALID = "Parameters_Invalid"
    PARAMETERS_TYPE_MISMATCH = "Parameters_Type_Mismatch"
    PARAMETERS_MISSING = "Parameters_Missing"

    # Templates
    TEMPLATE_NOT_FOUND = "Template_Not_Found"
    TEMPLATE_INVALID_FORMAT = "Template_Invalid_Format"
    TEMPLATE_PROCESSING_FAILED = "Template_Processing_Failed"
    TEMPLATE_TABLE_ROW_MISSING = "Template_Table_Row_Missing"
    TEMPLATE_TABLE_ROW_INVALID = "Template_Table_Row_Invalid"
    TEMPLATE_MISSING_PLACEHOLDER = "Template_Missing_Placeholder"
    TEMPLATE_CONDITION_INVALID = "Template_Condition_Invalid"

    # Output backends
    PDF_GENERATION_FAILED = "PDF_Generation_Failed"
    PDF_HTML_CONVERSION_FAILED = "PDF_Html_Conversion_Failed"
    EXCEL_GENERATION_FAILED = "Excel_Generation_Failed"

    # Report
    REPORT_GENERATION_FAILED = "Report_Generation_Failed"
    REPORT_DATA_RETRIEVAL_FAILED = "Report_Data_Retrieval_Failed"
    REPORT_SAVE_FAILED = "Report_Save_Failed"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only non-None fields are emitted by ``to_dict()``, which keeps log lines
    short.
    """

    report_name: str | None = None
    job_number: int | None = None
    source_name: str | None = None
    template_name: str | None = None
    parameter: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["report_name", "job_number", "source_name", "template_name", "parameter"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class ReportGenError(Exception):
    """
    Base exception for all report generation errors.

    Subclasses set ``default_code`` and ``default_category``; both can be
    overridden per instance.

    Example:
        >>> err = DataSourceError("query failed").with_context(source_name="rpt_sales")
        >>> err.context.source_name
        'rpt_sales'
    """

    default_code: ErrorCode = ErrorCode.GENERAL_ERROR
    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> ReportGenError:
        """Add context fields. Unknown keys go into ``metadata``. Returns self."""
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logging and outcome reporting."""
        result: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "code": self.code.value,
            "category": self.category.value,
        }
        context = self.context.to_dict()
        if context:
            result["context"] = context
        if self.cause is not None:
            result["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return result

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, code={self.code.value})"


# =============================================================================
# Parameter errors
# =============================================================================


class ParameterError(ReportGenError):
    """Invalid caller-supplied parameters. Always fatal for the report."""

    default_code = ErrorCode.PARAMETERS_INVALID
    default_category = ErrorCategory.VALIDATION

    def __init__(self, message: str, *, parameter: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        if parameter is not None:
            self.context.parameter = parameter


class ParameterStructureError(ParameterError):
    """Malformed parameter list (bad grouping or empty name)."""


class ParameterTypeError(ParameterError):
    """A type tag that cannot be converted to ``ParamType``."""

    default_code = ErrorCode.PARAMETERS_TYPE_MISMATCH

    def __init__(self, message: str, *, type_value: Any = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.type_value = type_value


class DuplicateParameterError(ParameterError):
    """The same parameter name (case-insensitive) was supplied twice."""


# =============================================================================
# Data-source errors
# =============================================================================


class DataSourceError(ReportGenError):
    """Data-source execution or metadata failure."""

    default_code = ErrorCode.DB_QUERY_FAILED
    default_category = ErrorCategory.DATABASE


class AggregationError(DataSourceError):
    """A source failed while aggregating; no partial result is returned."""

    default_code = ErrorCode.DB_STORED_PROC_EXECUTION_FAILED

    def __init__(self, source_name: str, *, cause: BaseException | None = None, **kwargs: Any):
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Data source '{source_name}' failed{detail}", cause=cause, **kwargs)
        self.source_name = source_name
        self.context.source_name = source_name


# =============================================================================
# Template errors
# =============================================================================


class TemplateError(ReportGenError):
    """Template processing failure."""

    default_code = ErrorCode.TEMPLATE_PROCESSING_FAILED
    default_category = ErrorCategory.TEMPLATE


class InvalidTemplateError(TemplateError):
    """Null or empty template text."""

    default_code = ErrorCode.TEMPLATE_INVALID_FORMAT


class TemplateNotFoundError(TemplateError):
    """No template is stored for the report."""

    default_code = ErrorCode.TEMPLATE_NOT_FOUND

    def __init__(self, template_name: str, **kwargs: Any):
        super().__init__(f"Template not found: {template_name}", **kwargs)
        self.template_name = template_name
        self.context.template_name = template_name


# =============================================================================
# Report configuration / pipeline errors
# =============================================================================


class ReportNotFoundError(ReportGenError):
    """No report configuration exists for the requested name."""

    default_code = ErrorCode.DB_REPORT_NOT_FOUND
    default_category = ErrorCategory.CONFIG

    def __init__(self, report_name: str, **kwargs: Any):
        super().__init__(f"Report not found: {report_name}", **kwargs)
        self.report_name = report_name
        self.context.report_name = report_name


class ReportConfigError(ReportGenError):
    """The report configuration exists but cannot be used."""

    default_code = ErrorCode.DB_REPORT_CONFIG_INVALID
    default_category = ErrorCategory.CONFIG


class RenderBackendError(ReportGenError):
    """PDF or spreadsheet backend failure."""

    default_code = ErrorCode.PDF_GENERATION_FAILED
    default_category = ErrorCategory.OUTPUT


class ReportAbortedError(ReportGenError):
    """Arbitration decided the report cannot continue."""

    default_code = ErrorCode.REPORT_GENERATION_FAILED
    default_category = ErrorCategory.PIPELINE


class ReportGenerationError(ReportGenError):
    """Wraps an unexpected failure raised while generating a report."""

    default_code = ErrorCode.REPORT_GENERATION_FAILED
    default_category = ErrorCategory.PIPELINE


def error_code_of(exc: BaseException) -> ErrorCode:
    """Return the error code carried by ``exc`` or the generic failure code."""
    if isinstance(exc, ReportGenError):
        return exc.code
    return ErrorCode.REPORT_GENERATION_FAILED
