"""
reportgen: report assembly pipeline.

Gathers tabular results from named data sources, enriches caller parameters
with descriptive values, renders an HTML template and hands the result to a
PDF or spreadsheet backend.

Quick start:
    from reportgen import ReportPipeline, ParameterRequest, ParamType

    request = ParameterRequest.builder().add("mnt", 275, ParamType.INT32).build()
    outcome = pipeline.generate("monthly_charges", "pdf", request)
"""

from reportgen.core.errors import ErrorCode, ReportGenError
from reportgen.core.params import ParameterMap, ParameterRequest, ParamType
from reportgen.core.tables import ABSENT, NamedTable, ResultSet
from reportgen.framework.arbitration import ErrorArbiter, ErrorSeverity
from reportgen.output.protocol import OutputFormat
from reportgen.pipeline import ReportOutcome, ReportPipeline

__version__ = "0.1.0"

__all__ = [
    "ABSENT",
    "ErrorArbiter",
    "ErrorCode",
    "ErrorSeverity",
    "NamedTable",
    "OutputFormat",
    "ParamType",
    "ParameterMap",
    "ParameterRequest",
    "ReportGenError",
    "ReportOutcome",
    "ReportPipeline",
    "ResultSet",
]
