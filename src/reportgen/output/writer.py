"""Writes report payloads to the output folder."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from reportgen.core.errors import ErrorCode, ReportGenError
from reportgen.framework.logging import get_logger
from reportgen.output.protocol import OutputFormat
from reportgen.pipeline import ReportOutcome
from reportgen.rendering.store import safe_file_name

logger = get_logger(__name__)

MARKER_SUFFIX = ".opdialog"


class ReportOutputWriter:
    """
    Saves ``{report}_{YYYYmmdd_HHMMSS}.{pdf|xlsx}`` plus an empty
    ``.opdialog`` marker that tells the desktop client to open the file.
    """

    def __init__(self, folder: str | Path, *, clock: Callable[[], datetime] = datetime.now, marker: bool = True):
        self.folder = Path(folder)
        self.clock = clock
        self.marker = marker

    def file_name(self, report_name: str, output_format: OutputFormat) -> str:
        return f"{safe_file_name(report_name)}_{self.clock():%Y%m%d_%H%M%S}.{output_format.extension}"

    def save(self, report_name: str, output_format: OutputFormat, payload: bytes) -> Path:
        try:
            self.folder.mkdir(parents=True, exist_ok=True)
            path = self.folder / self.file_name(report_name, output_format)
            path.write_bytes(payload)
            if self.marker:
                path.with_name(path.name + MARKER_SUFFIX).touch()
        except OSError as e:
            raise ReportGenError(
                f"Failed to save report '{report_name}': {e}", code=ErrorCode.REPORT_SAVE_FAILED, cause=e
            ) from e
        logger.info("report.saved", report=report_name, path=str(path), size_kb=round(len(payload) / 1024, 1))
        return path

    def save_outcome(self, outcome: ReportOutcome) -> Path:
        """Save a successful outcome's payload; failed outcomes re-raise their error."""
        outcome.raise_for_status()
        return self.save(outcome.report_name, outcome.output_format, outcome.payload)
