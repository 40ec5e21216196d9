"""PDF backend built on WeasyPrint."""

from __future__ import annotations

from pathlib import Path

from reportgen.core.errors import ErrorCode, RenderBackendError
from reportgen.framework.logging import get_logger

logger = get_logger(__name__)


class WeasyPrintPdfBackend:
    """
    Renders HTML to PDF with WeasyPrint.

    ``base_url`` resolves relative stylesheet and image links (normally the
    templates folder).
    """

    def __init__(self, base_url: str | Path | None = None):
        self.base_url = str(base_url) if base_url is not None else None

    def render_pdf(self, html: str, title: str) -> bytes:
        try:
            from weasyprint import HTML
        except ImportError as e:
            raise RenderBackendError(
                "weasyprint is required for PDF output. Install it with: pip install reportgen-core[pdf]",
                code=ErrorCode.PDF_GENERATION_FAILED,
                cause=e,
            ) from e
        try:
            payload = HTML(string=html, base_url=self.base_url).write_pdf()
        except Exception as e:
            raise RenderBackendError(
                f"HTML to PDF conversion failed for '{title}': {e}",
                code=ErrorCode.PDF_HTML_CONVERSION_FAILED,
                cause=e,
            ) from e
        logger.info("pdf.generated", title=title, size_kb=round(len(payload) / 1024, 1))
        return payload
