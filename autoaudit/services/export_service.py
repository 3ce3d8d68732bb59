"""
Render-and-snapshot export of a report to a paginated PDF.

Sequence, each step gated on the previous one:
  1. typeset math in the rendered report (skipped in edit mode)
  2. wait the settle delay
  3. snapshot the rendered report into an image-based A4 PDF

Only one export runs at a time; a request that arrives while one is in flight
is ignored. The output file is written only after every step succeeded.
"""
import io
import os
import asyncio
import tempfile
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol

import pymupdf as fitz

from autoaudit.config import config
from autoaudit.errors import ExportError
from autoaudit.models.report import ReportDocument
from autoaudit.services.report_renderer import REPORT_CSS, export_filename, render_report_html
from autoaudit.services.typesetter import MathTypesetter

SETTLE_DELAY = config.EXPORT_SETTLE_DELAY
SNAPSHOT_SCALE = config.EXPORT_SCALE
PAGE_FORMAT = "a4"
JPEG_QUALITY = 98


class ExportState(str, Enum):
    IDLE = "IDLE"
    EXPORTING = "EXPORTING"
    FAILED = "FAILED"
    DONE = "DONE"


class Typesetter(Protocol):
    async def typeset(self, markup: str) -> str: ...


class Snapshotter(Protocol):
    def snapshot(self, markup: str) -> bytes: ...


class PdfSnapshotter:
    """Lays HTML out on A4 pages, then rasterizes each page into a new PDF"""

    def __init__(self, scale: float = SNAPSHOT_SCALE, page_format: str = PAGE_FORMAT):
        self.scale = scale
        self.page_format = page_format

    def _layout(self, markup: str, rect) -> bytes:
        buffer = io.BytesIO()
        writer = fitz.DocumentWriter(buffer)
        story = fitz.Story(html=markup, user_css=REPORT_CSS)
        more = 1
        while more:
            device = writer.begin_page(rect)
            more, _ = story.place(rect)
            story.draw(device)
            writer.end_page()
        writer.close()
        return buffer.getvalue()

    def snapshot(self, markup: str) -> bytes:
        rect = fitz.paper_rect(self.page_format)
        rendered = fitz.open("pdf", self._layout(markup, rect))
        output = fitz.open()
        matrix = fitz.Matrix(self.scale, self.scale)
        try:
            for page in rendered:
                pix = page.get_pixmap(matrix=matrix, alpha=False)
                image = pix.tobytes("jpeg", jpg_quality=JPEG_QUALITY)
                new_page = output.new_page(width=rect.width, height=rect.height)
                new_page.insert_image(new_page.rect, stream=image)
            return output.tobytes(garbage=3, deflate=True)
        finally:
            output.close()
            rendered.close()


def _write_atomic(path: Path, data: bytes):
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(prefix=".export_", suffix=".pdf", dir=str(path.parent))
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


class RenderExporter:
    def __init__(
        self,
        typesetter: Optional[Typesetter] = None,
        snapshotter: Optional[Snapshotter] = None,
        settle_delay: float = SETTLE_DELAY,
    ):
        self.typesetter = typesetter or MathTypesetter()
        self.snapshotter = snapshotter or PdfSnapshotter()
        self.settle_delay = settle_delay
        self.state = ExportState.IDLE
        self.last_outcome: Optional[ExportState] = None

    @property
    def busy(self) -> bool:
        return self.state is ExportState.EXPORTING

    async def export(self, report: ReportDocument, output_dir, editing: bool = False) -> Optional[Path]:
        """
        Export the report and return the written path.

        Returns None without doing anything while another export is in flight.
        Raises ExportError if any step fails; nothing is written in that case.
        """
        if self.busy:
            print("Export already in progress, ignoring request")
            return None
        self.state = ExportState.EXPORTING

        try:
            markup = render_report_html(report, editing=editing)
            if not editing:
                markup = await self.typesetter.typeset(markup)
            await asyncio.sleep(self.settle_delay)
            data = await asyncio.to_thread(self.snapshotter.snapshot, markup)
            if not data:
                raise ValueError("snapshot produced no output")

            path = Path(output_dir) / export_filename(report)
            await asyncio.to_thread(_write_atomic, path, data)
        except Exception as e:
            print(f"Export failed: {e}")
            self.state = ExportState.FAILED
            raise ExportError() from e
        else:
            self.state = ExportState.DONE
            print(f"Exported report to {path}")
            return path
        finally:
            self.last_outcome = self.state
            self.state = ExportState.IDLE
