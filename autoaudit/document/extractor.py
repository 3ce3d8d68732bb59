"""
Per-format content extraction for uploaded files.

pdf        -> forwarded intact as an application/pdf blob
docx       -> HTML, then minified by the normalizer
xlsx / xls -> every sheet flattened to a pipe-delimited pseudo-markdown table
anything   -> decoded as text and truncated to MAX_TEXT_CHARS
"""
import io
import math
from typing import Optional

import pandas as pd

from autoaudit.config import config
from autoaudit.document.docx_html import convert_docx_to_html
from autoaudit.document.normalizer import normalize
from autoaudit.document.validator import validate_pdf
from autoaudit.errors import ExtractionError
from autoaudit.models.content import ExtractedContent, SourceFile

PDF_MIME_TYPE = "application/pdf"


def _format_cell(value) -> str:
    if value is None or value is pd.NaT:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value)


def flatten_workbook(data: bytes) -> str:
    """Render each sheet as '### SHEET: <name>' followed by '| a | b |' rows"""
    sheets = pd.read_excel(io.BytesIO(data), sheet_name=None, header=None, dtype=object)

    blocks = []
    for sheet_name, frame in sheets.items():
        frame = frame.dropna(how="all")
        if frame.empty:
            continue
        lines = [f"### SHEET: {sheet_name}"]
        for row in frame.itertuples(index=False):
            lines.append("| " + " | ".join(_format_cell(c) for c in row) + " |")
        blocks.append("\n".join(lines))

    return "\n\n".join(blocks).strip()


def _decode_text(data: bytes, filename: str, limit: int) -> str:
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ExtractionError(f"Không thể giải mã nội dung file '{filename}'.") from e
    return text[:limit]


def extract_content(file: SourceFile, max_chars: Optional[int] = None) -> ExtractedContent:
    """
    Extract one uploaded file into text or binary content.

    Raises ExtractionError when the file cannot be read or decoded; no partial
    output is returned.
    """
    extension = file.extension
    limit = max_chars or config.MAX_TEXT_CHARS
    print(f"Extracting {file.filename} ({extension or 'text'}, {len(file.content)} bytes)")

    if not file.content:
        raise ExtractionError(f"File '{file.filename}' rỗng hoặc không đọc được.")

    if extension == "pdf":
        validate_pdf(file.content, file.filename)
        return ExtractedContent(binary=file.content, mime_type=PDF_MIME_TYPE)

    if extension == "docx":
        try:
            html = convert_docx_to_html(file.content)
        except Exception as e:
            print(f"DOCX conversion failed for {file.filename}: {e}")
            raise ExtractionError(f"Không thể đọc file Word '{file.filename}'.") from e
        text = normalize(html)
        print(f"Normalized {file.filename}: {len(html)} -> {len(text)} chars")
        return ExtractedContent(text=text)

    if extension in ("xlsx", "xls"):
        try:
            text = flatten_workbook(file.content)
        except Exception as e:
            print(f"Workbook parsing failed for {file.filename}: {e}")
            raise ExtractionError(f"Không thể đọc file Excel '{file.filename}'.") from e
        return ExtractedContent(text=text)

    return ExtractedContent(text=_decode_text(file.content, file.filename, limit))
