"""
DOCX to HTML conversion.

Walks the document body in order and emits paragraphs, tables and run-level
emphasis as HTML. Images are emitted as bare <img> placeholders; the
normalizer removes them along with everything else the analysis does not use.
"""
import io
import html
from typing import List

from docx import Document
from docx.oxml.ns import qn
from docx.table import Table
from docx.text.paragraph import Paragraph
from docx.text.hyperlink import Hyperlink


def _run_html(run) -> str:
    parts = []
    if run._element.xpath(".//w:drawing") or run._element.xpath(".//w:pict"):
        parts.append('<img alt="" />')

    text = run.text
    if text:
        text = html.escape(text, quote=False).replace("\n", "<br />")
        font = run.font
        if font.superscript:
            text = f"<sup>{text}</sup>"
        elif font.subscript:
            text = f"<sub>{text}</sub>"
        if run.underline:
            text = f"<u>{text}</u>"
        if run.italic:
            text = f"<i>{text}</i>"
        if run.bold:
            text = f"<strong>{text}</strong>"
        parts.append(text)

    return "".join(parts)


def _paragraph_html(paragraph: Paragraph) -> str:
    inner = []
    for item in paragraph.iter_inner_content():
        if isinstance(item, Hyperlink):
            runs = "".join(_run_html(r) for r in item.runs)
            inner.append(f'<a href="{html.escape(item.address or "")}">{runs}</a>')
        else:
            inner.append(_run_html(item))

    tag = "p"
    style_name = paragraph.style.name if paragraph.style is not None else ""
    if style_name.startswith("Heading"):
        level = style_name.replace("Heading", "").strip()
        tag = f"h{level}" if level.isdigit() and 1 <= int(level) <= 6 else "p"

    return f"<{tag}>{''.join(inner)}</{tag}>"


def _table_html(table: Table) -> str:
    rows = []
    for row in table.rows:
        cells = []
        seen = []
        for cell in row.cells:
            # Merged cells repeat the same underlying element
            if any(cell._tc is tc for tc in seen):
                continue
            seen.append(cell._tc)
            cells.append(f"<td>{_blocks_html(cell._tc, cell)}</td>")
        rows.append(f"<tr>{''.join(cells)}</tr>")
    return f"<table>{''.join(rows)}</table>"


def _blocks_html(container, parent) -> str:
    blocks: List[str] = []
    for child in container.iterchildren():
        if child.tag == qn("w:p"):
            blocks.append(_paragraph_html(Paragraph(child, parent)))
        elif child.tag == qn("w:tbl"):
            blocks.append(_table_html(Table(child, parent)))
    return "".join(blocks)


def convert_docx_to_html(data: bytes) -> str:
    """Convert DOCX bytes to an HTML fragment"""
    document = Document(io.BytesIO(data))
    return _blocks_html(document.element.body, document)
