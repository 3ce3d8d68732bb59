import re
from pathlib import Path
from jinja2 import Environment, FileSystemLoader, select_autoescape

from autoaudit.models.report import ReportDocument

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

PARTITION_TITLES = {
    "part1": "Phần I: Câu hỏi trắc nghiệm (Chọn 1 đáp án đúng)",
    "part2": "Phần II: Câu hỏi trắc nghiệm Đúng/Sai",
    "part3": "Phần III: Câu hỏi trắc nghiệm trả lời ngắn",
}

# Inner padding of the A4 sheet; the snapshot itself is placed with zero margin
REPORT_CSS = """
body { font-family: serif; font-size: 11pt; color: #000; }
.a4-container { padding: 15mm 12mm; }
h1 { font-size: 15pt; text-align: center; margin: 8pt 0 4pt 0; }
h2 { font-size: 11pt; margin: 10pt 0 4pt 0; }
p { margin: 2pt 0; }
.center { text-align: center; }
.meta { font-style: italic; }
table { width: 100%; border-collapse: collapse; margin: 4pt 0; }
table.stats td, table.stats th, table.review td, table.review th { border: 0.5pt solid #000; padding: 2pt 3pt; }
table.stats td { text-align: center; }
table.review td { font-size: 9pt; vertical-align: top; }
tr.head { background-color: #f1f5f9; font-weight: bold; }
.col-no { width: 5%; text-align: center; }
.col-content { width: 12%; }
.col-observation { width: 13%; }
.col-answer { width: 58%; }
.col-suggestion { width: 12%; color: #64748b; }
.answer { color: #1e40af; }
.empty { text-align: center; font-style: italic; }
.part-title { color: #1e3a8a; margin-top: 8pt; }
.letterhead td, .signatures td { border: none; font-size: 9pt; }
.signatures { margin-top: 24pt; }
.editable { background-color: #fefce8; }
.math-block { display: block; text-align: center; margin: 3pt 0; }
"""

QUESTION_PREFIX = re.compile(r"^\s*Câu\s+", re.IGNORECASE)


def question_label(value: str) -> str:
    """'Câu 12' -> '12'"""
    return QUESTION_PREFIX.sub("", value or "")


_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)
_env.filters["question_label"] = question_label


def render_report_html(report: ReportDocument, editing: bool = False) -> str:
    """
    Render the printable A4 report.

    With editing=True every editable leaf is wrapped in a span carrying its
    report path in data-path, and math stays as raw source.
    """
    partitions = [
        (name, PARTITION_TITLES[name], items)
        for name, items in report.detailed_reviews.partitions()
    ]
    template = _env.get_template("report.html")
    return template.render(
        report=report,
        editing=editing,
        partitions=partitions,
        css=REPORT_CSS,
    )


def export_filename(report: ReportDocument) -> str:
    subject = (report.subject or "").strip() or "DeThi"
    subject = re.sub(r"[\\/:*?\"<>|]+", "_", subject)
    return f"PhanBien_{subject}.pdf"
