import copy
import io
import json
from types import SimpleNamespace

import pandas as pd
import pymupdf as fitz
import pytest
from docx import Document

from autoaudit.config import CredentialStore
from autoaudit.models.content import SourceFile
from autoaudit.models.report import ReportDocument


def review_item(no: int, answer: str = "B") -> dict:
    return {
        "questionNo": f"Câu {no}",
        "questionReview": f"Câu hỏi số {no} về hàm số",
        "observation": "Đạt yêu cầu",
        "suggestion": "Giữ nguyên",
        "answer": answer,
        "explanation": f"Tính đạo hàm $f'(x) = 2x$ rồi xét dấu, suy ra đáp án {answer}.",
    }


def make_payload(with_matrix: bool = True, total: int = 4) -> dict:
    """A report payload that passes every consistency check"""
    actual = {"nb": total - 2, "th": 1, "vd": 1, "vdc": 0}
    payload = {
        "subject": "Toán",
        "examCode": "101",
        "grade": "12",
        "semester": "Học kỳ I",
        "totalQuestions": total,
        "reportId": "PB-001",
        "auditorName": "",
        "auditDate": "16/10/2026",
        "isAIGeneratedMatrix": not with_matrix,
        "overview": {
            "scientific": "Nội dung chính xác.",
            "pedagogical": "Phù hợp chương trình.",
            "accuracy": "Đáp án đúng.",
            "matrixAlignment": "Bám sát ma trận.",
        },
        "detailedReviews": {
            "part1": [review_item(i) for i in range(1, total - 1)],
            "part2": [review_item(total - 1, "Đ-S-Đ-S")],
            "part3": [review_item(total, "2,5")],
        },
        "stats": {"matrix": dict(actual), "actual": dict(actual)},
        "warnings": [{"type": "warning", "message": "Câu 2 có phương án nhiễu yếu.", "questionId": "Câu 2"}],
    }
    if not with_matrix:
        payload["overview"]["improvementSuggestions"] = "Bổ sung câu hỏi vận dụng cao."
    return payload


@pytest.fixture
def payload_factory():
    return lambda **kwargs: copy.deepcopy(make_payload(**kwargs))


@pytest.fixture
def report():
    return ReportDocument.model_validate(make_payload())


@pytest.fixture
def credentials(tmp_path):
    return CredentialStore(str(tmp_path / "settings.json"), default_key="test-key")


class FakeGenerate:
    """Stands in for the Gemini call; records every request it receives"""

    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.calls = []

    def __call__(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return SimpleNamespace(text=self.text)

    @classmethod
    def returning(cls, payload: dict):
        return cls(text=json.dumps(payload, ensure_ascii=False))


@pytest.fixture
def fake_generate():
    return FakeGenerate


def docx_bytes(paragraphs=None, table=None) -> bytes:
    document = Document()
    for text in paragraphs or ["Câu 1. Cho hàm số y = x^2. Chọn khẳng định đúng."]:
        paragraph = document.add_paragraph()
        paragraph.add_run(text).bold = text.startswith("Câu")
    if table:
        grid = document.add_table(rows=len(table), cols=len(table[0]))
        for r, row in enumerate(table):
            for c, value in enumerate(row):
                grid.cell(r, c).text = value
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def xlsx_bytes(sheets: dict) -> bytes:
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        for name, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=name, header=False, index=False)
    return buffer.getvalue()


def pdf_bytes(text: str = "Cau 1. Tinh dao ham.") -> bytes:
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def exam_docx():
    return SourceFile(filename="DeThi.docx", content=docx_bytes())


@pytest.fixture
def exam_pdf():
    return SourceFile(filename="DeThi.pdf", content=pdf_bytes())


@pytest.fixture
def matrix_xlsx():
    rows = [["Chủ đề", "NB", "TH", "VD", "VDC"], ["Hàm số", 2, 1, 1, None]]
    return SourceFile(filename="MaTran.xlsx", content=xlsx_bytes({"Ma tran": rows}))


@pytest.fixture
def make_docx():
    return docx_bytes


@pytest.fixture
def make_xlsx():
    return xlsx_bytes


@pytest.fixture
def make_pdf():
    return pdf_bytes
