import io
import PyPDF2
from typing import Optional

from autoaudit.errors import ExtractionError, InvalidUploadError
from autoaudit.models.content import SourceFile

EXAM_EXTENSIONS = ("docx", "pdf")
MATRIX_EXTENSIONS = ("docx", "xlsx", "xls")

ACCEPTED_EXTENSIONS = {
    "exam": EXAM_EXTENSIONS,
    "matrix": MATRIX_EXTENSIONS,
}


def validate_upload(kind: str, file: SourceFile):
    """Check an upload slot accepts the file's extension"""
    accepted = ACCEPTED_EXTENSIONS.get(kind)
    if accepted is None:
        raise InvalidUploadError(f"Loại file không hợp lệ: {kind}")
    if file.extension not in accepted:
        names = ", ".join(f".{ext}" for ext in accepted)
        raise InvalidUploadError(f"File '{file.filename}' không đúng định dạng. Chấp nhận: {names}")
    if not file.content:
        raise InvalidUploadError(f"File '{file.filename}' rỗng.")


def validate_pdf(data: bytes, filename: str = "document.pdf") -> Optional[int]:
    """
    Validate PDF bytes and return page count
    Raises ExtractionError if the file is corrupted
    """
    try:
        pdf_reader = PyPDF2.PdfReader(io.BytesIO(data))
        page_count = len(pdf_reader.pages)

        # Try reading first page to ensure it's not corrupted
        if page_count > 0:
            _ = pdf_reader.pages[0].extract_text()

        print(f"Valid PDF: {filename} ({page_count} pages)")
        return page_count

    except Exception as e:
        print(f"PDF validation failed for {filename}: {e}")
        raise ExtractionError(f"Không thể đọc file PDF '{filename}'.") from e
