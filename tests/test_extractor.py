import pytest
from pydantic import ValidationError

from autoaudit.document.extractor import extract_content, flatten_workbook
from autoaudit.document.validator import validate_upload
from autoaudit.errors import ExtractionError, InvalidUploadError
from autoaudit.models.content import ExtractedContent, SourceFile


def test_pdf_is_forwarded_as_binary(exam_pdf):
    content = extract_content(exam_pdf)

    assert content.is_binary
    assert content.text is None
    assert content.binary == exam_pdf.content
    assert content.mime_type == "application/pdf"


def test_docx_becomes_normalized_html(make_docx):
    data = make_docx(
        paragraphs=["Câu 1. Tính giới hạn", "A. 0"],
        table=[["Đáp án", "Giải thích"], ["A", "Vì x tiến tới 0"]],
    )
    content = extract_content(SourceFile(filename="de.DOCX", content=data))

    assert not content.is_binary
    assert content.mime_type is None
    assert "<p><strong>Câu 1. Tính giới hạn</strong></p>" in content.text
    assert "<p>A. 0</p>" in content.text
    assert "<table><tr><td><p>Đáp án</p></td><td><p>Giải thích</p></td></tr>" in content.text
    assert "style=" not in content.text


def test_workbook_is_flattened_per_sheet(make_xlsx):
    data = make_xlsx({
        "Ma tran": [["Chủ đề", "NB", "TH"], ["Hàm số", 2, None], [None, None, None]],
        "Ghi chu": [["Tổng", 3.0, 1.5]],
    })

    text = flatten_workbook(data)

    assert text == (
        "### SHEET: Ma tran\n"
        "| Chủ đề | NB | TH |\n"
        "| Hàm số | 2 |  |\n"
        "\n"
        "### SHEET: Ghi chu\n"
        "| Tổng | 3 | 1.5 |"
    )


def test_workbook_extraction_is_text(matrix_xlsx):
    content = extract_content(matrix_xlsx)
    assert content.text.startswith("### SHEET: Ma tran\n| Chủ đề | NB | TH | VD | VDC |")
    assert content.binary is None


def test_xls_upload_goes_through_the_workbook_reader(matrix_xlsx):
    # pandas picks the reader from the file content, not the extension
    file = SourceFile(filename="MaTran.xls", content=matrix_xlsx.content)

    content = extract_content(file)

    assert not content.is_binary
    assert content.binary is None
    assert content.text.startswith("### SHEET: Ma tran\n")


def test_other_extensions_are_truncated_text():
    file = SourceFile(filename="notes.txt", content=("ab" * 50).encode("utf-8"))
    content = extract_content(file, max_chars=10)
    assert content.text == "ababababab"


def test_undecodable_text_is_an_extraction_error():
    with pytest.raises(ExtractionError):
        extract_content(SourceFile(filename="notes.txt", content=b"\xff\xfe\xfa"))


@pytest.mark.parametrize("filename", ["de.docx", "de.pdf", "mt.xlsx", "mt.xls"])
def test_corrupt_files_are_extraction_errors(filename):
    with pytest.raises(ExtractionError) as exc:
        extract_content(SourceFile(filename=filename, content=b"not really a document"))
    assert exc.value.user_message


def test_empty_file_is_an_extraction_error():
    with pytest.raises(ExtractionError):
        extract_content(SourceFile(filename="de.docx", content=b""))


def test_extracted_content_holds_exactly_one_payload():
    with pytest.raises(ValidationError):
        ExtractedContent(text="a", binary=b"b", mime_type="application/pdf")
    with pytest.raises(ValidationError):
        ExtractedContent()
    with pytest.raises(ValidationError):
        ExtractedContent(binary=b"%PDF")
    assert ExtractedContent(binary=b"%PDF", mimeType="application/pdf").is_binary


def test_upload_slots_check_extensions():
    validate_upload("exam", SourceFile(filename="a.PDF", content=b"x"))
    validate_upload("matrix", SourceFile(filename="m.xls", content=b"x"))

    with pytest.raises(InvalidUploadError):
        validate_upload("exam", SourceFile(filename="a.xlsx", content=b"x"))
    with pytest.raises(InvalidUploadError):
        validate_upload("matrix", SourceFile(filename="m.pdf", content=b"x"))
    with pytest.raises(InvalidUploadError):
        validate_upload("answers", SourceFile(filename="a.docx", content=b"x"))
    with pytest.raises(InvalidUploadError):
        validate_upload("exam", SourceFile(filename="a.docx", content=b""))
