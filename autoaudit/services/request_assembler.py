"""
Build the analysis request and parse the structured response.

The request is one multi-part message: the instruction block, the exam part
and the matrix part (or a sentinel text when no matrix was uploaded). The
response must be a single JSON payload matching the report schema.
"""
import json
from dataclasses import dataclass
from typing import List, Optional

from google.genai import types
from pydantic import ValidationError

from autoaudit.errors import AssemblyError
from autoaudit.models.content import ExtractedContent
from autoaudit.models.report import LevelStats, ReportDocument, TIERS

EXAM_HEADER = "--- NỘI DUNG ĐỀ THI ---"
MATRIX_HEADER = "--- DỮ LIỆU MA TRẬN ---"
NO_MATRIX_SENTINEL = "KHÔNG CÓ MA TRẬN ĐÍNH KÈM"

# Standard tier proportions (percent) used when the matrix has to be synthesized
TIER_GUIDELINE = {"nb": 40, "th": 30, "vd": 20, "vdc": 10}

BASE_INSTRUCTIONS = """
BỐI CẢNH: Bạn là Chuyên gia Khảo thí THPT Việt Nam, phản biện đề thi và đáp án.
NHIỆM VỤ: Phân tích Đề thi (và Ma trận nếu có), trả về DUY NHẤT một đối tượng JSON đúng schema.

QUY TẮC BẮT BUỘC (KHÔNG ĐƯỢC VI PHẠM):
1. Tách bạch mục đích từng trường của mỗi câu hỏi trong detailedReviews:
   - "answer": CHỈ ghi đáp án đúng cuối cùng (ví dụ "B", "Đ-S-Đ-S", "2,5"). Không để trống, không ghi "đang cập nhật" hay ký tự giữ chỗ.
   - "explanation": CHỈ ghi lời giải chi tiết, đầy đủ các bước dẫn tới đáp án.
   - "observation": CHỈ ghi lỗi của câu hỏi (khoa học, ngôn ngữ, phương án nhiễu, mức độ). Nếu không có lỗi, ghi "Đạt yêu cầu".
   - "suggestion": CHỈ ghi đề xuất chỉnh sửa câu hỏi. Tuyệt đối không ghi lời giải.
   Không được chép nội dung lỗi/đề xuất vào answer/explanation và ngược lại.
2. Phân loại câu hỏi theo phần: part1 = trắc nghiệm nhiều phương án (chọn 1 đáp án đúng),
   part2 = trắc nghiệm Đúng/Sai, part3 = trả lời ngắn.
3. Mức độ nhận thức: nb (Nhận biết), th (Thông hiểu), vd (Vận dụng), vdc (Vận dụng cao).
   stats.actual là số câu thực tế theo từng mức; tổng của stats.actual PHẢI bằng totalQuestions.
4. Nếu đề thi chưa có đáp án: tự giải và cung cấp đáp án, lời giải cho mọi câu.
   Nếu đề thi đã có đáp án: kiểm tra lại từng đáp án, ghi lỗi vào observation nếu đáp án sai.
5. Công thức toán: dùng $...$ cho công thức trong dòng và $$...$$ cho công thức hiển thị riêng dòng.
   Mọi dấu gạch chéo ngược trong chuỗi JSON phải được escape (viết \\\\frac thay vì \\frac) để JSON hợp lệ.
6. warnings: liệt kê các phát hiện quan trọng với type là "error", "warning" hoặc "info", kèm questionId nếu gắn với một câu.
"""

NO_MATRIX_RULES = """
CHẾ ĐỘ: KHÔNG CÓ MA TRẬN ĐÍNH KÈM.
- Tự xác định mức độ nhận thức của từng câu hỏi.
- Tự xây dựng ma trận chuẩn lý tưởng theo tỷ lệ định hướng NB {nb}% - TH {th}% - VD {vd}% - VDC {vdc}% trên tổng số câu, ghi vào stats.matrix.
- Đặt isAIGeneratedMatrix = true.
- Bắt buộc viết overview.improvementSuggestions: các đề xuất cải thiện đề thi để tiệm cận ma trận chuẩn.
- overview.matrixAlignment nhận xét độ lệch giữa phân bố thực tế và ma trận chuẩn vừa xây dựng.
"""

MATRIX_RULES = """
CHẾ ĐỘ: CÓ MA TRẬN ĐÍNH KÈM.
- Đối chiếu từng câu hỏi với ma trận: chủ đề, mức độ, số lượng.
- stats.matrix lấy đúng số câu theo từng mức độ của ma trận đính kèm; tổng phải bằng totalQuestions.
- Đặt isAIGeneratedMatrix = false.
- overview.matrixAlignment nêu rõ các điểm lệch giữa đề thi và ma trận.
"""


def build_instruction(has_matrix: bool) -> str:
    mode = MATRIX_RULES if has_matrix else NO_MATRIX_RULES.format(**TIER_GUIDELINE)
    return (BASE_INSTRUCTIONS + mode).strip()


def _string(**kwargs) -> types.Schema:
    return types.Schema(type=types.Type.STRING, **kwargs)


def _object(properties: dict, required: List[str]) -> types.Schema:
    return types.Schema(type=types.Type.OBJECT, properties=properties, required=required)


def _level_stat_schema() -> types.Schema:
    return _object({tier: types.Schema(type=types.Type.INTEGER) for tier in TIERS}, list(TIERS))


def _review_item_schema() -> types.Schema:
    fields = ["questionNo", "questionReview", "observation", "suggestion", "answer", "explanation"]
    return _object({name: _string() for name in fields}, fields)


def build_response_schema() -> types.Schema:
    """Schema of the JSON payload the analysis service must return"""
    review_list = types.Schema(type=types.Type.ARRAY, items=_review_item_schema())
    warning = _object(
        {
            "type": _string(enum=["error", "warning", "info"]),
            "message": _string(),
            "questionId": _string(),
        },
        ["type", "message"],
    )
    return _object(
        {
            "subject": _string(),
            "examCode": _string(),
            "grade": _string(),
            "semester": _string(),
            "totalQuestions": types.Schema(type=types.Type.INTEGER),
            "reportId": _string(),
            "auditorName": _string(),
            "auditDate": _string(),
            "isAIGeneratedMatrix": types.Schema(type=types.Type.BOOLEAN),
            "overview": _object(
                {
                    "scientific": _string(),
                    "pedagogical": _string(),
                    "accuracy": _string(),
                    "matrixAlignment": _string(),
                    "improvementSuggestions": _string(),
                },
                ["scientific", "pedagogical", "accuracy", "matrixAlignment"],
            ),
            "detailedReviews": _object(
                {"part1": review_list, "part2": review_list, "part3": review_list},
                ["part1", "part2", "part3"],
            ),
            "stats": _object({"matrix": _level_stat_schema(), "actual": _level_stat_schema()}, ["matrix", "actual"]),
            "warnings": types.Schema(type=types.Type.ARRAY, items=warning),
        },
        [
            "subject", "examCode", "grade", "semester", "totalQuestions", "reportId",
            "auditDate", "isAIGeneratedMatrix", "overview", "detailedReviews", "stats", "warnings",
        ],
    )


def content_part(content: ExtractedContent, header: str) -> types.Part:
    if content.is_binary:
        return types.Part.from_bytes(data=content.binary, mime_type=content.mime_type)
    return types.Part.from_text(text=f"{header}\n{content.text}")


@dataclass
class AnalysisRequest:
    contents: List[types.Part]
    config: types.GenerateContentConfig
    has_matrix: bool


def build_request(exam: ExtractedContent, matrix: Optional[ExtractedContent]) -> AnalysisRequest:
    has_matrix = matrix is not None
    matrix_part = content_part(matrix, MATRIX_HEADER) if has_matrix else types.Part.from_text(text=NO_MATRIX_SENTINEL)
    return AnalysisRequest(
        contents=[
            types.Part.from_text(text=build_instruction(has_matrix)),
            content_part(exam, EXAM_HEADER),
            matrix_part,
        ],
        config=types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=build_response_schema(),
        ),
        has_matrix=has_matrix,
    )


def _strip_fence(text: str) -> str:
    if "```json" in text:
        return text.split("```json")[1].split("```")[0]
    if text.startswith("```"):
        return text.split("```")[1].split("```")[0]
    return text


def _check_tier_totals(report: ReportDocument):
    mismatch = report.tier_mismatch()
    if mismatch:
        raise AssemblyError(f"Phản hồi của AI không nhất quán: {mismatch}.")


def _check_mode(report: ReportDocument, has_matrix: bool):
    if report.is_ai_generated_matrix == has_matrix:
        raise AssemblyError("Phản hồi của AI không khớp chế độ phân tích ma trận.")
    if not has_matrix and not (report.overview.improvement_suggestions or "").strip():
        raise AssemblyError("Phản hồi của AI thiếu đề xuất cải thiện đề thi.")


def build_report(payload: dict, has_matrix: Optional[bool] = None) -> ReportDocument:
    """Validate a decoded payload into a ReportDocument"""
    backfilled = payload.get("stats") is None
    if backfilled:
        payload = {**payload, "stats": LevelStats.zero().model_dump()}

    try:
        report = ReportDocument.model_validate(payload)
    except ValidationError as e:
        print(f"Report payload failed validation: {e}")
        raise AssemblyError(f"Phản hồi của AI không khớp cấu trúc báo cáo ({e.error_count()} lỗi).") from e

    if not backfilled:
        _check_tier_totals(report)
    if has_matrix is not None:
        _check_mode(report, has_matrix)
    return report


def parse_report(raw: Optional[str], has_matrix: Optional[bool] = None) -> ReportDocument:
    """
    Parse the service response into a ReportDocument.

    Raises AssemblyError for an empty response, invalid JSON or a payload that
    does not match the report shape. Nothing is synthesized on failure.
    """
    if not raw or not raw.strip():
        raise AssemblyError("AI không phản hồi.")

    json_str = _strip_fence(raw.strip())
    try:
        payload = json.loads(json_str)
    except json.JSONDecodeError as e:
        print(f"Failed to parse JSON report: {e}")
        print(f"Gemini response (first 500 chars): {raw[:500]}")
        raise AssemblyError("Phản hồi của AI không đúng định dạng JSON.") from e

    if not isinstance(payload, dict):
        raise AssemblyError("Phản hồi của AI không đúng định dạng báo cáo.")
    return build_report(payload, has_matrix)
