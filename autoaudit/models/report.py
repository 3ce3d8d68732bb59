from typing import Annotated, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, StringConstraints

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
TierCount = Annotated[int, Field(ge=0)]

TIERS = ("nb", "th", "vd", "vdc")
PARTITIONS = ("part1", "part2", "part3")


class ReportModel(BaseModel):
    # Edits go through attribute assignment, so every assignment is validated
    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)


class ReviewItem(ReportModel):
    question_no: str = Field(alias="questionNo")
    question_review: str = Field(alias="questionReview")
    observation: str
    suggestion: str
    answer: NonEmptyStr
    explanation: NonEmptyStr


class LevelStat(ReportModel):
    nb: TierCount = 0
    th: TierCount = 0
    vd: TierCount = 0
    vdc: TierCount = 0

    @property
    def total(self) -> int:
        return self.nb + self.th + self.vd + self.vdc


class LevelStats(ReportModel):
    matrix: LevelStat
    actual: LevelStat

    @classmethod
    def zero(cls) -> "LevelStats":
        return cls(matrix=LevelStat(), actual=LevelStat())

    @property
    def is_zero(self) -> bool:
        return self.matrix.total == 0 and self.actual.total == 0


class Overview(ReportModel):
    scientific: str
    pedagogical: str
    accuracy: str
    matrix_alignment: str = Field(alias="matrixAlignment")
    improvement_suggestions: Optional[str] = Field(None, alias="improvementSuggestions")


class DetailedReviews(ReportModel):
    part1: List[ReviewItem] = Field(default_factory=list)
    part2: List[ReviewItem] = Field(default_factory=list)
    part3: List[ReviewItem] = Field(default_factory=list)

    def partitions(self):
        return [(name, getattr(self, name)) for name in PARTITIONS]


class ReportWarning(ReportModel):
    severity: Literal["error", "warning", "info"] = Field(alias="type")
    message: str
    question_id: Optional[str] = Field(None, alias="questionId")


class ReportDocument(ReportModel):
    """Structured critique returned by the analysis service"""
    subject: str
    exam_code: str = Field(alias="examCode")
    grade: str
    semester: str
    total_questions: TierCount = Field(alias="totalQuestions")
    report_id: str = Field(alias="reportId")
    auditor_name: str = Field("", alias="auditorName")
    audit_date: str = Field(alias="auditDate")
    is_ai_generated_matrix: bool = Field(alias="isAIGeneratedMatrix")
    overview: Overview
    detailed_reviews: DetailedReviews = Field(alias="detailedReviews")
    stats: LevelStats
    warnings: List[ReportWarning] = Field(default_factory=list)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")

    def tier_mismatch(self) -> Optional[str]:
        """Describe the first tier-count total that disagrees with totalQuestions"""
        actual = self.stats.actual.total
        if actual != self.total_questions:
            return f"tổng số câu theo mức độ ({actual}) khác tổng số câu ({self.total_questions})"
        matrix = self.stats.matrix.total
        if not self.is_ai_generated_matrix and matrix != self.total_questions:
            return f"tổng số câu của ma trận ({matrix}) khác tổng số câu ({self.total_questions})"
        return None

    def review_items(self):
        for name, items in self.detailed_reviews.partitions():
            for idx, item in enumerate(items):
                yield name, idx, item
