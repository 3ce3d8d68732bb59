import uuid
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from autoaudit.document.validator import validate_upload
from autoaudit.errors import AnalysisInProgressError, AuditError
from autoaudit.models.content import SourceFile
from autoaudit.models.report import ReportDocument
from autoaudit.models.report_path import apply, apply_all
from autoaudit.services.analysis_service import AuditAnalyzer
from autoaudit.services.export_service import RenderExporter

MISSING_EXAM_MESSAGE = "Vui lòng tải lên ít nhất một file Đề thi."
NO_REPORT_MESSAGE = "Chưa có biên bản phản biện. Vui lòng phân tích đề thi trước."


class AuditStatus(str, Enum):
    IDLE = "IDLE"
    UPLOADING = "UPLOADING"
    ANALYZING = "ANALYZING"
    COMPLETED = "COMPLETED"


class AuditSession:
    """
    One user's workflow: attach files, analyze, edit the report, export it.

    Failures restore the previous state (files stay attached, an existing
    report is kept) and record exactly one user-facing message in `error`.
    """

    def __init__(self, analyzer: AuditAnalyzer, exporter: Optional[RenderExporter] = None):
        self.session_id = str(uuid.uuid4())
        self.analyzer = analyzer
        self.exporter = exporter or RenderExporter()
        self.status = AuditStatus.IDLE
        self.files: Dict[str, Optional[SourceFile]] = {"exam": None, "matrix": None}
        self.report: Optional[ReportDocument] = None
        self.editing = False
        self.error: Optional[str] = None

    def attach(self, kind: str, file: SourceFile):
        self.error = None
        previous = self.status
        self.status = AuditStatus.UPLOADING
        try:
            validate_upload(kind, file)
        except AuditError as e:
            self.error = e.user_message
            raise
        finally:
            self.status = previous
        self.files[kind] = file
        print(f"Attached {kind}: {file.filename} ({len(file.content)} bytes)")

    def detach(self, kind: str):
        if kind in self.files:
            self.files[kind] = None

    def _ensure_idle(self):
        if self.status is AuditStatus.ANALYZING:
            error = AnalysisInProgressError()
            self.error = error.user_message
            raise error

    async def start_analysis(self, refresh: Optional[bool] = None) -> Optional[ReportDocument]:
        """
        Analyze the attached files and keep the resulting report.

        A re-analysis (a report already exists) bypasses the report cache
        unless `refresh` says otherwise. Raises AnalysisInProgressError while
        another analysis of this session is running.
        """
        self._ensure_idle()
        exam = self.files.get("exam")
        if exam is None:
            self.error = MISSING_EXAM_MESSAGE
            return None

        try:
            self.analyzer.credentials.resolve()
        except AuditError as e:
            self.error = e.user_message
            raise

        if refresh is None:
            refresh = self.report is not None

        previous = self.status
        self.error = None
        self.status = AuditStatus.ANALYZING
        try:
            report = await self.analyzer.analyze(exam, self.files.get("matrix"), refresh=refresh)
        except AuditError as e:
            print(f"Analysis failed: {e.user_message}")
            self.error = e.user_message
            self.status = previous if previous is AuditStatus.COMPLETED and self.report else AuditStatus.IDLE
            raise

        self.report = report
        self.editing = False
        self.status = AuditStatus.COMPLETED
        return report

    def require_report(self) -> ReportDocument:
        if self.report is None:
            raise LookupError(NO_REPORT_MESSAGE)
        return self.report

    def apply_edit(self, path, value: Any) -> ReportDocument:
        self.report = apply(self.require_report(), path, value)
        return self.report

    def apply_edits(self, edits) -> ReportDocument:
        self.report = apply_all(self.require_report(), edits)
        return self.report

    def set_editing(self, editing: bool):
        self.require_report()
        self.editing = bool(editing)

    async def export(self, output_dir) -> Optional[Path]:
        report = self.require_report()
        try:
            return await self.exporter.export(report, Path(output_dir), editing=self.editing)
        except AuditError as e:
            self.error = e.user_message
            raise

    def reset(self):
        self._ensure_idle()
        self.files = {"exam": None, "matrix": None}
        self.report = None
        self.editing = False
        self.error = None
        self.status = AuditStatus.IDLE

    def summary(self) -> dict:
        return {
            "session_id": self.session_id,
            "status": self.status.value,
            "files": {kind: f.filename if f else None for kind, f in self.files.items()},
            "has_report": self.report is not None,
            "editing": self.editing,
            "exporting": self.exporter.busy,
            "error": self.error,
        }


# In-memory session registry
_sessions: Dict[str, AuditSession] = {}


def create_session(analyzer: AuditAnalyzer) -> AuditSession:
    session = AuditSession(analyzer)
    _sessions[session.session_id] = session
    return session


def get_session(session_id: str) -> Optional[AuditSession]:
    return _sessions.get(session_id)


def drop_session(session_id: str) -> bool:
    return _sessions.pop(session_id, None) is not None
