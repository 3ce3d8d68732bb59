import os
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import FileResponse, HTMLResponse
from pydantic import BaseModel

from autoaudit.api.dependencies import get_analyzer, require_session
from autoaudit.config import config
from autoaudit.errors import (
    AnalysisInProgressError, AssemblyError, AuditError, ConfigurationError, ExportError, ExtractionError,
    InvalidEditError, InvalidUploadError, PathResolutionError,
)
from autoaudit.models.content import SourceFile
from autoaudit.pipelines.audit_session import AuditSession, create_session, drop_session
from autoaudit.services.analysis_service import AuditAnalyzer
from autoaudit.services.report_renderer import render_report_html

router = APIRouter()

STATUS_CODES = {
    InvalidUploadError: 400,
    ConfigurationError: 412,
    ExtractionError: 422,
    AssemblyError: 502,
    ExportError: 500,
    AnalysisInProgressError: 409,
}

class SessionResponse(BaseModel):
    session_id: str
    status: str
    files: Dict[str, Optional[str]]
    has_report: bool
    editing: bool
    exporting: bool
    error: Optional[str] = None

class EditItem(BaseModel):
    path: str
    value: Any

class EditRequest(BaseModel):
    path: Optional[str] = None
    value: Any = None
    edits: List[EditItem] = []

class EditingRequest(BaseModel):
    editing: bool

def _http_error(error: AuditError) -> HTTPException:
    status_code = next((code for kind, code in STATUS_CODES.items() if isinstance(error, kind)), 500)
    return HTTPException(status_code=status_code, detail=error.user_message)

@router.post("/sessions", response_model=SessionResponse)
async def open_session(analyzer: AuditAnalyzer = Depends(get_analyzer)):
    """Start a new audit session"""
    session = create_session(analyzer)
    return session.summary()

@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def session_status(session: AuditSession = Depends(require_session)):
    return session.summary()

@router.post("/sessions/{session_id}/files/{kind}", response_model=SessionResponse)
async def upload_file(kind: str, file: UploadFile = File(...), session: AuditSession = Depends(require_session)):
    """Attach the exam (docx/pdf) or matrix (docx/xlsx/xls) file"""
    content = await file.read()
    try:
        session.attach(kind, SourceFile(filename=file.filename or kind, content=content))
    except AuditError as e:
        raise _http_error(e)
    return session.summary()

@router.delete("/sessions/{session_id}/files/{kind}", response_model=SessionResponse)
async def remove_file(kind: str, session: AuditSession = Depends(require_session)):
    session.detach(kind)
    return session.summary()

@router.post("/sessions/{session_id}/analyze")
async def analyze(refresh: Optional[bool] = None, session: AuditSession = Depends(require_session)):
    """
    Run the analysis on the attached files.
    The model round-trip can take tens of seconds; no timeout is applied.
    A repeated analysis skips the report cache unless refresh=false is passed.
    """
    try:
        report = await session.start_analysis(refresh=refresh)
    except AuditError as e:
        raise _http_error(e)
    if report is None:
        raise HTTPException(status_code=400, detail=session.error)
    return report.to_wire()

@router.get("/sessions/{session_id}/report")
async def get_report(session: AuditSession = Depends(require_session)):
    if session.report is None:
        raise HTTPException(status_code=404, detail="Chưa có biên bản phản biện.")
    return session.report.to_wire()

@router.patch("/sessions/{session_id}/report")
async def edit_report(request: EditRequest, session: AuditSession = Depends(require_session)):
    """
    Replace one leaf of the report, addressed by its dotted path, or apply a
    list of edits at once (needed to move a question between tiers).
    """
    if not request.edits and not request.path:
        raise HTTPException(status_code=400, detail="Thiếu đường dẫn trường cần sửa.")
    try:
        if request.edits:
            report = session.apply_edits([(e.path, e.value) for e in request.edits])
        else:
            report = session.apply_edit(request.path, request.value)
    except (PathResolutionError, InvalidEditError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return report.to_wire()

@router.put("/sessions/{session_id}/editing", response_model=SessionResponse)
async def toggle_editing(request: EditingRequest, session: AuditSession = Depends(require_session)):
    try:
        session.set_editing(request.editing)
    except LookupError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return session.summary()

@router.get("/sessions/{session_id}/report.html", response_class=HTMLResponse)
async def preview_report(session: AuditSession = Depends(require_session)):
    if session.report is None:
        raise HTTPException(status_code=404, detail="Chưa có biên bản phản biện.")
    return render_report_html(session.report, editing=session.editing)

@router.post("/sessions/{session_id}/export")
async def export_report(session: AuditSession = Depends(require_session)):
    """Export the report as PDF; a second request while one is running gets 409"""
    output_dir = os.path.join(config.EXPORT_DIR, session.session_id)
    try:
        path = await session.export(output_dir)
    except LookupError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except AuditError as e:
        raise _http_error(e)
    if path is None:
        raise HTTPException(status_code=409, detail="Đang xuất PDF, vui lòng đợi.")
    return FileResponse(str(path), media_type="application/pdf", filename=path.name)

@router.post("/sessions/{session_id}/reset", response_model=SessionResponse)
async def reset_session(session: AuditSession = Depends(require_session)):
    try:
        session.reset()
    except AuditError as e:
        raise _http_error(e)
    return session.summary()

@router.delete("/sessions/{session_id}")
async def close_session(session_id: str):
    if not drop_session(session_id):
        raise HTTPException(status_code=404, detail="Không tìm thấy phiên làm việc.")
    return {"ok": True}
