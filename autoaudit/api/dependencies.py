from fastapi import HTTPException

from autoaudit.config import CredentialStore, create_credential_store
from autoaudit.pipelines.audit_session import AuditSession, get_session
from autoaudit.services.analysis_service import AuditAnalyzer

# Process-wide singletons
_credential_store = None
_analyzer = None

def get_credential_store() -> CredentialStore:
    """Dependency injection for the credential store, loaded once"""
    global _credential_store
    if _credential_store is None:
        _credential_store = create_credential_store()
        print(f"Credential store loaded (override set: {_credential_store.has_override})")
    return _credential_store

def get_analyzer() -> AuditAnalyzer:
    """Dependency injection for the analyzer"""
    global _analyzer
    if _analyzer is None:
        _analyzer = AuditAnalyzer(credentials=get_credential_store())
    return _analyzer

def require_session(session_id: str) -> AuditSession:
    session = get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Không tìm thấy phiên làm việc.")
    return session
