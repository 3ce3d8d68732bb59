from fastapi import APIRouter, Depends
from pydantic import BaseModel

from autoaudit.api.dependencies import get_credential_store
from autoaudit.config import CredentialStore

router = APIRouter()

class CredentialRequest(BaseModel):
    api_key: str = ""

class CredentialStatus(BaseModel):
    has_override: bool
    has_default: bool
    configured: bool

def _status(store: CredentialStore) -> CredentialStatus:
    return CredentialStatus(
        has_override=store.has_override,
        has_default=bool(store.default_key),
        configured=store.has_override or bool(store.default_key),
    )

@router.get("/settings/credentials", response_model=CredentialStatus)
async def credential_status(store: CredentialStore = Depends(get_credential_store)):
    """Report whether a credential is configured, never the key itself"""
    return _status(store)

@router.put("/settings/credentials", response_model=CredentialStatus)
async def save_credentials(request: CredentialRequest, store: CredentialStore = Depends(get_credential_store)):
    """Save the API key override; an empty key falls back to the environment default"""
    store.save(request.api_key)
    return _status(store)
