from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from autoaudit.api.dependencies import get_credential_store
from autoaudit.api.routes import sessions, settings
from autoaudit.config import config

# Load environment variables
load_dotenv()

app = FastAPI(
    title="AutoAudit Exam Review Service",
    description="Exam and matrix review reports generated by Gemini structured analysis",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sessions.router)
app.include_router(settings.router)


@app.on_event("startup")
async def load_settings():
    """Load the credential store once at startup"""
    config.validate()
    get_credential_store()


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint"""
    store = get_credential_store()
    return {
        "ok": True,
        "status": "healthy",
        "service": "autoaudit",
        "model": config.GEMINI_GENERATION_MODEL,
        "credentials_configured": store.has_override or bool(store.default_key),
    }


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "service": "AutoAudit Exam Review Service",
        "version": "1.0.0",
        "endpoints": {
            "health": "GET /health",
            "create_session": "POST /sessions",
            "upload": "POST /sessions/{id}/files/{exam|matrix}",
            "analyze": "POST /sessions/{id}/analyze",
            "report": "GET|PATCH /sessions/{id}/report",
            "preview": "GET /sessions/{id}/report.html",
            "export": "POST /sessions/{id}/export",
            "credentials": "GET|PUT /settings/credentials",
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
