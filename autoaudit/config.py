import os
import json
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

from autoaudit.errors import ConfigurationError

load_dotenv()

class Config:
    # Gemini Configuration
    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "") or None
    GEMINI_GENERATION_MODEL = os.getenv("GEMINI_GENERATION_MODEL", "gemini-3-pro-preview")

    # Client-local settings store (holds the credential override)
    SETTINGS_PATH = os.getenv("SETTINGS_PATH", os.path.join(Path.home(), ".autoaudit", "settings.json"))

    # Extraction
    MAX_TEXT_CHARS = int(os.getenv("MAX_TEXT_CHARS", "300000"))

    # Export Configuration
    EXPORT_DIR = os.getenv("EXPORT_DIR", "exports")
    EXPORT_SETTLE_DELAY = float(os.getenv("EXPORT_SETTLE_DELAY", "0.5"))  # unverified heuristic, tune empirically
    EXPORT_SCALE = float(os.getenv("EXPORT_SCALE", "2.0"))

    # Redis Configuration
    REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", "") or None
    REDIS_ENABLED = os.getenv("REDIS_ENABLED", "false").lower() == "true"
    CACHE_TTL = int(os.getenv("CACHE_TTL", "86400"))  # 1 day default

    # CORS Configuration
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")

    @classmethod
    def validate(cls):
        """Validate required configuration"""
        if cls.MAX_TEXT_CHARS <= 0:
            raise ValueError("MAX_TEXT_CHARS must be positive")
        if cls.EXPORT_SCALE <= 0:
            raise ValueError("EXPORT_SCALE must be positive")
        return True

config = Config()


class CredentialStore:
    """
    Process-wide holder of the analysis-service credential.

    The override lives in a small JSON key-value file under a single fixed key.
    It is read once with load() and written once per commit with save().
    """

    KEY = "CUSTOM_GEMINI_KEY"
    MISSING_MESSAGE = "Vui lòng cấu hình API Key trong mục Cài đặt trước khi bắt đầu."

    def __init__(self, path: str, default_key: Optional[str] = None):
        self.path = Path(path)
        self.default_key = default_key or None
        self._override: Optional[str] = None

    @property
    def override(self) -> Optional[str]:
        return self._override

    @property
    def has_override(self) -> bool:
        return bool(self._override)

    @property
    def source(self) -> str:
        """Where resolve() takes the key from"""
        return "override" if self._override else "environment"

    def _read_all(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            print(f"Settings file unreadable, ignoring: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def load(self) -> Optional[str]:
        """Read the persisted override into memory"""
        value = self._read_all().get(self.KEY)
        self._override = value.strip() if isinstance(value, str) and value.strip() else None
        return self._override

    def save(self, value: Optional[str]):
        """Persist a new override; an empty value clears it"""
        value = (value or "").strip()
        data = self._read_all()
        if value:
            data[self.KEY] = value
        else:
            data.pop(self.KEY, None)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        self._override = value or None

    def resolve(self) -> str:
        """Override first, then the environment default"""
        api_key = self._override or self.default_key
        if not api_key:
            raise ConfigurationError(self.MISSING_MESSAGE)
        return api_key


def create_credential_store() -> CredentialStore:
    store = CredentialStore(config.SETTINGS_PATH, default_key=config.GEMINI_API_KEY)
    store.load()
    return store
