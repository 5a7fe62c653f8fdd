import os
from pathlib import Path
from typing import List, Optional
from pydantic import BaseModel, Field
from dotenv import load_dotenv

# Load environment variables from .env file, if present
_ROOT = Path(__file__).resolve().parents[2]
load_dotenv(_ROOT / ".env")

_DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def _first(*keys: str) -> Optional[str]:
    """
    Return the value of the first environment variable found in keys.
    """
    for key in keys:
        val = os.getenv(key)
        if val:
            return val
    return None


def _csv(key: str) -> List[str]:
    raw = os.getenv(key, "")
    return [part.strip().lower() for part in raw.split(",") if part.strip()]


class Settings(BaseModel):
    llm_provider: str = os.getenv("LLM_PROVIDER", "openai").lower()
    llm_model: str = os.getenv("LLM_MODEL", "gpt-4o-mini")
    openai_api_key: Optional[str] = os.getenv("OPENAI_API_KEY")
    google_api_key: Optional[str] = _first("GOOGLE_API_KEY", "GEMINI_API_KEY")

    fetch_timeout_seconds: float = float(os.getenv("FETCH_TIMEOUT_SECONDS", "10"))
    fetch_max_bytes: int = int(os.getenv("FETCH_MAX_BYTES", str(2 * 1024 * 1024)))
    fetch_max_redirects: int = int(os.getenv("FETCH_MAX_REDIRECTS", "5"))
    fetch_user_agent: str = os.getenv("FETCH_USER_AGENT", _DEFAULT_USER_AGENT)
    fetch_allowed_domains: List[str] = Field(default_factory=lambda: _csv("FETCH_ALLOWED_DOMAINS"))

    cleanup_timeout_seconds: float = float(os.getenv("CLEANUP_TIMEOUT_SECONDS", "120"))
    cleanup_max_chars: int = int(os.getenv("CLEANUP_MAX_CHARS", "30000"))
    scrape_deadline_seconds: float = float(os.getenv("SCRAPE_DEADLINE_SECONDS", "150"))

    ats_domains_file: Optional[str] = os.getenv("ATS_DOMAINS_FILE")
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8000"))


# Singleton instance for app-wide settings
settings = Settings()
