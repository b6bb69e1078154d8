"""App configuration from environment."""
from pathlib import Path

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env from the backend folder (where this file lives), not from cwd
_BACKEND_DIR = Path(__file__).resolve().parent
_ENV_FILE = _BACKEND_DIR / ".env"
load_dotenv(_ENV_FILE)


class Settings(BaseSettings):
    """Settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE) if _ENV_FILE.exists() else ".env",
        extra="ignore",
    )

    database_url: str = "sqlite+aiosqlite:///./sheet2db.db"
    max_upload_mb: int = 20
    log_level: str = "INFO"
    cors_origins: list[str] = ["*"]


settings = Settings()
