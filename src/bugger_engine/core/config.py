"""Application configuration."""

from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # App info
    VERSION: str = "1.0.0"
    APP_NAME: str = "Bugger Engine"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Server
    HOST: str = "127.0.0.1"
    PORT: int = 8787
    CORS_ORIGINS: List[str] = ["*"]

    # Storage
    DATABASE_URL: str = "sqlite+aiosqlite:///./bugger.db"

    # Worker
    RUN_WORKER: bool = True  # Run the poll scheduler inside the API process
    POLL_INTERVAL_MS: int = 5000
    STALE_CLAIM_TIMEOUT: int = 0  # Seconds; 0 disables requeue of stuck claims

    # AI provider
    AI_PROVIDER: str = "gemini"  # gemini, fallback
    GEMINI_API_KEY: Optional[str] = None
    MODEL_ID: str = "gemini-2.5-flash"
    PROVIDER_TIMEOUT: float = 30.0

    # Code context discovery
    CONTEXT_ROOT: Path = Path(".")

    # Demo project
    DEMO_PUBLIC_KEY: str = "public_demo_key"
    DEMO_SECRET_KEY: str = "secret_demo_key"

    class Config:
        env_prefix = "BUGGER_"
        env_file = ".env"
        case_sensitive = True

    @property
    def poll_interval_seconds(self) -> float:
        return self.POLL_INTERVAL_MS / 1000.0


settings = Settings()
