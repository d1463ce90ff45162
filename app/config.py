# app/config.py
"""
Application configuration using Pydantic-Settings.
All settings can be overridden via environment variables or .env file.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # ── Database ──────────────────────────────────────────────────────────
    DATABASE_URL: str = "sqlite:///./restroom_pass.db"

    # ── Network ───────────────────────────────────────────────────────────
    BACKEND_IP: str = "0.0.0.0"
    BACKEND_PORT: int = 8080

    # ── Security ──────────────────────────────────────────────────────────
    API_KEY: Optional[str] = None   # Set in .env to enable auth on API endpoints

    # ── Roster source ─────────────────────────────────────────────────────
    ROSTER_CSV_URL: Optional[str] = None   # Published CSV export of the daily sheet
    ROSTER_HEADER_ROWS: int = 2
    ROSTER_NAME_COLUMN: int = 0            # Column A
    ROSTER_ID_COLUMN: int = 4              # Column E
    ROSTER_FETCH_TIMEOUT_SECONDS: int = 10

    # ── Pass policy ───────────────────────────────────────────────────────
    PERIOD_CUTOFF_HOUR: int = 12           # Before this hour is "morning"
    USAGE_LIMIT_PER_PERIOD: int = 1
    DOUBLE_SUBMIT_WINDOW_SECONDS: int = 5
    AUTO_PROMOTE_ON_RETURN: bool = False   # Next in line is granted by a teacher, not automatically
    BATCH_MAX_UPDATES: int = 50

    # ── Logging ───────────────────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = None          # Defaults to logs/ at the project root
    LOG_FILE: str = "passes.log"
    LOG_MAX_BYTES: int = 5 * 1024 * 1024
    LOG_BACKUP_COUNT: int = 10

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
