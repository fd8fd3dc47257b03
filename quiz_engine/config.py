"""Runtime settings for the quiz attempt engine.

Values come from environment variables prefixed with ``EXAM_`` (or a local
``.env`` file), e.g. ``EXAM_DATABASE_URL=postgresql://...``.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="EXAM_", env_file=".env", extra="ignore"
    )

    # Application
    APP_NAME: str = "Proctored Quiz Engine"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./quiz_engine.db"
    SQL_ECHO: bool = False

    # Session cookie signing
    SESSION_SECRET: str = Field(default="CHANGE_ME_TO_A_RANDOM_SECRET")

    # Attempt policy
    ALLOW_RETAKES: bool = False  # False: one attempt per (student, quiz)
    LATE_GRACE_SECONDS: int = 30
    MAX_VIOLATIONS: int = 3  # auto-block threshold; 0 disables
    MAX_BLOCK_REASON_LENGTH: int = 500


@lru_cache
def get_settings() -> Settings:
    return Settings()
