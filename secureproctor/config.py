"""
SecureProctor Configuration Settings

Values come from the environment or a local .env file.
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Configuration for the proctoring service."""

    # API Settings
    APP_NAME: str = "SecureProctor"
    APP_VERSION: str = "1.0"
    DEBUG: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = False
    LOG_DIR: str = "logs"

    # Session Store ("memory" or "redis")
    SESSION_STORE: str = "memory"
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_KEY_PREFIX: str = "proctor:"

    # Detection cadence
    SAMPLING_INTERVAL_SECONDS: float = 1.0  # one detection per tick
    INGEST_TIMEOUT_SECONDS: float = 0.5  # must stay below the sampling interval

    # Scoring penalties per violation severity
    SEVERITY_WEIGHT_HIGH: int = 10
    SEVERITY_WEIGHT_MEDIUM: int = 5
    SEVERITY_WEIGHT_LOW: int = 2

    @property
    def severity_weights(self) -> dict:
        return {
            "high": self.SEVERITY_WEIGHT_HIGH,
            "medium": self.SEVERITY_WEIGHT_MEDIUM,
            "low": self.SEVERITY_WEIGHT_LOW,
        }

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
