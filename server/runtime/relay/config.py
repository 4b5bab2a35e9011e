"""
Ephemeral Chat Relay - Configuration Management

Loads configuration from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "Ephemeral Chat Relay"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8080

    # Admission
    MAX_ORIGINS: int = 8

    # Message log
    MAX_MESSAGES: int = 200
    MESSAGE_MAX_CHARS: int = 2000
    MAX_ATTACHMENT_BYTES: int = 2 * 1024 * 1024
    NICKNAME_MAX_CHARS: int = 20

    # Session lifecycle
    GRACE_PERIOD_SECONDS: float = 5.0
    IDLE_TIMEOUT_SECONDS: float = 300.0
    SWEEP_INTERVAL_SECONDS: float = 30.0
    KEEPALIVE_INTERVAL_SECONDS: float = 15.0
    CHANNEL_QUEUE_SIZE: int = 256

    # Outbound lookups (GIF search, link previews)
    GIF_API_URL: str = "https://tenor.googleapis.com/v2/search"
    GIF_API_KEY: str = ""
    GIF_RESULT_LIMIT: int = 8
    OUTBOUND_TIMEOUT_SECONDS: float = 5.0

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
    LOG_FILE: Optional[str] = None

    # Security
    ALLOWED_HOSTS: List[str] = ["*"]
    CORS_ORIGINS: List[str] = ["*"]

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
