from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service settings, read from the environment or a .env file"""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # External agent service
    AGENT_API_URL: str = "http://localhost:8080/api"
    AGENT_API_KEY: Optional[str] = None
    AGENT_ID: str = "69a141d1f77666f08532da44"
    AGENT_NAME: str = "OCR Processing Agent"
    AGENT_TIMEOUT: float = 60.0

    # Downloads
    DOWNLOAD_VARIANT: str = "notepad-compatible"

    # Uploads
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024
    MAX_IMAGE_DIMENSION: int = 4096

    # Server
    CORS_ORIGINS: List[str] = ["*"]
    LOG_LEVEL: str = "warning"
    HOST: str = "0.0.0.0"
    PORT: int = 5000


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
