"""Application configuration."""

import os

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Local storage
    storage_path: str = os.getenv("STORAGE_PATH", "data/malatally.db")

    # Calendar day boundaries are computed in this zone
    timezone: str = os.getenv("TIMEZONE", "UTC")

    # Profiles
    default_profile: str = os.getenv("DEFAULT_PROFILE", "OM")

    # Remote backup store
    remote_url: str = os.getenv("REMOTE_URL", "")
    remote_token: str = os.getenv("REMOTE_TOKEN", "")
    remote_folder: str = os.getenv("REMOTE_FOLDER", "appDataFolder")

    # Server
    server_host: str = os.getenv("SERVER_HOST", "0.0.0.0")
    server_port: int = int(os.getenv("SERVER_PORT", "8000"))

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    class Config:
        """Pydantic config."""

        env_file = ".env"
        case_sensitive = False


settings = Settings()
