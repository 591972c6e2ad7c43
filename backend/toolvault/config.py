"""Application configuration from environment variables."""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """All config comes from env vars or a .env file."""

    DATABASE_URL: str = "sqlite+aiosqlite:///./tools.db"
    FILE_STORAGE_TYPE: str = "local"  # only "local" is supported
    FILE_STORAGE_PATH: str = "./uploads"
    MAX_UPLOAD_BYTES: int = 50 * 1024 * 1024
    UPLOAD_CHUNK_SIZE: int = 1024 * 1024
    MULTIPART_OVERHEAD_BYTES: int = 64 * 1024  # form fields and part headers around the file

    API_HOST: str = "0.0.0.0"
    API_PORT: int = 3000
    CORS_ORIGINS: str = "*"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
