"""
Application configuration management using Pydantic Settings.
Supports environment variables and .env files for configuration.
"""

from typing import Optional, Dict, Any, List
from pydantic_settings import BaseSettings
from pydantic import Field, PostgresDsn, validator
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Application Settings
    app_name: str = "Letterbox"
    app_version: str = "1.0.0"
    debug: bool = Field(default=False, env="DEBUG")
    environment: str = Field(default="development", env="ENVIRONMENT")
    test_env: str = Field(default="unit", env="TEST_ENV")

    # API Settings
    api_prefix: str = "/api/v1"
    host: str = Field(default="0.0.0.0", env="HOST")
    port: int = Field(default=8000, env="PORT")
    workers: int = Field(default=4, env="WORKERS")
    principal_header: str = Field(default="X-Principal-Id", env="PRINCIPAL_HEADER")

    # Database Settings
    postgres_host: str = Field(default="localhost", env="POSTGRES_HOST")
    postgres_port: int = Field(default=5432, env="POSTGRES_PORT")
    postgres_user: str = Field(default="letterbox_user", env="POSTGRES_USER")
    postgres_password: str = Field(default="letterbox_password", env="POSTGRES_PASSWORD")
    postgres_db: str = Field(default="letterbox", env="POSTGRES_DB")
    database_url: Optional[str] = None

    # Database Pool Settings
    db_pool_size: int = Field(default=20, env="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=40, env="DB_MAX_OVERFLOW")
    db_pool_timeout: int = Field(default=30, env="DB_POOL_TIMEOUT")

    # Blob Storage Settings
    storage_backend: str = Field(default="memory", env="STORAGE_BACKEND")  # s3 | memory
    s3_endpoint: Optional[str] = Field(default=None, env="S3_ENDPOINT")
    s3_access_key: Optional[str] = Field(default=None, env="S3_ACCESS_KEY")
    s3_secret_key: Optional[str] = Field(default=None, env="S3_SECRET_KEY")
    s3_region: str = Field(default="us-east-1", env="S3_REGION")
    s3_use_ssl: bool = Field(default=True, env="S3_USE_SSL")
    storage_max_retries: int = Field(default=3, env="STORAGE_MAX_RETRIES")

    # Buckets
    attachments_bucket: str = Field(default="letter-attachments", env="ATTACHMENTS_BUCKET")
    voice_bucket: str = Field(default="voice-messages", env="VOICE_BUCKET")

    # Asset Policy
    max_asset_bytes: int = Field(default=10 * 1024 * 1024, env="MAX_ASSET_BYTES")
    allowed_attachment_types: List[str] = Field(
        default=["image/jpeg", "image/png", "video/mp4", "application/pdf"],
        env="ALLOWED_ATTACHMENT_TYPES"
    )
    allowed_voice_types: List[str] = Field(
        default=["audio/wav", "audio/webm", "audio/ogg", "audio/mpeg"],
        env="ALLOWED_VOICE_TYPES"
    )
    signed_url_ttl_seconds: int = Field(default=3600, env="SIGNED_URL_TTL_SECONDS")

    # Recipient resolution: pick "the other participant" when none is given
    legacy_two_party_recipient: bool = Field(default=True, env="LEGACY_TWO_PARTY_RECIPIENT")

    # Observability
    metrics_enabled: bool = Field(default=True, env="METRICS_ENABLED")
    tracing_enabled: bool = Field(default=True, env="TRACING_ENABLED")
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    log_format: str = Field(default="json", env="LOG_FORMAT")

    # CORS Settings
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:8000"],
        env="CORS_ORIGINS"
    )
    cors_allow_credentials: bool = Field(default=True, env="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(default=["*"], env="CORS_ALLOW_METHODS")
    cors_allow_headers: list[str] = Field(default=["*"], env="CORS_ALLOW_HEADERS")

    @validator("database_url", pre=True, always=True)
    def assemble_db_connection(cls, v: Optional[str], values: Dict[str, Any]) -> Any:
        if isinstance(v, str):
            return v
        return str(PostgresDsn.build(
            scheme="postgresql+asyncpg",
            username=values.get("postgres_user"),
            password=values.get("postgres_password"),
            host=values.get("postgres_host"),
            port=int(values.get("postgres_port", 5432)),
            path=f"{values.get('postgres_db') or ''}",
        ))

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Export settings instance
settings = get_settings()
