"""Application configuration."""

from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings.

    Environment variables will be loaded and validated using Pydantic.
    """

    app_name: str = "LinkVault"
    version: str = "1.0.0"
    api_prefix: str = "/api"

    # CORS Settings
    cors_origins: list[str] = ["*"]  # Default to allow all in development
    cors_allow_credentials: bool = True
    FRONTEND_URL: str = "http://localhost:5173"

    # Content Settings
    DEFAULT_EXPIRY_MINUTES: int = Field(default=10, gt=0)
    MAX_FILE_SIZE: int = Field(default=10 * 1024 * 1024, gt=0)  # 10MB
    HANDLE_BYTES: int = Field(default=12, ge=8, le=64)

    # Record Store Settings
    RECORD_STORE_TYPE: str = "sqlite"  # sqlite or memory
    DATABASE_PATH: Path = Path("data/linkvault.db")

    # Blob Storage Settings
    STORAGE_TYPE: str = "local"  # local, s3 or memory
    UPLOADS_DIR: Path = Path("data/uploads")
    S3_BUCKET: str = ""
    S3_PREFIX: str = "uploads/"
    S3_REGION: str | None = None
    S3_ENDPOINT_URL: str | None = None
    S3_ACCESS_KEY_ID: str | None = None
    S3_SECRET_ACCESS_KEY: str | None = None

    # Expiry Sweep Settings
    SWEEP_ENABLED: bool = True
    SWEEP_INTERVAL_SECONDS: float = Field(default=300.0, gt=0)  # every 5 minutes
    SWEEP_INITIAL_DELAY_SECONDS: float = Field(default=5.0, ge=0)

    # Authentication Settings
    AUTH_ENABLED: bool = True
    AUTH_JWT_SECRET: str | None = None
    AUTH_JWT_ALGORITHMS: list[str] = ["HS256"]
    AUTH_JWT_AUDIENCE: str | None = None
    AUTH_JWT_ISSUER: str | None = None

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow",  # Allow extra fields in environment
    )

    @field_validator("STORAGE_TYPE", "RECORD_STORE_TYPE")
    @classmethod
    def normalize_backend_name(cls, value: str) -> str:
        """Backend selectors are case-insensitive."""
        return value.strip().lower()

    @model_validator(mode="after")
    def validate_origins(self) -> "Settings":
        """Validate CORS origins."""
        if self.cors_origins == ["*"]:
            self.cors_origins = [
                "http://localhost",
                "http://localhost:5173",
                "http://localhost:3000",
                self.FRONTEND_URL,
            ]
        return self

    @model_validator(mode="after")
    def validate_storage(self) -> "Settings":
        """Check backend selectors and their required parameters."""
        if self.STORAGE_TYPE not in ("local", "s3", "memory"):
            raise ValueError(
                f"Unsupported STORAGE_TYPE: {self.STORAGE_TYPE}. "
                "Supported types: local, s3, memory"
            )
        if self.STORAGE_TYPE == "s3" and not self.S3_BUCKET:
            raise ValueError("S3_BUCKET is required when STORAGE_TYPE is s3")
        if self.RECORD_STORE_TYPE not in ("sqlite", "memory"):
            raise ValueError(
                f"Unsupported RECORD_STORE_TYPE: {self.RECORD_STORE_TYPE}. "
                "Supported types: sqlite, memory"
            )
        return self


# Create settings instance
settings = Settings()
