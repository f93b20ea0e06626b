from typing import Optional
from urllib.parse import quote_plus

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseConfig(BaseSettings):
    """Database configuration"""

    host: str = "localhost"
    port: int = 5432
    username: str = "postgres"
    password: SecretStr = Field(default=SecretStr("postgres"))
    database: str = "voice_atlas"
    serverless: bool = Field(
        default=True,
        description="If true, disable connection pooling so serverless DBs can pause.",
    )

    @property
    def url(self) -> str:
        """Get database URL"""
        username = quote_plus(self.username)
        password = quote_plus(self.password.get_secret_value())
        return (
            "postgresql+asyncpg://"
            f"{username}:{password}"
            f"@{self.host}:{self.port}/{self.database}"
        )

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        secrets_dir=".secrets",
        case_sensitive=False,
        extra="ignore",
    )


class S3Config(BaseSettings):
    """S3 configuration"""

    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    region: str = "us-west-2"
    bucket_name: str = "web-app-call-recordings"
    endpoint_url: Optional[str] = None
    presign_expiry_seconds: int = Field(default=3600, ge=60, le=604800)

    model_config = SettingsConfigDict(
        env_prefix="S3_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class MailConfig(BaseSettings):
    """SMTP configuration used for partner invitations."""

    host: Optional[str] = None
    port: int = 587
    username: Optional[str] = None
    password: SecretStr | None = None
    sender: str = "noreply@voice-atlas.local"
    use_tls: bool = True
    use_ssl: bool = False

    model_config = SettingsConfigDict(
        env_prefix="MAIL_",
        env_file=".env",
        secrets_dir=".secrets",
        case_sensitive=False,
        extra="ignore",
    )

    def is_configured(self) -> bool:
        return bool(self.host and self.sender)


class RoomConfig(BaseSettings):
    """Daily.co room provider configuration."""

    api_url: str = "https://api.daily.co/v1"
    api_key: SecretStr = Field(default=SecretStr(""))
    room_expiry_hours: int = Field(default=5, ge=1, le=72)
    request_timeout_seconds: float = Field(default=10.0, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="DAILY_",
        env_file=".env",
        secrets_dir=".secrets",
        case_sensitive=False,
        extra="ignore",
    )


class ProcessingConfig(BaseSettings):
    """Recording processing pipeline configuration."""

    ffmpeg_binary: str = "ffmpeg"
    scratch_dir: Optional[str] = Field(
        default=None,
        description="Directory for temporary files; the system temp dir when unset.",
    )
    sample_rate: int = 48000
    channels: int = 1
    codec: str = "pcm_s16le"
    folder_digits: int = Field(default=4, ge=1, le=12)
    io_max_attempts: int = Field(default=3, ge=1, le=10)
    transcode_max_attempts: int = Field(default=2, ge=1, le=5)
    backoff_base_seconds: float = Field(default=0.5, ge=0.0)
    backoff_max_seconds: float = Field(default=8.0, ge=0.0)

    model_config = SettingsConfigDict(
        env_prefix="PROCESSING_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class SecurityConfig(BaseSettings):
    """JWT and application security configuration."""

    jwt_secret_key: SecretStr = Field(
        default=SecretStr("change-me"),
        validation_alias="JWT_SECRET",
    )
    jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")
    access_token_expires_minutes: int = Field(
        default=60,
        validation_alias="JWT_EXPIRATION_MINUTES",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class Settings(BaseSettings):
    """Application settings"""

    app_name: str = "Voice Atlas Recording Backend"
    app_version: str = "1.0.0"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    log_file: str = "logs/app.log"
    pipeline_log_file: str = "logs/recording_pipeline.log"
    public_app_url: str = "http://localhost:5173"
    persist_request_logs: bool = False

    # Database
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)

    # S3
    s3: S3Config = Field(default_factory=S3Config)

    # Mail
    mail: MailConfig = Field(default_factory=MailConfig)

    # Rooms
    rooms: RoomConfig = Field(default_factory=RoomConfig)

    # Processing
    processing: ProcessingConfig = Field(default_factory=ProcessingConfig)

    # Security
    security: SecurityConfig = Field(default_factory=SecurityConfig)

    # CORS
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
settings = Settings()
