from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Nothing is required at load time: the connection check reports missing
    values itself, and the clients raise ``ConfigurationError`` when they
    need a value that is not set.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Open Finance API credentials
    openfinance_client_id: Optional[str] = Field(default=None)
    openfinance_client_secret: Optional[str] = Field(default=None)
    openfinance_base_url: Optional[str] = Field(default=None)
    oauth_scope: str = Field(default="accounts payments insurance")

    # TPP certificates (mTLS transport pair, optional signing pair)
    transport_cert_path: Optional[str] = Field(default=None)
    transport_key_path: Optional[str] = Field(default=None)
    signing_cert_path: Optional[str] = Field(default=None)
    signing_key_path: Optional[str] = Field(default=None)

    # Optional AI assistant credential
    aws_bearer_token_bedrock: Optional[str] = Field(default=None)

    # HTTP behaviour
    openfinance_verify_ssl: bool = Field(default=False)
    openfinance_request_timeout: float = Field(default=30.0, gt=0)

    # Token lifecycle
    token_refresh_margin_seconds: int = Field(default=300, ge=0)

    # Payment status polling
    payment_poll_max_attempts: int = Field(default=10, ge=1)
    payment_poll_interval_seconds: float = Field(default=2.0, ge=0)
    payment_poll_backoff_factor: float = Field(default=1.0, ge=1.0)
    sandbox_otp: str = Field(default="123456")

    # Logging
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None)

    @field_validator("openfinance_base_url")
    @classmethod
    def strip_trailing_slash(cls, v):
        """Normalize base URL so endpoints can be appended."""
        if v is None:
            return v
        v = v.strip()
        return v.rstrip("/") or None

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


# Global settings instance
settings = Settings()
