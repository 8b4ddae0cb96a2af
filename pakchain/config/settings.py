"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from loguru import logger
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pakchain.config.constants import (
    INCLUSION_TIMEOUT,
    OTP_MAX_ATTEMPTS,
    OTP_TTL_SECONDS,
    SEPOLIA_CHAIN_ID,
    VERIFICATION_MAX_RETRIES,
    VERIFICATION_RETRY_DELAY,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str
    database_echo: bool = False

    # Blockchain RPC
    rpc_url: str
    chain_id: int = Field(
        default=SEPOLIA_CHAIN_ID,
        gt=0,
        description="Chain the signer and verifier are bound to",
    )
    explorer_base_url: str | None = Field(
        default=None,
        description="Overrides the block explorer derived from chain_id",
    )

    # Signer used for server-side dispatch (optional)
    donor_private_key: str | None = None

    # Donation flow
    inclusion_timeout: float = Field(
        default=INCLUSION_TIMEOUT,
        gt=0,
        description="Seconds to wait for a submitted transfer to be mined",
    )
    verification_max_retries: int = Field(
        default=VERIFICATION_MAX_RETRIES,
        ge=1,
        description="Attempts for verifying a not-yet-indexed transaction",
    )
    verification_retry_delay: float = Field(
        default=VERIFICATION_RETRY_DELAY,
        ge=0,
        description="Base delay in seconds for verification backoff",
    )

    # Redis (one-time code cache)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str | None = None
    redis_db: int = 0

    # One-time codes
    otp_ttl_seconds: int = Field(default=OTP_TTL_SECONDS, gt=0)
    otp_max_attempts: int = Field(default=OTP_MAX_ATTEMPTS, gt=0)

    # Application
    environment: str = "production"
    debug: bool = False
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode='after')
    def validate_production(self) -> 'Settings':
        """Validate production-specific requirements."""
        if self.environment == 'production':
            if self.debug:
                raise ValueError(
                    'DEBUG must be False in production environment. '
                    'Set DEBUG=false in your .env file.'
                )
            if self.donor_private_key and 'your_' in self.donor_private_key.lower():
                logger.warning(
                    'DONOR_PRIVATE_KEY appears to be a placeholder. '
                    'Server-side dispatch will fail until a real key is set.'
                )
        return self

    @field_validator('database_url')
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL."""
        if not v.startswith(('postgresql://', 'postgresql+asyncpg://')):
            raise ValueError(
                'DATABASE_URL must start with postgresql:// or postgresql+asyncpg://'
            )
        return v

    @field_validator('rpc_url')
    @classmethod
    def validate_rpc_url(cls, v: str) -> str:
        """Validate RPC endpoint URL."""
        if not v.startswith(('http://', 'https://')):
            raise ValueError('RPC_URL must be an http(s) endpoint')
        return v

    @field_validator('explorer_base_url')
    @classmethod
    def strip_explorer_slash(cls, v: str | None) -> str | None:
        """Drop trailing slash so links join cleanly."""
        return v.rstrip('/') if v else v

    @property
    def async_database_url(self) -> str:
        """Database URL with the asyncpg driver."""
        if self.database_url.startswith('postgresql://'):
            return self.database_url.replace(
                'postgresql://', 'postgresql+asyncpg://', 1
            )
        return self.database_url


# Global settings instance
settings = Settings()
