"""Application configuration using pydantic-settings."""
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Database
    database_url: str
    database_echo: bool = Field(default=False, validation_alias="DATABASE_ECHO")

    # JWT - the secret has no default. Token operations refuse to run without it.
    jwt_secret: str | None = Field(default=None, validation_alias="JWT_SECRET")
    jwt_lifetime: int = Field(default=604_800, validation_alias="JWT_LIFETIME")
    jwt_renewal_threshold: int = Field(default=3600, validation_alias="JWT_RENEWAL_THRESHOLD")
    jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")
    jwt_issuer: str = Field(default="http://localhost:8000", validation_alias="JWT_ISSUER")

    # CORS - comma-separated list of allowed origins (stored as string, parsed via property)
    cors_origins_str: str = Field(
        default="http://localhost:5173",
        validation_alias="CORS_ORIGINS",
    )

    # Membership groups
    api_users_group: str = Field(default="api-users", validation_alias="API_USERS_GROUP")
    admin_group: str = Field(default="administrators", validation_alias="ADMIN_GROUP")

    # Password reset codes expire this many minutes after creation
    password_reset_expiry_minutes: int = Field(
        default=60, validation_alias="PASSWORD_RESET_EXPIRY_MINUTES",
    )

    # Pagination for CRUD list endpoints
    api_default_page_size: int = Field(default=50, validation_alias="API_DEFAULT_PAGE_SIZE")
    api_max_page_size: int = Field(default=100, validation_alias="API_MAX_PAGE_SIZE")

    @model_validator(mode="after")
    def validate_token_timing(self) -> "Settings":
        """Reject lifetimes that would make sliding renewal meaningless."""
        if self.jwt_lifetime <= 0:
            raise ValueError("JWT_LIFETIME must be a positive number of seconds")
        if self.jwt_renewal_threshold <= 0:
            raise ValueError("JWT_RENEWAL_THRESHOLD must be a positive number of seconds")
        if self.jwt_renewal_threshold >= self.jwt_lifetime:
            raise ValueError(
                f"JWT_RENEWAL_THRESHOLD ({self.jwt_renewal_threshold}s) must be shorter "
                f"than JWT_LIFETIME ({self.jwt_lifetime}s)",
            )
        return self

    @property
    def cors_origins(self) -> list[str]:
        """Parse comma-separated CORS origins string into a list."""
        if not self.cors_origins_str:
            return []
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
