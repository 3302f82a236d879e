"""Configuration settings for the user data service."""

import os
import re
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache

from dotenv import load_dotenv

from app.exceptions import ConfigurationError

load_dotenv()

# Fields every account exposes regardless of configuration
IDENTITY_FIELDS = frozenset({"username", "email", "provider"})
# Never writable through profile updates
PROTECTED_FIELDS = frozenset({"user_id", "provider", "password_hash", "reset_token_hash", "reset_token_expires_at"})

_TABLE_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")


def _field_list(raw: str) -> list[str]:
    return [field.strip().lower() for field in raw.split(",") if field.strip()]


@dataclass(frozen=True)
class IdentityConfig:
    """Read-only settings the identity engine is constructed with."""

    table_name: str
    mutable_fields: frozenset[str]
    retrievable_fields: frozenset[str]
    reset_token_ttl: timedelta = timedelta(hours=1)

    def __post_init__(self) -> None:
        if not _TABLE_NAME_PATTERN.match(self.table_name):
            raise ConfigurationError(f"Invalid Table Name '{self.table_name}'")
        protected = self.mutable_fields & PROTECTED_FIELDS
        if protected:
            raise ConfigurationError(f"Fields cannot be made mutable: {sorted(protected)}")
        missing = (self.mutable_fields | IDENTITY_FIELDS) - self.retrievable_fields
        if missing:
            raise ConfigurationError(
                f"Retrievable fields must include every mutable and identity field, missing: {sorted(missing)}"
            )


class Settings:
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./user_data.db")
    USER_TABLE_NAME: str = os.getenv("USER_TABLE_NAME", "user_data")

    # Profile fields
    MUTABLE_USER_FIELDS: list[str] = _field_list(os.getenv("MUTABLE_USER_FIELDS", "username"))
    RETRIEVABLE_USER_FIELDS: list[str] = _field_list(os.getenv("RETRIEVABLE_USER_FIELDS", "username,provider,email"))

    # Credentials
    BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "10"))
    RESET_TOKEN_TTL_MINUTES: int = int(os.getenv("RESET_TOKEN_TTL_MINUTES", "60"))

    # Mail
    MAIL_BACKEND: str = os.getenv("MAIL_BACKEND", "console")
    MAIL_HOST: str = os.getenv("MAIL_HOST", "smtp.gmail.com")
    MAIL_PORT: int = int(os.getenv("MAIL_PORT", "465"))
    MAIL_USERNAME: str = os.getenv("MAIL_USERNAME", "")
    MAIL_PASSWORD: str = os.getenv("MAIL_PASSWORD", "")
    MAIL_USE_SSL: bool = os.getenv("MAIL_USE_SSL", "true").lower() == "true"
    MAIL_FROM: str = os.getenv("MAIL_FROM", os.getenv("MAIL_USERNAME", "no-reply@localhost"))

    # Application
    APP_ENV: str = os.getenv("APP_ENV", "development")
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    def validate(self) -> list[str]:
        """Validate settings and return list of warnings."""
        errors = []
        if self.MAIL_BACKEND not in ("smtp", "console"):
            errors.append(f"MAIL_BACKEND '{self.MAIL_BACKEND}' is unknown - falling back to console")
        if self.MAIL_BACKEND == "smtp" and not (self.MAIL_USERNAME and self.MAIL_PASSWORD):
            errors.append("MAIL_BACKEND is smtp but MAIL_USERNAME/MAIL_PASSWORD are not set")
        if self.MAIL_BACKEND != "smtp" and self.APP_ENV != "development":
            errors.append(f"MAIL_BACKEND is console in {self.APP_ENV} - password reset tokens will be written to the log")
        if self.BCRYPT_ROUNDS < 4 or self.BCRYPT_ROUNDS > 31:
            errors.append(f"BCRYPT_ROUNDS must be between 4 and 31, got {self.BCRYPT_ROUNDS}")
        return errors

    def identity_config(self) -> IdentityConfig:
        """Build the immutable engine configuration from these settings."""
        mutable = frozenset(self.MUTABLE_USER_FIELDS)
        return IdentityConfig(
            table_name=self.USER_TABLE_NAME,
            mutable_fields=mutable,
            retrievable_fields=frozenset(self.RETRIEVABLE_USER_FIELDS) | mutable | IDENTITY_FIELDS,
            reset_token_ttl=timedelta(minutes=self.RESET_TOKEN_TTL_MINUTES),
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
