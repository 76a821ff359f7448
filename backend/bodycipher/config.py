"""
bodycipher: Application Configuration
=======================================

What:  Centralized configuration management using Pydantic Settings.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a singleton `settings` object.
Who:   Imported by the app factory; the crypto layer never reads settings itself.
When:  Loaded once at module import time; the secret is checked when the app
       is created.
"""

from typing import List

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings

from bodycipher.exceptions import ConfigurationError


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Production deployments MUST set ENCRYPTION_SECRET; everything else has a
    development default.
    """

    # ── Transport Encryption ──────────────────────────────────────────────
    # What: Shared secret from which the AES key and IV are derived
    # Format: Any string; shorter than 32 characters is right-padded with '0'
    encryption_secret: SecretStr = Field(
        default=SecretStr(""),
        description="Shared secret for request/response body encryption",
    )

    # What: Extra route paths that require encryption, on top of @encrypted
    # Format: Comma-separated route paths, e.g. "/api/echo,/api/messages"
    encrypted_paths: str = Field(default="")

    @property
    def encrypted_paths_list(self) -> List[str]:
        """Splits comma-separated encrypted paths into a list, dropping blanks."""
        return [path.strip() for path in self.encrypted_paths.split(",") if path.strip()]

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=8000, ge=1024, le=65535)

    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    def require_encryption_secret(self) -> str:
        """
        What:  Returns the configured secret, or fails with ConfigurationError.
        When:  Called by create_app() before the cipher context is derived.
        """
        secret = self.encryption_secret.get_secret_value()
        if not secret:
            raise ConfigurationError(
                "ENCRYPTION_SECRET is not set. "
                "Configure a shared secret before starting the service.",
                setting="encryption_secret",
            )
        return secret


# Singleton instance, imported by the app factory
settings = Settings()
