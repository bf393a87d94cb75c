"""
Tours API settings, read from the environment (and a local .env file).

Import the module-level `settings` object; values are fixed at import time.
Set VALIDATE_CONFIG=false to skip the startup check (tests, tooling).
"""
import os
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_list(name: str) -> List[str]:
    return [item.strip() for item in os.getenv(name, "").split(",") if item.strip()]


class Settings:
    """Environment-backed configuration for the Tours API."""

    # MongoDB
    MONGODB_URI: str = os.getenv("MONGODB_URI", "")
    MONGODB_DATABASE: str = os.getenv("MONGODB_DATABASE", "natours")

    # Server
    PORT: int = _env_int("PORT", 3000)
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS: List[str] = _env_list("CORS_ORIGINS")

    # Tokens (HS256 shared secret)
    JWT_SECRET: str = os.getenv("JWT_SECRET", "")
    JWT_EXPIRES_IN_DAYS: int = _env_int("JWT_EXPIRES_IN_DAYS", 90)

    # SMTP, used for password reset mails
    EMAIL_HOST: str = os.getenv("EMAIL_HOST", "")
    EMAIL_PORT: int = _env_int("EMAIL_PORT", 587)
    EMAIL_USERNAME: str = os.getenv("EMAIL_USERNAME", "")
    EMAIL_PASSWORD: str = os.getenv("EMAIL_PASSWORD", "")
    EMAIL_FROM: str = os.getenv("EMAIL_FROM", "Natours <hello@natours.io>")

    # Requests allowed per client IP per window
    RATE_LIMIT_MAX: int = _env_int("RATE_LIMIT_MAX", 100)
    RATE_LIMIT_WINDOW_SECONDS: int = _env_int("RATE_LIMIT_WINDOW_SECONDS", 3600)

    @classmethod
    def validate(cls) -> None:
        """
        Check the settings the server cannot start without.

        Raises:
            ValueError: Listing every missing or out-of-range setting.
        """
        problems = [name for name in ("MONGODB_URI", "JWT_SECRET") if not getattr(cls, name)]
        if not 0 < cls.PORT < 65536:
            problems.append(f"PORT ({cls.PORT}) out of range")
        if cls.RATE_LIMIT_MAX < 1 or cls.RATE_LIMIT_WINDOW_SECONDS < 1:
            problems.append("RATE_LIMIT_MAX and RATE_LIMIT_WINDOW_SECONDS must be positive")

        if problems:
            raise ValueError(
                f"Invalid configuration: {', '.join(problems)}. "
                "Set them in the environment or in .env (see .env.example)."
            )

    @classmethod
    def is_production(cls) -> bool:
        return cls.ENVIRONMENT.lower() == "production"

    @classmethod
    def is_development(cls) -> bool:
        return cls.ENVIRONMENT.lower() == "development"


settings = Settings()

# Fail fast on import outside development
if os.getenv("VALIDATE_CONFIG", "true").lower() == "true":
    try:
        settings.validate()
    except ValueError as e:
        if not settings.is_development():
            raise
        print(f"Warning: {e}")
