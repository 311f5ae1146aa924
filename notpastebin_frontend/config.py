"""
NotPasteBin Frontend — Application Configuration
==================================================

What:  Centralized configuration management using Pydantic Settings.
Why:   Type-safe environment variable loading with validation on startup.
How:   Pydantic Settings reads from environment variables (or an optional .env
       file), validates types/ranges, and provides a singleton `settings` object.
Who:   Imported by main.py and server.py; everything else receives settings
       through the app factory.
When:  Loaded once at module import time; validated before the app serves traffic.

A missing .env file is not an error: values then come from the process
environment only.
"""

from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

_PACKAGE_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Only BACKEND_ADDR has no usable default; everything else works out of the
    box for local development.
    """

    # ── Backend RPC ───────────────────────────────────────────────────────
    # What: gRPC target of the note backend, e.g. "notes-backend:9090"
    backend_addr: str = Field(default="", description="gRPC address of the note backend")

    # What: Upper bound for a single RPC; the request deadline may shorten it
    backend_timeout: float = Field(default=10.0, gt=0, le=300)

    # What: Block startup until the gRPC channel is READY
    # Why off by default: gRPC channels connect lazily and recover on their own
    backend_wait_ready: bool = Field(default=False)
    backend_connect_timeout: float = Field(default=5.0, gt=0, le=120)

    # ── HTTP Server ───────────────────────────────────────────────────────
    http_host: str = Field(default="0.0.0.0")
    http_port: int = Field(default=8080, ge=1, le=65535)

    # What: Public origin used to build shareable reader links
    # Example: https://notpastebin.example → https://notpastebin.example/note/<hash>
    site_url: str = Field(default="")

    # What: Deadline for a whole inbound request, shared by its outbound RPC
    request_timeout: float = Field(default=30.0, gt=0, le=600)

    # What: How long in-flight requests may run after SIGTERM before force-close
    shutdown_grace_period: int = Field(default=30, ge=1, le=600)

    # ── Assets ────────────────────────────────────────────────────────────
    template_dir: str = Field(default=str(_PACKAGE_DIR / "templates"))
    static_dir: str = Field(default=str(_PACKAGE_DIR / "static"))

    # ── Logging ───────────────────────────────────────────────────────────
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

    @field_validator("site_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    # ── Startup Connect Backoff ───────────────────────────────────────────
    # What: Tenacity backoff while BACKEND_WAIT_READY polls the channel.
    # Request-time RPCs are never retried: one request, one RPC.
    backend_connect_retry_min_wait: float = Field(default=0.2, gt=0, le=30)
    backend_connect_retry_max_wait: float = Field(default=2.0, gt=0, le=120)

    # ── Circuit Breaker ───────────────────────────────────────────────────
    # What: After N consecutive transport failures, fail fast for M seconds
    cb_failure_threshold: int = Field(default=5, ge=1, le=100)
    cb_recovery_timeout: int = Field(default=30, ge=1, le=600)

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,  # BACKEND_ADDR and backend_addr both work
        "extra": "ignore",
    }

    def missing_required(self) -> List[str]:
        errors = []
        if not self.backend_addr.strip():
            errors.append("BACKEND_ADDR is not set (expected host:port of the note backend)")
        return errors

    def validate_required(self) -> None:
        """
        What:  Validates that settings without a usable default are configured.
        When:  Called during app startup (lifespan); a failure stops the process.
        """
        errors = self.missing_required()
        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )


# Singleton instance; the app factory falls back to it when no settings are passed
settings = Settings()
