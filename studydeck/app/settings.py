"""Configuration helpers for the Studydeck runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass

from studydeck.review.session import DEFAULT_COMMIT_TIMEOUT_SECONDS


@dataclass(frozen=True)
class AppSettings:
    """Strongly typed application settings loaded from environment variables."""

    app_name: str
    app_env: str
    log_level: str
    commit_timeout_seconds: float

    @classmethod
    def from_env(cls) -> AppSettings:
        """Construct settings directly from environment variables."""
        app_name = os.getenv("APP_NAME", "Studydeck")
        app_env = os.getenv("APP_ENV", "development")
        log_level = os.getenv("LOG_LEVEL", "INFO").upper()

        raw_timeout = os.getenv("REVIEW_COMMIT_TIMEOUT_SECONDS", str(DEFAULT_COMMIT_TIMEOUT_SECONDS))
        try:
            commit_timeout_seconds = float(raw_timeout)
        except ValueError as exc:
            raise RuntimeError("REVIEW_COMMIT_TIMEOUT_SECONDS must be a number.") from exc

        if commit_timeout_seconds <= 0:
            raise RuntimeError("REVIEW_COMMIT_TIMEOUT_SECONDS must be positive.")

        return cls(
            app_name=app_name,
            app_env=app_env,
            log_level=log_level,
            commit_timeout_seconds=commit_timeout_seconds,
        )
