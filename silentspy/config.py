"""Runtime configuration — env-driven, read once at process start.

Centralized settings using pydantic-settings.  Reads from a .env file and
``MSE_*`` environment variables.  The activation toggle ``MSE_ACTIVE``
defaults to off, in which case the spy performs no work at all.
"""

from __future__ import annotations

import logging

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class SpySettings(BaseSettings):
    """Settings for the build-output condenser.

    Examples
    --------
    Activate for one build::

        MSE_ACTIVE=true mvn -T4 verify

    Or via .env file::

        MSE_ACTIVE=true
        MSE_TRACE_LINES=40
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="MSE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Activation
    active: bool = False

    # Output protocol
    prefix: str = "MSE"

    # Captured output retention
    buffer_capacity: int = Field(default=128 * 1024, gt=0)
    buffer_head_bytes: int = Field(default=48 * 1024, ge=0)

    # Test failure detail
    trace_lines: int = Field(default=20, ge=0)

    # Side channels
    capture_streams: bool = True
    quiet_loggers: list[str] = []  # "" is the root logger; empty means no hint

    # Own logging
    log_level: str = "WARNING"

    @model_validator(mode="after")
    def _check_buffer_split(self) -> SpySettings:
        if self.buffer_head_bytes > self.buffer_capacity:
            raise ValueError(
                f"buffer_head_bytes ({self.buffer_head_bytes}) exceeds "
                f"buffer_capacity ({self.buffer_capacity})"
            )
        return self

    @property
    def buffer_tail_bytes(self) -> int:
        """Bytes of most recent output retained after truncation."""
        return self.buffer_capacity - self.buffer_head_bytes


def load_settings() -> SpySettings:
    """Read settings from the environment.

    A malformed value disables the spy rather than failing the host, so
    validation errors fall back to the inactive defaults.
    """
    try:
        return SpySettings()
    except ValueError as exc:
        logger.warning("Invalid MSE_* settings, staying inactive: %s", exc)
        return SpySettings.model_construct()


# Module-level instance, import as `from silentspy.config import config`
config = load_settings()
