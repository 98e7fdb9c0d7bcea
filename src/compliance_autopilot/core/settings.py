"""Settings for the resilience layer.

The action's input parsing lives elsewhere; this module only carries the
knobs the rate limiter, retry executor, response cache and logging read.
Values come from ``AUTOPILOT_*`` environment variables or a ``.env`` file
and fall back to defaults that suit GitHub's and Anthropic's public quotas.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** Type-checked when loaded, not at first use
    - **Environment-driven:** ``AUTOPILOT_MAX_REQUESTS_PER_MINUTE=30``
    - **Typed failures:** invalid values surface as ``ConfigError`` (CFG_4003)

Examples:
    >>> settings = load_settings(max_concurrent_requests=4)
    >>> settings.max_concurrent_requests
    4

Tags:
    settings, configuration, pydantic, environment
"""

from __future__ import annotations

from typing import Any

from pydantic import Field
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from compliance_autopilot.core.errors import ConfigError


class AutopilotSettings(BaseSettings):
    """Resilience and logging settings.

    Fields
    ──────
    log_level                : structlog level name
    log_json                 : JSON logs (``None`` → JSON unless stdout is a tty)
    max_requests_per_minute  : sliding-window admission cap
    max_concurrent_requests  : in-flight admission cap
    backoff_multiplier       : exponential backoff growth factor
    max_retries              : attempts per call
    initial_delay_ms         : first backoff delay
    max_delay_ms             : backoff cap
    jitter                   : randomise backoff by ±25 %
    cache_max_size           : response cache entries
    cache_ttl_ms             : response cache lifetime
    """

    model_config = SettingsConfigDict(
        env_prefix="AUTOPILOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool | None = None

    # ── Admission control ────────────────────────────────────────
    max_requests_per_minute: int = Field(default=50, ge=1)
    max_concurrent_requests: int = Field(default=10, ge=1)

    # ── Retry ────────────────────────────────────────────────────
    backoff_multiplier: float = Field(default=2.0, gt=1)
    max_retries: int = Field(default=3, ge=1)
    initial_delay_ms: int = Field(default=1_000, ge=0)
    max_delay_ms: int = Field(default=30_000, ge=0)
    jitter: bool = True

    # ── Cache ────────────────────────────────────────────────────
    cache_max_size: int = Field(default=1_000, ge=1)
    cache_ttl_ms: int = Field(default=3_600_000, ge=0)


def load_settings(**overrides: Any) -> AutopilotSettings:
    """Load settings from the environment, applying explicit overrides.

    Raises:
        ConfigError: A value failed validation (code ``CFG_4003``).
    """
    try:
        return AutopilotSettings(**overrides)
    except PydanticValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        raise ConfigError.parse_error(f"invalid values for {fields}", cause=exc) from exc


__all__ = ["AutopilotSettings", "load_settings"]
