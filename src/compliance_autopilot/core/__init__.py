"""Compliance Autopilot Core -- primitives shared by every outbound call.

Architecture::

    Layer 1 -- Errors & Time
        errors.py          ErrorCode taxonomy, AutopilotError hierarchy,
                           classify_error / is_retryable / suggested_delay_ms
        timestamps.py      Millisecond monotonic clock + UTC helper

    Layer 2 -- Caching
        hashing.py         Namespaced content fingerprints
        cache.py           ResponseCache (TTL, bounded, insertion-order eviction)

    Layer 3 -- Ambient
        logging.py         structlog configuration
        settings.py        AUTOPILOT_* settings (pydantic-settings)
"""

from compliance_autopilot.core.cache import (
    CacheEntry,
    CacheHit,
    CacheStats,
    ResponseCache,
)
from compliance_autopilot.core.errors import (
    APIError,
    AutopilotError,
    ComplianceError,
    ConfigError,
    ErrorCategory,
    ErrorCode,
    ErrorContext,
    EvidenceCollectionError,
    InternalError,
    NetworkError,
    NotFoundError,
    OperationTimeoutError,
    PermissionDeniedError,
    RateLimitError,
    ResourceExhaustedError,
    RetryExhaustedError,
    ValidationError,
    classify_error,
    format_for_user,
    is_retryable,
    is_transient,
    suggested_delay_ms,
)
from compliance_autopilot.core.hashing import canonical_bytes, fingerprint
from compliance_autopilot.core.logging import (
    bind_context,
    configure_logging,
    get_logger,
    unbind_context,
)
from compliance_autopilot.core.settings import AutopilotSettings, load_settings
from compliance_autopilot.core.timestamps import monotonic_ms, utcnow

__all__ = [
    # cache
    "CacheEntry",
    "CacheHit",
    "CacheStats",
    "ResponseCache",
    # errors
    "APIError",
    "AutopilotError",
    "ComplianceError",
    "ConfigError",
    "ErrorCategory",
    "ErrorCode",
    "ErrorContext",
    "EvidenceCollectionError",
    "InternalError",
    "NetworkError",
    "NotFoundError",
    "OperationTimeoutError",
    "PermissionDeniedError",
    "RateLimitError",
    "ResourceExhaustedError",
    "RetryExhaustedError",
    "ValidationError",
    "classify_error",
    "format_for_user",
    "is_retryable",
    "is_transient",
    "suggested_delay_ms",
    # hashing
    "canonical_bytes",
    "fingerprint",
    # logging
    "bind_context",
    "configure_logging",
    "get_logger",
    "unbind_context",
    # settings
    "AutopilotSettings",
    "load_settings",
    # timestamps
    "monotonic_ms",
    "utcnow",
]
