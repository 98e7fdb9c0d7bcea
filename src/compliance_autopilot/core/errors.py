"""
Structured error taxonomy for Compliance Autopilot.

Every failure that crosses the resilience layer is turned into a typed
``AutopilotError`` exactly once, at the boundary, by :func:`classify_error`.
Everything downstream (the retry executor, evaluators, report formatting)
dispatches on the error *type* and its stable ``code`` instead of probing
``status`` attributes or response headers of whatever transport library
raised the original exception.

Manifesto:
    - **Stable codes:** ``<CATEGORY>_<NUMBER>`` tags that are safe to grep
      in logs and assert on in tests
    - **Explicit retry semantics:** ``is_retryable`` is a pure function of the
      error type and HTTP status
    - **Remediation data:** rate-limit, permission and not-found errors carry
      the fields a user needs to fix the problem
    - **Error chaining:** the original exception is kept as ``cause`` and
      ``__cause__``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                        AutopilotError                            │
        │        (code, status_code, context, cause, retryable)            │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  APIError            ValidationError       ComplianceError       │
        │  (API_1xxx)          (VAL_2xxx)            (CMP_3xxx)            │
        │     │                                          │                 │
        │  RateLimitError                         EvidenceCollectionError  │
        │  PermissionDeniedError                                           │
        │  NotFoundError       ConfigError           InternalError         │
        │  NetworkError        (CFG_4xxx)            (SYS_5xxx)            │
        │                                                │                 │
        │  RetryExhaustedError                    OperationTimeoutError    │
        │  (wraps the last classified failure)    ResourceExhaustedError   │
        └─────────────────────────────────────────────────────────────────┘

Retry rules:
    - ``RateLimitError`` is always retryable
    - ``APIError`` with ``status_code >= 500`` is retryable
    - everything else (4xx, validation, config, exhausted retries) is fatal

Examples:
    >>> error = classify_error(raw_exc, message="Fetching branch protection")
    >>> error.code
    <ErrorCode.API_RATE_LIMIT: 'API_1002'>
    >>> error.retryable
    True
    >>> print(format_for_user(error))
    [API_1002] Fetching branch protection: Rate limit exceeded. Limit: 5000, Remaining: 0
    Rate limit will reset at: 2026-10-17T12:00:00+00:00

Tags:
    error-handling, exception-hierarchy, retry-logic, classification

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

import httpx

RATE_LIMIT_MIN_DELAY_MS = 1_000
BACKOFF_BASE_DELAY_MS = 1_000
BACKOFF_MAX_DELAY_MS = 30_000
DEFAULT_RATE_LIMIT = 5_000


def _aware(moment: datetime) -> datetime:
    """UTC-aware copy; naive values are read as local time, like ``datetime.now()``."""
    return moment.astimezone(UTC)


class ErrorCategory(str, Enum):
    """Top-level failure domains used for routing and reporting."""

    API = "API"
    VALIDATION = "VALIDATION"
    COMPLIANCE = "COMPLIANCE"
    CONFIG = "CONFIG"
    SYSTEM = "SYSTEM"


_CATEGORY_BY_PREFIX = {
    "API": ErrorCategory.API,
    "VAL": ErrorCategory.VALIDATION,
    "CMP": ErrorCategory.COMPLIANCE,
    "CFG": ErrorCategory.CONFIG,
    "SYS": ErrorCategory.SYSTEM,
}


class ErrorCode(str, Enum):
    """
    Stable error codes.

    The value is the greppable tag rendered by :func:`format_for_user`;
    the thousands digit matches the category.
    """

    # API errors (1xxx)
    API_REQUEST_FAILED = "API_1001"
    API_RATE_LIMIT = "API_1002"
    API_UNAUTHORIZED = "API_1003"
    API_NOT_FOUND = "API_1004"
    API_INVALID_RESPONSE = "API_1005"

    # Validation errors (2xxx)
    VALIDATION_FAILED = "VAL_2001"
    VALIDATION_INVALID_INPUT = "VAL_2002"
    VALIDATION_MISSING_REQUIRED = "VAL_2003"
    VALIDATION_INVALID_FORMAT = "VAL_2004"

    # Compliance errors (3xxx)
    COMPLIANCE_CONTROL_FAILED = "CMP_3001"
    COMPLIANCE_EVIDENCE_MISSING = "CMP_3002"
    COMPLIANCE_EVALUATION_ERROR = "CMP_3003"
    COMPLIANCE_INVALID_FRAMEWORK = "CMP_3004"
    COMPLIANCE_REPORT_GENERATION = "CMP_3005"

    # Configuration errors (4xxx)
    CONFIG_INVALID = "CFG_4001"
    CONFIG_MISSING = "CFG_4002"
    CONFIG_PARSE_ERROR = "CFG_4003"

    # System errors (5xxx)
    SYSTEM_INTERNAL_ERROR = "SYS_5001"
    SYSTEM_TIMEOUT = "SYS_5002"
    SYSTEM_RESOURCE_EXHAUSTED = "SYS_5003"

    @property
    def category(self) -> ErrorCategory:
        """Category derived from the code prefix."""
        return _CATEGORY_BY_PREFIX[self.value.split("_", 1)[0]]


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Typed fields cover what the action's collaborators report on (the URL
    that failed, the missing resource, the control being evaluated); any
    other key/value pair lands in ``metadata``.

    Attributes:
        url: URL of the request that failed
        resource: Identifier of a missing or inaccessible resource
        operation: Logical operation name (e.g. ``"list_collaborators"``)
        framework: Compliance framework (``soc2``, ``gdpr``, ``iso27001``)
        control_id: Control under evaluation (e.g. ``CC6.1``)
        metadata: Additional key-value pairs
    """

    url: str | None = None
    resource: str | None = None
    operation: str | None = None
    framework: str | None = None
    control_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging, skipping unset fields."""
        result: dict[str, Any] = {}
        for key in ("url", "resource", "operation", "framework", "control_id"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        result.update(self.metadata)
        return result


class AutopilotError(Exception):
    """
    Base class for every classified failure.

    Subclasses set ``default_code`` and ``default_status_code``; callers can
    override both per instance. ``retryable`` and ``suggested_delay_ms`` are
    derived from the type and status, never stored, so a classified error
    always answers the same way.

    Attributes:
        message: Human-readable message (also ``str(error)``)
        code: :class:`ErrorCode` tag
        status_code: HTTP status when the failure came from an HTTP API
        context: :class:`ErrorContext` with structured metadata
        cause: The wrapped original exception, if any
    """

    default_code: ErrorCode = ErrorCode.SYSTEM_INTERNAL_ERROR
    default_status_code: int | None = None

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        *,
        status_code: int | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.status_code = status_code if status_code is not None else self.default_status_code
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    @property
    def category(self) -> ErrorCategory:
        return self.code.category

    @property
    def retryable(self) -> bool:
        """Whether re-attempting the failed operation could succeed."""
        return is_retryable(self)

    def suggested_delay_ms(self, attempt: int, *, now: datetime | None = None) -> int:
        """Delay this error asks for before retry ``attempt``."""
        return suggested_delay_ms(self, attempt, now=now)

    def with_context(self, **kwargs: Any) -> AutopilotError:
        """
        Add context while building the error (fluent API).

        Mutates and returns ``self``. Construction time only: once an
        error has been raised or handed to the retry executor, treat it as
        immutable and wrap it instead.

        Usage:
            raise APIError("Listing reviews failed").with_context(
                operation="list_reviews", url=url
            )
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "code": self.code.value,
            "category": self.category.value,
            "message": self.message,
            "retryable": self.retryable,
        }
        if self.status_code is not None:
            result["status_code"] = self.status_code
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = {
                "error_type": type(self.cause).__name__,
                "message": str(self.cause),
            }
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, code={self.code.value})"


# =============================================================================
# API ERRORS
# =============================================================================


class APIError(AutopilotError):
    """A call to the source-control platform or the LLM API failed."""

    default_code = ErrorCode.API_REQUEST_FAILED

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        *,
        url: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, code, **kwargs)
        if url is not None:
            self.context.url = url

    @property
    def url(self) -> str | None:
        return self.context.url

    @classmethod
    def rate_limit_exceeded(cls, reset_time: datetime | None = None) -> RateLimitError:
        return RateLimitError("GitHub API rate limit exceeded", reset_time=reset_time)

    @classmethod
    def unauthorized(cls, reason: str | None = None) -> APIError:
        suffix = f": {reason}" if reason else ""
        return cls(
            f"Authentication failed{suffix}",
            ErrorCode.API_UNAUTHORIZED,
            status_code=401,
            context=ErrorContext(metadata={"reason": reason}),
        )

    @classmethod
    def not_found(cls, resource: str) -> NotFoundError:
        return NotFoundError(resource)

    @classmethod
    def invalid_response(cls, reason: str) -> APIError:
        return cls(
            f"Invalid API response: {reason}",
            ErrorCode.API_INVALID_RESPONSE,
            status_code=500,
            context=ErrorContext(metadata={"reason": reason}),
        )


class RateLimitError(APIError):
    """
    The remote quota is exhausted.

    ``reset_time`` is when the quota window reopens; the retry executor
    waits at least until then (with a one second floor).
    """

    default_code = ErrorCode.API_RATE_LIMIT
    default_status_code = 429

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        reset_time: datetime | None = None,
        limit: int = DEFAULT_RATE_LIMIT,
        remaining: int = 0,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.reset_time = _aware(reset_time) if reset_time is not None else datetime.now(UTC)
        self.limit = limit
        self.remaining = remaining
        self.context.metadata.update(
            reset_time=self.reset_time.isoformat(),
            limit=limit,
            remaining=remaining,
        )


class PermissionDeniedError(APIError):
    """The token lacks the scopes needed for a request."""

    default_code = ErrorCode.API_UNAUTHORIZED
    default_status_code = 403

    def __init__(
        self,
        message: str,
        *,
        required_scopes: list[str] | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.required_scopes = list(required_scopes or [])
        self.context.metadata["required_scopes"] = self.required_scopes


class NotFoundError(APIError):
    """A repository, file, pull request or other resource does not exist."""

    default_code = ErrorCode.API_NOT_FOUND
    default_status_code = 404

    def __init__(self, resource: str, message: str | None = None, **kwargs: Any):
        super().__init__(message or f"Resource not found: {resource}", **kwargs)
        self.resource = resource
        self.context.resource = resource


class NetworkError(APIError):
    """The request never produced an HTTP response (reset, DNS, refused)."""


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(AutopilotError):
    """Input failed validation. Never retryable."""

    default_code = ErrorCode.VALIDATION_FAILED
    default_status_code = 400

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        *,
        field: str | None = None,
        expected: str | None = None,
        received: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, code, **kwargs)
        self.field = field
        self.expected = expected
        self.received = received
        for key, value in (("field", field), ("expected", expected), ("received", received)):
            if value is not None:
                self.context.metadata[key] = value

    @classmethod
    def missing_required(cls, field: str) -> ValidationError:
        return cls(
            f"Missing required field: {field}",
            ErrorCode.VALIDATION_MISSING_REQUIRED,
            field=field,
            expected="non-empty value",
        )

    @classmethod
    def invalid_format(cls, field: str, expected: str, received: Any) -> ValidationError:
        return cls(
            f"Invalid format for field '{field}': expected {expected}",
            ErrorCode.VALIDATION_INVALID_FORMAT,
            field=field,
            expected=expected,
            received=received,
        )

    @classmethod
    def invalid_input(cls, message: str, field: str | None = None) -> ValidationError:
        return cls(message, ErrorCode.VALIDATION_INVALID_INPUT, field=field)


# =============================================================================
# COMPLIANCE ERRORS
# =============================================================================


class ComplianceError(AutopilotError):
    """A control could not be evaluated or a report could not be produced."""

    default_code = ErrorCode.COMPLIANCE_EVALUATION_ERROR

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        *,
        control_id: str | None = None,
        framework: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, code, **kwargs)
        self.control_id = control_id
        self.framework = framework
        if control_id is not None:
            self.context.control_id = control_id
        if framework is not None:
            self.context.framework = framework

    @classmethod
    def control_failed(cls, control_id: str, reason: str) -> ComplianceError:
        return cls(
            f"Control {control_id} failed: {reason}",
            ErrorCode.COMPLIANCE_CONTROL_FAILED,
            control_id=control_id,
            context=ErrorContext(metadata={"reason": reason}),
        )

    @classmethod
    def evidence_missing(cls, control_id: str, evidence_type: str) -> ComplianceError:
        return cls(
            f"Missing required evidence for control {control_id}: {evidence_type}",
            ErrorCode.COMPLIANCE_EVIDENCE_MISSING,
            control_id=control_id,
            context=ErrorContext(metadata={"evidence_type": evidence_type}),
        )

    @classmethod
    def invalid_framework(cls, framework: str) -> ComplianceError:
        return cls(
            f"Invalid compliance framework: {framework}",
            ErrorCode.COMPLIANCE_INVALID_FRAMEWORK,
            framework=framework,
        )

    @classmethod
    def report_generation_failed(
        cls, reason: str, cause: BaseException | None = None
    ) -> ComplianceError:
        return cls(
            f"Failed to generate compliance report: {reason}",
            ErrorCode.COMPLIANCE_REPORT_GENERATION,
            context=ErrorContext(metadata={"reason": reason}),
            cause=cause,
        )


class EvidenceCollectionError(ComplianceError):
    """Evidence for a control could not be gathered."""

    default_code = ErrorCode.COMPLIANCE_EVIDENCE_MISSING

    def __init__(self, message: str, control_id: str | None = None, **kwargs: Any):
        super().__init__(message, control_id=control_id, **kwargs)


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(AutopilotError):
    """Configuration is missing or invalid. Never retryable."""

    default_code = ErrorCode.CONFIG_INVALID

    @classmethod
    def missing(cls, config_name: str) -> ConfigError:
        return cls(
            f"Missing required configuration: {config_name}",
            ErrorCode.CONFIG_MISSING,
            context=ErrorContext(metadata={"config_name": config_name}),
        )

    @classmethod
    def invalid(cls, config_name: str, value: Any, reason: str | None = None) -> ConfigError:
        message = f"Invalid configuration for {config_name}: {value!r}"
        if reason:
            message += f" ({reason})"
        return cls(
            message,
            ErrorCode.CONFIG_INVALID,
            context=ErrorContext(metadata={"config_name": config_name, "value": value}),
        )

    @classmethod
    def parse_error(cls, reason: str, cause: BaseException | None = None) -> ConfigError:
        return cls(
            f"Failed to parse configuration: {reason}",
            ErrorCode.CONFIG_PARSE_ERROR,
            context=ErrorContext(metadata={"reason": reason}),
            cause=cause,
        )


# =============================================================================
# SYSTEM ERRORS
# =============================================================================


class InternalError(AutopilotError):
    """Unexpected failure: a bug or an exception nobody classified."""

    default_code = ErrorCode.SYSTEM_INTERNAL_ERROR


class OperationTimeoutError(InternalError):
    """An operation exceeded its time limit."""

    default_code = ErrorCode.SYSTEM_TIMEOUT


class ResourceExhaustedError(InternalError):
    """A local resource (memory, file handles, quota) ran out."""

    default_code = ErrorCode.SYSTEM_RESOURCE_EXHAUSTED


class RetryExhaustedError(AutopilotError):
    """
    A retryable failure persisted through every allowed attempt.

    Keeps the last classified error's code and status so reports group it
    with the underlying failure; ``attempts`` records how often it was tried.
    Never retryable itself, so nested executors do not multiply attempts.
    """

    def __init__(self, last_error: AutopilotError, attempts: int):
        context = replace(last_error.context, metadata=dict(last_error.context.metadata))
        context.metadata["attempts"] = attempts
        super().__init__(
            f"Request failed after {attempts} attempts: {last_error.message}",
            last_error.code,
            status_code=last_error.status_code,
            context=context,
            cause=last_error,
        )
        self.last_error = last_error
        self.attempts = attempts


# =============================================================================
# TAXONOMY FUNCTIONS
# =============================================================================


def is_retryable(error: BaseException) -> bool:
    """Rate limits and 5xx API failures are retryable; nothing else is."""
    if isinstance(error, RetryExhaustedError):
        return False
    if isinstance(error, RateLimitError):
        return True
    if isinstance(error, APIError):
        return error.status_code is not None and error.status_code >= 500
    return False


def is_transient(error: BaseException) -> bool:
    """
    :func:`is_retryable` widened to connection resets and timeouts.

    Suited as a ``should_retry`` override for LLM calls, where dropped
    connections and overloaded responses are routine.
    """
    if isinstance(error, RetryExhaustedError):
        return False
    return is_retryable(error) or isinstance(error, (NetworkError, OperationTimeoutError))


def suggested_delay_ms(
    error: BaseException, attempt: int, *, now: datetime | None = None
) -> int:
    """
    Delay in milliseconds an error asks for before retry ``attempt``.

    Rate limits wait until the quota resets (at least one second); every
    other error uses ``min(1000 * 2**attempt, 30000)``.
    """
    if isinstance(error, RateLimitError):
        now = _aware(now) if now is not None else datetime.now(UTC)
        remaining_ms = (error.reset_time - now).total_seconds() * 1000
        return max(int(remaining_ms), RATE_LIMIT_MIN_DELAY_MS)
    return int(min(BACKOFF_BASE_DELAY_MS * (2 ** attempt), BACKOFF_MAX_DELAY_MS))


def format_for_user(error: BaseException) -> str:
    """
    Render ``[<code>] <message>`` plus URL, reset time and the cause chain.

    Used by the reporting layer only; control flow never parses this.
    """
    if not isinstance(error, AutopilotError):
        return str(error) or type(error).__name__

    lines = [f"[{error.code.value}] {error.message}"]
    if error.context.url:
        lines.append(f"URL: {error.context.url}")
    if isinstance(error, RateLimitError):
        lines.append(f"Rate limit will reset at: {error.reset_time.isoformat()}")

    seen: set[int] = {id(error)}
    cause = error.cause if error.cause is not None else error.__cause__
    while cause is not None and id(cause) not in seen:
        seen.add(id(cause))
        text = cause.message if isinstance(cause, AutopilotError) else str(cause)
        lines.append(f"Caused by: {text or type(cause).__name__}")
        cause = getattr(cause, "cause", None) or cause.__cause__

    return "\n".join(lines)


# =============================================================================
# BOUNDARY CLASSIFICATION
# =============================================================================


def _header(headers: Any, name: str) -> str | None:
    if not headers:
        return None
    for key, value in headers.items():
        if str(key).lower() == name:
            return str(value)
    return None


def _as_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _http_details(raw: BaseException) -> tuple[int | None, Any, str | None]:
    """Pull (status, headers, url) out of whatever the transport raised."""
    if isinstance(raw, httpx.HTTPStatusError):
        return raw.response.status_code, raw.response.headers, str(raw.request.url)

    response = getattr(raw, "response", None)
    status = getattr(raw, "status_code", None)
    if status is None:
        status = getattr(raw, "status", None)
    if status is None and response is not None:
        status = getattr(response, "status_code", None)

    headers = getattr(response, "headers", None) or getattr(raw, "headers", None)
    url = getattr(raw, "url", None)
    return _as_int(status), headers, str(url) if url is not None else None


def _rate_limit_window(headers: Any, now: datetime) -> tuple[datetime, int, int]:
    reset_time: datetime | None = None
    reset_epoch = _as_int(_header(headers, "x-ratelimit-reset"))
    if reset_epoch is not None:
        try:
            reset_time = datetime.fromtimestamp(reset_epoch, UTC)
        except (OverflowError, ValueError, OSError):
            reset_time = None
    if reset_time is None:
        retry_after = _header(headers, "retry-after")
        try:
            reset_time = now + timedelta(seconds=float(retry_after)) if retry_after else now
        except (OverflowError, ValueError):
            reset_time = now
    limit = _as_int(_header(headers, "x-ratelimit-limit"))
    remaining = _as_int(_header(headers, "x-ratelimit-remaining"))
    return (
        reset_time,
        DEFAULT_RATE_LIMIT if limit is None else limit,
        0 if remaining is None else remaining,
    )


def classify_error(
    raw: BaseException,
    *,
    message: str | None = None,
    url: str | None = None,
    resource: str | None = None,
    required_scopes: list[str] | None = None,
    now: datetime | None = None,
) -> AutopilotError:
    """
    Turn any caught exception into a typed :class:`AutopilotError`.

    This is the only function allowed to look at loosely-typed fields
    (``status``, ``status_code``, ``response.headers``) of foreign
    exceptions. Already-classified errors are returned unchanged.

    Args:
        raw: The caught exception
        message: Description of what was being attempted, prefixed to the message
        url: Request URL, when the exception does not carry one
        resource: Resource identifier reported on 404
        required_scopes: Token scopes reported on 401/403
        now: Reference time for ``retry-after`` headers (testing)

    Returns:
        The classified error, chained to ``raw``
    """
    if isinstance(raw, AutopilotError):
        return raw

    status, headers, raw_url = _http_details(raw)
    url = url or raw_url
    prefix = f"{message}: " if message else ""
    text = str(raw) or type(raw).__name__
    lowered = text.lower()
    context = ErrorContext(url=url)

    if status == 429 or (status is None and "rate_limit_error" in lowered):
        reset_time, limit, remaining = _rate_limit_window(headers, now or datetime.now(UTC))
        return RateLimitError(
            f"{prefix}Rate limit exceeded. Limit: {limit}, Remaining: {remaining}",
            reset_time=reset_time,
            limit=limit,
            remaining=remaining,
            context=context,
            cause=raw,
        )

    if status in (401, 403):
        return PermissionDeniedError(
            f"{prefix}Access denied. The token does not have sufficient permissions.",
            required_scopes=required_scopes,
            status_code=status,
            context=context,
            cause=raw,
        )

    if status == 404:
        return NotFoundError(
            resource or url or "unknown",
            message=f"{prefix}Resource not found: {resource or url or 'unknown'}",
            context=context,
            cause=raw,
        )

    if isinstance(raw, (httpx.TimeoutException, TimeoutError)):
        return OperationTimeoutError(
            f"{prefix}Request timed out: {text}", context=context, cause=raw
        )

    if isinstance(raw, (httpx.TransportError, ConnectionError)):
        return NetworkError(f"{prefix}Network failure: {text}", context=context, cause=raw)

    if status is None and "overloaded_error" in lowered:
        return APIError(
            f"{prefix}Upstream overloaded: {text}", status_code=529, context=context, cause=raw
        )

    if status is not None:
        return APIError(
            f"{prefix}Unexpected error: {text} (status {status})",
            status_code=status,
            context=context,
            cause=raw,
        )

    return InternalError(f"{prefix}Unexpected error: {text}", context=context, cause=raw)


__all__ = [
    "ErrorCategory",
    "ErrorCode",
    "ErrorContext",
    "AutopilotError",
    # API
    "APIError",
    "RateLimitError",
    "PermissionDeniedError",
    "NotFoundError",
    "NetworkError",
    # Validation / compliance / config
    "ValidationError",
    "ComplianceError",
    "EvidenceCollectionError",
    "ConfigError",
    # System
    "InternalError",
    "OperationTimeoutError",
    "ResourceExhaustedError",
    "RetryExhaustedError",
    # Functions
    "is_retryable",
    "is_transient",
    "suggested_delay_ms",
    "format_for_user",
    "classify_error",
]
