"""Error Hierarchy: typed, categorized exceptions for the dispatch layer.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - http_status is the status the fault translator reports for the error
    - Startup errors (classification, mount, configuration) never reach a request
    - No internal details leaked in user-facing messages

Design Decisions:
    - Single hierarchy with GatewayError base: the fault translator maps every
      subclass through http_status and message
    - ErrorContext as dataclass: request metadata travels with the error
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    CONTEXT = "context"
    ENCRYPTION = "encryption"
    PERSISTENCE = "persistence"
    CONFIGURATION = "configuration"
    INTERNAL = "internal"
    TIMEOUT = "timeout"


@dataclass
class ErrorContext:
    """Request metadata attached to an error for logs."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    request_id: str | None = None
    tenant_id: str | None = None
    path: str | None = None
    debug_info: dict[str, Any] | None = None


class GatewayError(Exception):
    """Base exception for all dispatch-layer errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_log_extra(self) -> dict:
        """Fields merged into the log record when the error is logged."""
        return {
            "error_code": self.code,
            "request_id": self.context.request_id,
            "tenant_id": self.context.tenant_id,
            "path": self.context.path,
        }


# ─── Request-time errors ────────────────────────────────────────

class ContextConstructionError(GatewayError):
    """Building the per-request context failed."""
    def __init__(self, message: str, context: ErrorContext | None = None, http_status: int = 500):
        super().__init__(
            message, "CONTEXT_CONSTRUCTION_FAILED", ErrorCategory.CONTEXT,
            ErrorSeverity.ERROR, context, http_status,
        )


class ContextTimeoutError(ContextConstructionError):
    """Context construction exceeded the configured timeout."""
    def __init__(self, timeout_seconds: float, context: ErrorContext | None = None):
        super().__init__(
            f"Request context was not ready within {timeout_seconds:g}s",
            context, 504,
        )
        self.code = "CONTEXT_TIMEOUT"
        self.category = ErrorCategory.TIMEOUT
        self.timeout_seconds = timeout_seconds


class ContextMissingError(GatewayError):
    """A handler asked for the request context on a path that has none."""
    def __init__(self, path: str, context: ErrorContext | None = None):
        super().__init__(
            f"No request context attached for '{path}'",
            "CONTEXT_MISSING", ErrorCategory.CONTEXT,
            ErrorSeverity.CRITICAL, context, 500,
        )


class EncryptionError(GatewayError):
    """Encrypting or decrypting a response body failed."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "ENCRYPTION_FAILED", ErrorCategory.ENCRYPTION,
            ErrorSeverity.CRITICAL, context, 500,
        )


class ProviderUnavailableError(GatewayError):
    """A persistence provider could not serve the operation."""
    def __init__(self, provider: str, message: str, context: ErrorContext | None = None):
        super().__init__(
            f"{provider} unavailable: {message}",
            "PROVIDER_UNAVAILABLE", ErrorCategory.PERSISTENCE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.provider = provider


# ─── Startup errors ─────────────────────────────────────────────

class RouteClassificationError(GatewayError):
    """A qualified route was declared both public and admin."""
    def __init__(self, overlapping: list[str]):
        super().__init__(
            f"Routes declared both public and admin: {', '.join(overlapping)}",
            "ROUTE_CLASSIFICATION_CONFLICT", ErrorCategory.CONFIGURATION,
            ErrorSeverity.CRITICAL,
        )
        self.overlapping = overlapping


class MountError(GatewayError):
    """The router pipeline could not be assembled."""
    def __init__(self, message: str):
        super().__init__(
            message, "MOUNT_FAILED", ErrorCategory.CONFIGURATION,
            ErrorSeverity.CRITICAL,
        )


class ConfigurationError(GatewayError):
    """A setting has an unusable value."""
    def __init__(self, setting: str, message: str):
        super().__init__(
            f"Invalid setting '{setting}': {message}",
            "CONFIGURATION_ERROR", ErrorCategory.CONFIGURATION,
            ErrorSeverity.CRITICAL,
        )
        self.setting = setting
