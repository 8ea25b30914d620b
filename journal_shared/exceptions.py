"""
Exception hierarchy for the Journal Portal client.

This module defines structured exceptions with error codes, context information,
and recovery suggestions so that every failure surfaced by the client library
can be rendered, logged and acted upon consistently by the hosting application.
"""

from datetime import datetime
from typing import Optional, Dict, Any, List
from enum import Enum


class ErrorCode(Enum):
    """Standardized error codes for the Journal Portal client."""

    # Authentication and session errors (1000-1099)
    AUTH_INVALID_CREDENTIALS = "AUTH_1001"
    AUTH_TOKEN_EXPIRED = "AUTH_1002"
    AUTH_INSUFFICIENT_PERMISSIONS = "AUTH_1003"
    AUTH_REFRESH_FAILED = "AUTH_1004"
    AUTH_REFRESH_TOKEN_MISSING = "AUTH_1005"
    AUTH_SESSION_EXPIRED = "AUTH_1006"

    # Network and communication errors (2000-2099)
    NETWORK_CONNECTION_FAILED = "NETWORK_2001"
    NETWORK_TIMEOUT = "NETWORK_2002"
    NETWORK_SSL_ERROR = "NETWORK_2003"

    # Upstream service errors (3000-3099)
    SERVICE_UNAVAILABLE = "SERVICE_3001"
    SERVICE_INTERNAL_ERROR = "SERVICE_3002"

    # Request errors (4000-4099)
    REQUEST_FAILED = "REQUEST_4001"
    REQUEST_NOT_FOUND = "REQUEST_4002"
    REQUEST_INVALID_RESPONSE = "REQUEST_4003"

    # Validation errors (5000-5099)
    VALIDATION_INVALID_INPUT = "VALIDATION_5001"
    VALIDATION_MISSING_REQUIRED_FIELD = "VALIDATION_5002"

    # Local storage errors (6000-6099)
    STORAGE_WRITE_FAILED = "STORAGE_6001"
    STORAGE_READ_FAILED = "STORAGE_6002"

    # Configuration errors (8000-8099)
    CONFIG_FILE_NOT_FOUND = "CONFIG_8001"
    CONFIG_INVALID_FORMAT = "CONFIG_8002"
    CONFIG_INVALID_VALUE = "CONFIG_8004"

    # Internal errors (9000-9099)
    INTERNAL_UNEXPECTED_ERROR = "INTERNAL_9001"


class ErrorSeverity(Enum):
    """Error severity levels for logging and handling."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RecoveryAction(Enum):
    """Suggested recovery actions for errors."""
    RETRY = "retry"
    RETRY_LATER = "retry_later"
    REFRESH_TOKEN = "refresh_token"
    LOGIN_AGAIN = "login_again"
    USER_INTERVENTION = "user_intervention"
    CONTACT_ADMIN = "contact_admin"
    IGNORE = "ignore"


class JournalClientError(Exception):
    """
    Base exception class for all Journal Portal client errors.

    Provides structured error information including error codes, context,
    and recovery suggestions for consistent error handling.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        context: Optional[Dict[str, Any]] = None,
        recovery_actions: Optional[List[RecoveryAction]] = None,
        cause: Optional[Exception] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)

        self.message = message
        self.error_code = error_code
        self.severity = severity
        self.context = context or {}
        self.recovery_actions = recovery_actions or []
        self.cause = cause
        self.user_message = user_message or message
        self.timestamp = datetime.now()

        if cause:
            self.context['cause_type'] = type(cause).__name__
            self.context['cause_message'] = str(cause)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary format for serialization."""
        return {
            'error': {
                'code': self.error_code.value,
                'message': self.message,
                'user_message': self.user_message,
                'severity': self.severity.value,
                'timestamp': self.timestamp.isoformat(),
                'context': self.context,
                'recovery_actions': [action.value for action in self.recovery_actions],
                'cause': {
                    'type': self.context.get('cause_type'),
                    'message': self.context.get('cause_message')
                } if self.cause else None
            }
        }


class NetworkError(JournalClientError):
    """The request never produced an HTTP response."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.NETWORK_CONNECTION_FAILED, **kwargs):
        super().__init__(
            message=message,
            error_code=error_code,
            severity=ErrorSeverity.MEDIUM,
            recovery_actions=[RecoveryAction.RETRY_LATER],
            **kwargs
        )


class APIResponseError(JournalClientError):
    """
    The API answered with an error status.

    Carries the HTTP status, the decoded body, the response headers, the
    request path and the failure classification the pipeline assigned.
    """

    default_code = ErrorCode.REQUEST_FAILED
    default_severity = ErrorSeverity.LOW
    default_recovery: List[RecoveryAction] = [RecoveryAction.USER_INTERVENTION]

    def __init__(
        self,
        message: str,
        status: int,
        path: str,
        data: Any = None,
        headers: Optional[Dict[str, str]] = None,
        kind: Any = None,
        **kwargs
    ):
        context = kwargs.pop('context', {})
        context.update({'status': status, 'path': path})

        super().__init__(
            message=message,
            error_code=kwargs.pop('error_code', self.default_code),
            severity=kwargs.pop('severity', self.default_severity),
            recovery_actions=kwargs.pop('recovery_actions', list(self.default_recovery)),
            context=context,
            **kwargs
        )
        self.status = status
        self.path = path
        self.data = data
        self.headers = headers or {}
        self.kind = kind

    @property
    def server_message(self) -> Optional[str]:
        """The ``message`` field of a JSON error body, if any."""
        if isinstance(self.data, dict):
            message = self.data.get('message')
            if isinstance(message, str):
                return message
        return None


class ServiceUnavailableError(APIResponseError):
    """Backend infrastructure outage (503 with the service_unavailable discriminator)."""

    default_code = ErrorCode.SERVICE_UNAVAILABLE
    default_severity = ErrorSeverity.HIGH
    default_recovery = [RecoveryAction.RETRY_LATER]


class AuthenticationError(APIResponseError):
    """Request rejected with 401."""

    default_code = ErrorCode.AUTH_TOKEN_EXPIRED
    default_severity = ErrorSeverity.HIGH
    default_recovery = [RecoveryAction.REFRESH_TOKEN, RecoveryAction.LOGIN_AGAIN]


class PermissionDeniedError(APIResponseError):
    """Request rejected with 403."""

    default_code = ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS
    default_recovery = [RecoveryAction.CONTACT_ADMIN]


class NotFoundError(APIResponseError):
    """Request rejected with 404."""

    default_code = ErrorCode.REQUEST_NOT_FOUND


class ServerError(APIResponseError):
    """Any other 5xx answer."""

    default_code = ErrorCode.SERVICE_INTERNAL_ERROR
    default_severity = ErrorSeverity.HIGH
    default_recovery = [RecoveryAction.RETRY_LATER, RecoveryAction.CONTACT_ADMIN]


class RefreshFailedError(JournalClientError):
    """Session renewal failed; the session is over."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.AUTH_REFRESH_FAILED, **kwargs):
        super().__init__(
            message=message,
            error_code=error_code,
            severity=ErrorSeverity.HIGH,
            recovery_actions=[RecoveryAction.LOGIN_AGAIN],
            **kwargs
        )


class TokenStorageError(JournalClientError):
    """Credentials could not be persisted."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.STORAGE_WRITE_FAILED, **kwargs):
        super().__init__(
            message=message,
            error_code=error_code,
            severity=ErrorSeverity.HIGH,
            recovery_actions=[RecoveryAction.USER_INTERVENTION],
            **kwargs
        )


class ValidationError(JournalClientError):
    """Input validation related errors."""

    def __init__(self, message: str, field_name: Optional[str] = None, **kwargs):
        context = kwargs.pop('context', {})
        if field_name:
            context['field_name'] = field_name

        error_code = kwargs.pop('error_code', ErrorCode.VALIDATION_INVALID_INPUT)
        severity = kwargs.pop('severity', ErrorSeverity.LOW)
        recovery_actions = kwargs.pop('recovery_actions', [RecoveryAction.USER_INTERVENTION])

        super().__init__(
            message=message,
            error_code=error_code,
            severity=severity,
            recovery_actions=recovery_actions,
            context=context,
            **kwargs
        )


class ConfigurationError(JournalClientError):
    """Configuration related errors."""

    def __init__(self, message: str, error_code: ErrorCode, config_key: Optional[str] = None, **kwargs):
        context = kwargs.pop('context', {})
        if config_key:
            context['config_key'] = config_key

        super().__init__(
            message=message,
            error_code=error_code,
            severity=ErrorSeverity.HIGH,
            recovery_actions=[RecoveryAction.USER_INTERVENTION],
            context=context,
            **kwargs
        )


def handle_exception(
    exception: Exception,
    context: Optional[Dict[str, Any]] = None,
    default_error_code: ErrorCode = ErrorCode.INTERNAL_UNEXPECTED_ERROR
) -> JournalClientError:
    """
    Convert a generic exception to a structured JournalClientError.

    Args:
        exception: The original exception
        context: Additional context information
        default_error_code: Default error code if specific mapping not found

    Returns:
        Structured JournalClientError
    """
    if isinstance(exception, JournalClientError):
        return exception

    if isinstance(exception, TimeoutError):
        return NetworkError(str(exception) or "Request timed out",
                            error_code=ErrorCode.NETWORK_TIMEOUT, context=context, cause=exception)
    if isinstance(exception, ConnectionError):
        return NetworkError(str(exception), context=context, cause=exception)
    if isinstance(exception, ValueError):
        return ValidationError(str(exception), context=context, cause=exception)

    return JournalClientError(
        message=str(exception),
        error_code=default_error_code,
        context=context,
        cause=exception
    )
