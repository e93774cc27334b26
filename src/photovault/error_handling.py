"""
Error types and classification for the photovault application.

Every failure the services raise is a ``PhotoVaultError`` carrying a
stable ``code`` for callers, a category and severity for logging, and a
Portuguese ``user_message`` for the UI. Exceptions coming from DuckDB,
PyJWT or Google Cloud Storage are mapped onto the same hierarchy by
``ErrorHandler`` so the handlers only ever deal with one shape.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

import duckdb
import jwt
from google.api_core.exceptions import GoogleAPIError

from photovault.logging_config import get_logger, log_error, log_security_event

logger = get_logger(__name__)

RLS_VIOLATION_MESSAGE = "new row violates row-level security policy"


class ErrorCategory(Enum):
    """Error categories for classification and handling."""

    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    UPLOAD = "upload"
    DATABASE = "database"
    STORAGE = "storage"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


USER_MESSAGES = {
    ErrorCategory.AUTHENTICATION: "Falha na autenticação. Entre novamente.",
    ErrorCategory.AUTHORIZATION: "Operação não permitida.",
    ErrorCategory.UPLOAD: "Erro ao enviar foto.",
    ErrorCategory.DATABASE: "Erro ao acessar os dados.",
    ErrorCategory.STORAGE: "Erro no armazenamento de arquivos.",
    ErrorCategory.VALIDATION: "Dados inválidos.",
    ErrorCategory.UNKNOWN: "Ocorreu um erro inesperado.",
}

SECURITY_CATEGORIES = (ErrorCategory.AUTHENTICATION, ErrorCategory.AUTHORIZATION)


@dataclass
class ErrorInfo:
    """Snapshot of an error as handed to the UI layer."""

    category: ErrorCategory
    severity: ErrorSeverity
    code: str
    message: str
    user_message: str
    timestamp: datetime
    details: dict[str, Any] = field(default_factory=dict)
    recoverable: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
            "user_message": self.user_message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "recoverable": self.recoverable,
        }


class PhotoVaultError(Exception):
    """
    Base exception for photovault.

    Subclasses only declare class attributes; the constructor fills in the
    code and user message from them when the caller does not. The error is
    logged as soon as it is created, and authentication or authorization
    failures are additionally recorded as security events.
    """

    category = ErrorCategory.UNKNOWN
    severity = ErrorSeverity.MEDIUM
    default_code: str | None = None
    default_user_message: str | None = None
    # Show the exception message itself to the user (validation and login errors)
    message_is_user_facing = False
    recoverable = True

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        recoverable: bool | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(message)
        self.code = code or self.default_code or f"{self.category.value}_error"
        if user_message is None:
            user_message = message if self.message_is_user_facing else self.default_user_message
        self.user_message = user_message or USER_MESSAGES[self.category]
        self.details = details or {}
        if recoverable is not None:
            self.recoverable = recoverable
        self.original_exception = original_exception
        self.timestamp = datetime.now()

        self._log()

    def _log(self) -> None:
        context = {
            "category": self.category.value,
            "severity": self.severity.value,
            "code": self.code,
            "recoverable": self.recoverable,
            **self.details,
        }
        if self.original_exception is not None:
            context["original_exception"] = str(self.original_exception)

        log_error(self, context)
        if self.category in SECURITY_CATEGORIES:
            log_security_event(self.category.value, context=context)

    def get_error_info(self) -> ErrorInfo:
        return ErrorInfo(
            category=self.category,
            severity=self.severity,
            code=self.code,
            message=str(self),
            user_message=self.user_message,
            timestamp=self.timestamp,
            details=self.details,
            recoverable=self.recoverable,
        )


class AuthenticationError(PhotoVaultError):
    """Bad credentials, or an invalid, expired or revoked session."""

    category = ErrorCategory.AUTHENTICATION
    severity = ErrorSeverity.HIGH
    default_code = "auth_failed"
    message_is_user_facing = True


class AuthorizationError(PhotoVaultError):
    """Row-level or storage policy denials. The message never says whether the target exists."""

    category = ErrorCategory.AUTHORIZATION
    severity = ErrorSeverity.HIGH
    default_code = "rls_violation"
    recoverable = False

    def __init__(self, message: str = RLS_VIOLATION_MESSAGE, **kwargs: Any):
        super().__init__(message, **kwargs)


class UploadError(PhotoVaultError):
    """Upload and delete protocol errors, including partial failures."""

    category = ErrorCategory.UPLOAD
    default_code = "upload_failed"


class DatabaseError(PhotoVaultError):
    category = ErrorCategory.DATABASE
    severity = ErrorSeverity.HIGH
    default_code = "database_error"


class StorageError(PhotoVaultError):
    category = ErrorCategory.STORAGE
    severity = ErrorSeverity.HIGH
    default_code = "storage_error"


class ValidationError(PhotoVaultError):
    """Client-side validation errors."""

    category = ErrorCategory.VALIDATION
    severity = ErrorSeverity.LOW
    default_code = "validation_failed"
    message_is_user_facing = True


# Library exceptions map by type first; anything else falls back to keywords.
EXCEPTION_TYPES: tuple[tuple[type[BaseException], type[PhotoVaultError]], ...] = (
    (jwt.PyJWTError, AuthenticationError),
    (duckdb.Error, DatabaseError),
    (GoogleAPIError, StorageError),
)

MESSAGE_KEYWORDS: tuple[tuple[tuple[str, ...], type[PhotoVaultError]], ...] = (
    (("credentials", "jwt", "token", "session", "unauthorized"), AuthenticationError),
    (("permission", "row-level security", "forbidden", "not allowed"), AuthorizationError),
    (("duckdb", "sql", "constraint", "database"), DatabaseError),
    (("storage", "gcs", "bucket", "blob"), StorageError),
    (("upload", "too large"), UploadError),
)


def classify_exception(error: Exception) -> type[PhotoVaultError]:
    """Pick the PhotoVaultError subclass matching a foreign exception."""
    for exception_type, error_class in EXCEPTION_TYPES:
        if isinstance(error, exception_type):
            return error_class

    lowered = str(error).lower()
    for keywords, error_class in MESSAGE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return error_class

    return PhotoVaultError


class ErrorHandler:
    """Turns any exception into an ErrorInfo and counts codes."""

    def __init__(self) -> None:
        self.error_counts: dict[str, int] = {}

    def handle_error(self, error: Exception, context: dict[str, Any] | None = None) -> ErrorInfo:
        """
        Classify an exception and return its ErrorInfo.

        PhotoVaultError instances pass through unchanged; other exceptions
        are wrapped in the class chosen by ``classify_exception`` with the
        original type and the caller's context in ``details``.
        """
        if not isinstance(error, PhotoVaultError):
            error_class = classify_exception(error)
            details = {"original_type": type(error).__name__, **(context or {})}
            # Library text stays in the logs; the UI gets the category message
            error = error_class(
                str(error),
                user_message=USER_MESSAGES[error_class.category],
                details=details,
                original_exception=error,
            )

        error_info = error.get_error_info()
        self._track_error(error_info.code)
        return error_info

    def _track_error(self, error_code: str) -> None:
        self.error_counts[error_code] = self.error_counts.get(error_code, 0) + 1

        if self.error_counts[error_code] % 10 == 0:
            logger.warning("frequent_error_detected", error_code=error_code, count=self.error_counts[error_code])

    def get_error_statistics(self) -> dict[str, int]:
        return self.error_counts.copy()

    def reset_statistics(self) -> None:
        self.error_counts.clear()


error_handler = ErrorHandler()


def handle_error(error: Exception, context: dict[str, Any] | None = None) -> ErrorInfo:
    """Global error handling function."""
    return error_handler.handle_error(error, context)