"""Error categorisation and retry helpers for calls that leave the process."""

import logging
import time
from enum import Enum
from typing import Any, Callable, Optional, Sequence

from pymongo.errors import PyMongoError

from storybook.errors import InvalidRequest, LibraryImageNotFound, NotEligible, PageNotFound, StorageUnavailable


logger = logging.getLogger(__name__)


class ErrorSeverity(str, Enum):
    """Error severity levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """Error category types."""
    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    AUTHENTICATION_ERROR = "authentication_error"
    QUOTA_EXCEEDED = "quota_exceeded"
    STORAGE_ERROR = "storage_error"
    VALIDATION_ERROR = "validation_error"
    DATA_ERROR = "data_error"
    PROCESSING_ERROR = "processing_error"


RETRYABLE_CATEGORIES = frozenset({
    ErrorCategory.RATE_LIMIT,
    ErrorCategory.TIMEOUT,
    ErrorCategory.NETWORK_ERROR,
    ErrorCategory.PROCESSING_ERROR,
})


class ErrorAnalyzer:
    """Analyzes errors to decide whether a failed call is worth repeating."""

    ERROR_PATTERNS = {
        ErrorCategory.RATE_LIMIT: [
            'rate limit', 'too many requests', 'requests per minute',
            'rate_limit_exceeded', 'throttled', '429'
        ],
        ErrorCategory.TIMEOUT: [
            'timeout', 'timed out', 'read timeout', 'request timeout'
        ],
        ErrorCategory.NETWORK_ERROR: [
            'connection error', 'network', 'connection refused',
            'connection reset', 'dns', 'socket', 'unreachable'
        ],
        ErrorCategory.AUTHENTICATION_ERROR: [
            'authentication', 'unauthorized', 'invalid api key', 'forbidden',
            '401', '403', 'access denied', 'invalid token'
        ],
        ErrorCategory.QUOTA_EXCEEDED: [
            'quota', 'usage limit', 'billing', 'insufficient funds', 'credits'
        ],
    }

    @classmethod
    def categorize_error(cls, error: Exception, error_message: Optional[str] = None) -> ErrorCategory:
        """Categorize an error based on its type and message."""
        # Library errors carry their own meaning regardless of message text
        if isinstance(error, InvalidRequest):
            return ErrorCategory.VALIDATION_ERROR
        if isinstance(error, (StorageUnavailable, PyMongoError)):
            return ErrorCategory.STORAGE_ERROR
        if isinstance(error, (LibraryImageNotFound, PageNotFound, NotEligible)):
            return ErrorCategory.DATA_ERROR

        error_text = (error_message or str(error)).lower()
        error_type = type(error).__name__.lower()

        for category, patterns in cls.ERROR_PATTERNS.items():
            for pattern in patterns:
                if pattern in error_text or pattern in error_type:
                    return category

        if isinstance(error, TimeoutError):
            return ErrorCategory.TIMEOUT
        elif isinstance(error, (ConnectionError, OSError)):
            return ErrorCategory.NETWORK_ERROR
        elif isinstance(error, ValueError):
            return ErrorCategory.VALIDATION_ERROR
        else:
            return ErrorCategory.PROCESSING_ERROR

    @classmethod
    def assess_severity(cls, error_category: ErrorCategory, attempt_number: int = 1) -> ErrorSeverity:
        """Assess the severity of an error."""
        severity_mapping = {
            ErrorCategory.AUTHENTICATION_ERROR: ErrorSeverity.CRITICAL,
            ErrorCategory.QUOTA_EXCEEDED: ErrorSeverity.HIGH,
            ErrorCategory.STORAGE_ERROR: ErrorSeverity.HIGH,
            ErrorCategory.RATE_LIMIT: ErrorSeverity.MEDIUM,
            ErrorCategory.TIMEOUT: ErrorSeverity.MEDIUM,
            ErrorCategory.NETWORK_ERROR: ErrorSeverity.MEDIUM,
            ErrorCategory.PROCESSING_ERROR: ErrorSeverity.LOW,
            ErrorCategory.VALIDATION_ERROR: ErrorSeverity.LOW,
            ErrorCategory.DATA_ERROR: ErrorSeverity.LOW,
        }

        base_severity = severity_mapping.get(error_category, ErrorSeverity.MEDIUM)

        # Escalate severity with repeated attempts
        if attempt_number > 3:
            if base_severity == ErrorSeverity.LOW:
                return ErrorSeverity.MEDIUM
            elif base_severity == ErrorSeverity.MEDIUM:
                return ErrorSeverity.HIGH

        return base_severity

    @classmethod
    def is_retryable(cls, error: Exception) -> bool:
        return cls.categorize_error(error) in RETRYABLE_CATEGORIES


RATE_LIMIT_DELAY_SECONDS = 5.0


def with_retries(
    func: Callable[..., Any],
    *args: Any,
    max_attempts: int = 3,
    delays: Sequence[float] = (1.0, 3.0),
    sleep: Callable[[float], None] = time.sleep,
    **kwargs: Any,
) -> Any:
    """Call ``func`` until it succeeds, retrying transient failures.

    Rate limits wait at least five seconds; timeouts, network and generic
    processing errors wait ``delays[attempt - 1]`` (the last delay repeats).
    Any other category, or the final attempt, re-raises the original error.
    """
    name = getattr(func, "__name__", repr(func))

    for attempt in range(1, max_attempts + 1):
        try:
            result = func(*args, **kwargs)
            if attempt > 1:
                logger.info(f"Successfully recovered {name} on attempt {attempt}")
            return result
        except Exception as error:
            category = ErrorAnalyzer.categorize_error(error)
            severity = ErrorAnalyzer.assess_severity(category, attempt)
            logger.warning(
                f"Error in {name} (attempt {attempt}/{max_attempts}): "
                f"{category.value} - {error}"
            )

            if category not in RETRYABLE_CATEGORIES or severity == ErrorSeverity.CRITICAL:
                raise
            if attempt >= max_attempts:
                logger.error(f"Max attempts reached for {name}")
                raise

            delay = delays[min(attempt, len(delays)) - 1] if delays else 0.0
            if category == ErrorCategory.RATE_LIMIT:
                delay = max(delay, RATE_LIMIT_DELAY_SECONDS)
            if delay > 0:
                logger.info(f"Retrying {name} in {delay:.1f} seconds...")
                sleep(delay)
