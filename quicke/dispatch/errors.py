"""Provider failure taxonomy.

Classifies invocation failures into stable error types so the dispatcher can
decide whether a failure is worth retrying, and so the UI receives a readable
message instead of a raw vendor payload.
"""

from __future__ import annotations

from enum import Enum


class ErrorType(str, Enum):
    """Classified provider failure types."""

    API_KEY_MISSING = "API_KEY_MISSING"
    MODEL_UNAVAILABLE = "MODEL_UNAVAILABLE"
    TIMEOUT = "TIMEOUT"
    MAX_RETRIES_EXCEEDED = "MAX_RETRIES_EXCEEDED"
    EMPTY_RESPONSE = "EMPTY_RESPONSE"
    RATE_LIMIT = "RATE_LIMIT"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    INSUFFICIENT_QUOTA = "INSUFFICIENT_QUOTA"
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_FORMAT = "INVALID_FORMAT"
    INVALID_PARAMETERS = "INVALID_PARAMETERS"
    SERVER_ERROR = "SERVER_ERROR"
    SERVER_OVERLOADED = "SERVER_OVERLOADED"
    TOKEN_LIMIT_EXCEEDED = "TOKEN_LIMIT_EXCEEDED"
    QUEUE_FULL = "QUEUE_FULL"
    CANCELLED = "CANCELLED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


# Failures that another attempt cannot fix
NON_RETRYABLE: frozenset[ErrorType] = frozenset(
    {
        ErrorType.API_KEY_MISSING,
        ErrorType.MODEL_UNAVAILABLE,
        ErrorType.INSUFFICIENT_BALANCE,
        ErrorType.INSUFFICIENT_QUOTA,
        ErrorType.TOKEN_LIMIT_EXCEEDED,
        ErrorType.CANCELLED,
    }
)

_STATUS_TO_TYPE: dict[int, ErrorType] = {
    400: ErrorType.INVALID_FORMAT,
    401: ErrorType.API_KEY_MISSING,
    402: ErrorType.INSUFFICIENT_BALANCE,
    403: ErrorType.API_KEY_MISSING,
    404: ErrorType.MODEL_UNAVAILABLE,
    408: ErrorType.TIMEOUT,
    422: ErrorType.INVALID_PARAMETERS,
    429: ErrorType.RATE_LIMIT,
    500: ErrorType.SERVER_ERROR,
    502: ErrorType.SERVER_ERROR,
    503: ErrorType.SERVER_OVERLOADED,
    529: ErrorType.SERVER_OVERLOADED,  # Anthropic "overloaded_error"
}


class ProviderError(Exception):
    """Raised by an invocation when a provider call fails."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.UNKNOWN_ERROR,
        status_code: int = 0,
    ):
        super().__init__(message)
        self.error_type = error_type
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.error_type not in NON_RETRYABLE


def classify_error(error: BaseException | str | None) -> ErrorType:
    """Classify an exception (or bare message) into an ErrorType.

    Message patterns take precedence over status codes for the cases where
    vendors reuse a generic status (e.g. 400 for context-length overflows,
    429 for exhausted quota).
    """
    if error is None:
        return ErrorType.UNKNOWN_ERROR

    if isinstance(error, ProviderError) and error.error_type != ErrorType.UNKNOWN_ERROR:
        return error.error_type

    message = error if isinstance(error, str) else describe_error(error, default="")
    lowered = message.lower()
    status = getattr(error, "status_code", 0) or getattr(error, "status", 0) or 0

    if "maximum context length" in lowered or "token limit" in lowered or "too long" in lowered:
        return ErrorType.TOKEN_LIMIT_EXCEEDED
    if "insufficient credits" in lowered or "insufficient balance" in lowered:
        return ErrorType.INSUFFICIENT_BALANCE
    if "exceeded your current quota" in lowered or "insufficient_quota" in lowered:
        return ErrorType.INSUFFICIENT_QUOTA
    if "rate limit" in lowered or "too many requests" in lowered or "free-models-per-day" in lowered:
        return ErrorType.RATE_LIMIT

    if status in _STATUS_TO_TYPE:
        return _STATUS_TO_TYPE[status]

    if isinstance(error, TimeoutError):
        return ErrorType.TIMEOUT
    if isinstance(error, ConnectionError):
        return ErrorType.NETWORK_ERROR

    if "api key" in lowered or "apikey" in lowered or "authentication" in lowered:
        return ErrorType.API_KEY_MISSING
    if "timeout" in lowered or "timed out" in lowered:
        return ErrorType.TIMEOUT
    if "quota" in lowered:
        return ErrorType.INSUFFICIENT_QUOTA
    if "network" in lowered or "connection" in lowered or "connect" in lowered:
        return ErrorType.NETWORK_ERROR

    return ErrorType.UNKNOWN_ERROR


def describe_error(error: BaseException, default: str = "Request failed") -> str:
    """Readable message for an exception; never raises.

    Falls back to the exception class name when its __str__ fails, and to
    ``default`` when the message is empty.
    """
    try:
        message = str(error)
    except Exception:
        message = type(error).__name__
    return message or default


def is_retryable(error: BaseException) -> bool:
    """Whether a failed invocation should be retried.

    Only ProviderError can opt out; any other exception is retried.
    """
    if isinstance(error, ProviderError):
        return error.retryable
    return True


def get_error_message(error_type: ErrorType, model_id: str = "", provider: str = "") -> str:
    """User-facing message for a classified failure."""
    model_name = model_id or "Unknown model"

    messages = {
        ErrorType.API_KEY_MISSING: f"Please add your {provider} API key in settings to use {model_name} [ADD_KEY]",
        ErrorType.MODEL_UNAVAILABLE: f"{model_name} is currently unavailable. Please try again later.",
        ErrorType.TIMEOUT: f"{model_name} took too long to respond. Request timed out.",
        ErrorType.MAX_RETRIES_EXCEEDED: f"{model_name} failed after several attempts. Please try again later.",
        ErrorType.EMPTY_RESPONSE: (
            f"{model_name} processed your request but returned no response. "
            "This often happens when the model is overloaded or the prompt is challenging."
        ),
        ErrorType.RATE_LIMIT: f"{model_name} rate limit exceeded. Please try again later or check your API quota.",
        ErrorType.NETWORK_ERROR: f"Network error while connecting to {model_name}. Please check your internet connection.",
        ErrorType.INSUFFICIENT_BALANCE: f"{model_name}: Insufficient credits. Please add more credits to continue.",
        ErrorType.INSUFFICIENT_QUOTA: (
            f"{model_name} quota exceeded. Please check your billing details and add more credits."
        ),
        ErrorType.INVALID_FORMAT: f"Invalid request format for {model_name}. Please try again.",
        ErrorType.INVALID_PARAMETERS: f"Invalid parameters in request to {model_name}. Please try again.",
        ErrorType.SERVER_ERROR: f"{model_name} server error. Please try again later.",
        ErrorType.SERVER_OVERLOADED: f"{model_name} is currently overloaded. Please try again in a few minutes.",
        ErrorType.TOKEN_LIMIT_EXCEEDED: (
            f"{model_name} token limit exceeded. Your request was too large. "
            "Try with a smaller image or shorter prompt."
        ),
        ErrorType.QUEUE_FULL: f"{model_name} could not be queued: too many pending requests.",
        ErrorType.CANCELLED: f"Request to {model_name} was cancelled.",
    }
    return messages.get(error_type, f"Error with {model_name}: {error_type.value}")
