"""LLM error classification and normalization.

Provider failures are classified by the router into LLMErrorClass values,
then turned into the user-facing text carried by a chat error frame.

Error classes:
- E_LLM_INVALID_KEY: Authentication failure (401/403)
- E_LLM_RATE_LIMIT: Rate limit exceeded (429)
- E_LLM_CONTEXT_TOO_LARGE: Context length exceeded
- E_LLM_TIMEOUT: Request timed out
- E_LLM_PROVIDER_DOWN: Provider unavailable (5xx, network error)
- E_MODEL_NOT_AVAILABLE: Model not found or provider unknown
"""

from enum import Enum

from blueberry.logging import get_logger

logger = get_logger(__name__)


class LLMErrorClass(str, Enum):
    """Normalized LLM error classifications."""

    INVALID_KEY = "E_LLM_INVALID_KEY"
    RATE_LIMIT = "E_LLM_RATE_LIMIT"
    CONTEXT_TOO_LARGE = "E_LLM_CONTEXT_TOO_LARGE"
    TIMEOUT = "E_LLM_TIMEOUT"
    PROVIDER_DOWN = "E_LLM_PROVIDER_DOWN"
    MODEL_NOT_AVAILABLE = "E_MODEL_NOT_AVAILABLE"


# Text shown to the user in the chat panel for each error class
ERROR_CLASS_TO_MESSAGE: dict[LLMErrorClass, str] = {
    LLMErrorClass.INVALID_KEY: "The AI service rejected the configured API key.",
    LLMErrorClass.RATE_LIMIT: "The AI service is rate limited. Please try again shortly.",
    LLMErrorClass.CONTEXT_TOO_LARGE: "This conversation is too long for the model.",
    LLMErrorClass.TIMEOUT: "The AI service took too long to respond.",
    LLMErrorClass.PROVIDER_DOWN: "The AI service is currently unavailable.",
    LLMErrorClass.MODEL_NOT_AVAILABLE: "The configured model is not available.",
}


class LLMError(Exception):
    """Exception for LLM-related errors.

    Attributes:
        error_class: The normalized error classification
        message: Diagnostic message (not shown to users)
        provider: The provider that returned the error (if known)
    """

    def __init__(
        self,
        error_class: LLMErrorClass,
        message: str,
        provider: str | None = None,
    ):
        self.error_class = error_class
        self.message = message
        self.provider = provider
        super().__init__(message)


def user_facing_message(error: LLMError) -> str:
    """Return the chat panel text for an LLM error."""
    return ERROR_CLASS_TO_MESSAGE.get(
        error.error_class, ERROR_CLASS_TO_MESSAGE[LLMErrorClass.PROVIDER_DOWN]
    )


def classify_provider_error(
    provider: str,
    status_code: int | None,
    json_body: dict | None,
) -> LLMErrorClass:
    """Classify an HTTP error from a provider into a normalized error class.

    Args:
        provider: Provider name (only "gemini" is known)
        status_code: HTTP status code (if available)
        json_body: Parsed JSON error response (if available)
    """
    if status_code is None:
        return LLMErrorClass.PROVIDER_DOWN

    if provider == "gemini":
        return _classify_gemini_error(status_code, json_body)

    logger.warning("unknown_provider_for_error_classification", provider=provider)
    return LLMErrorClass.PROVIDER_DOWN


def _classify_gemini_error(status_code: int, json_body: dict | None) -> LLMErrorClass:
    """Classify Gemini errors.

    - 401/403 or "API_KEY_INVALID" in body -> INVALID_KEY
    - 429 or "RESOURCE_EXHAUSTED" -> RATE_LIMIT
    - "exceeds the maximum" in message -> CONTEXT_TOO_LARGE
    - 404 or "model not found" -> MODEL_NOT_AVAILABLE
    - anything else -> PROVIDER_DOWN
    """
    body_str = str(json_body).lower() if json_body else ""

    if "api_key_invalid" in body_str or status_code in (401, 403):
        return LLMErrorClass.INVALID_KEY

    if status_code == 429 or "resource_exhausted" in body_str:
        return LLMErrorClass.RATE_LIMIT

    if "exceeds the maximum" in body_str:
        return LLMErrorClass.CONTEXT_TOO_LARGE

    if status_code == 404 or "model not found" in body_str:
        return LLMErrorClass.MODEL_NOT_AVAILABLE

    return LLMErrorClass.PROVIDER_DOWN
