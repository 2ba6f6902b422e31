"""Reader-side error taxonomy.

Every failure the client core surfaces is a ReaderError scoped to the
current user action; none is fatal to the session.

- ValidationError: missing or blank input (HTTP 400). Local state unchanged.
- NotFoundError: the highlight, conversation or document vanished (HTTP 404).
  The session refreshes its highlight list to reconcile.
- ConflictError: restore onto ids that already exist (HTTP 409).
- TransportError: network failure or unexpected response. The turn errors,
  nothing is retried.
- MalformedFrameError: a complete stream frame that cannot be decoded.
- ConfigurationError: the AI service is not configured or unreachable
  (HTTP 503), raised before any store mutation.
- InProgressError: a promotion or turn is already running.
"""

import httpx

SERVICE_UNAVAILABLE_MESSAGE = "The AI service is unavailable. Check the server configuration."


class ReaderError(Exception):
    """Base class for errors surfaced by the client core.

    Attributes:
        message: Text suitable for showing to the user
        code: Server error code (E_...), when the error came from the API
    """

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(ReaderError):
    pass


class NotFoundError(ReaderError):
    pass


class ConflictError(ReaderError):
    pass


class TransportError(ReaderError):
    pass


class MalformedFrameError(TransportError):
    pass


class ConfigurationError(ReaderError):
    def __init__(self, message: str = SERVICE_UNAVAILABLE_MESSAGE, code: str | None = None):
        super().__init__(message, code)


class InProgressError(ReaderError):
    pass


_STATUS_TO_ERROR: dict[int, type[ReaderError]] = {
    400: ValidationError,
    404: NotFoundError,
    409: ConflictError,
    503: ConfigurationError,
}


def error_from_response(response: httpx.Response) -> ReaderError:
    """Map an API error response to a ReaderError.

    The response body must already be read. Bodies that are not the
    {"error": {...}} envelope still map by status code.
    """
    code = None
    message = f"Unexpected response from server (HTTP {response.status_code})"
    try:
        error = response.json().get("error") or {}
    except (ValueError, AttributeError):
        error = {}
    if isinstance(error, dict):
        code = error.get("code")
        message = error.get("message") or message

    error_class = _STATUS_TO_ERROR.get(response.status_code, TransportError)
    if error_class is ConfigurationError:
        return ConfigurationError(code=code)
    return error_class(message, code)
