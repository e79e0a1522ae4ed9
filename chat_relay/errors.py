"""Error kinds raised while relaying a chat request, and their wire mapping.

Internally detected failures are typed so `classify` never has to read
message text for them. Text matching is kept only as a best-effort fallback
for exceptions that arrive untyped.
"""
from typing import Optional, Tuple

CONFIG_ERROR = "Server configuration error: OpenAI API key missing"
INVALID_MESSAGE = "Message is required and must be a string"
METHOD_NOT_ALLOWED = "Method not allowed. Use POST."
UPSTREAM_ERROR = "OpenAI API error"
API_KEY_ERROR = "OpenAI API key error. Please check server configuration."
RATE_LIMIT_ERROR = "Rate limit exceeded. Please try again later."
NETWORK_ERROR = "Network timeout. Please try again."
GENERIC_ERROR = "Something went wrong with the AI service"
EMPTY_COMPLETION = "No response received from OpenAI"


class ChatRelayError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class ConfigurationError(ChatRelayError):
    pass


class InvalidChatRequest(ChatRelayError):
    pass


class UpstreamError(ChatRelayError):
    """The completion service answered with an HTTP error status."""

    def __init__(self, status_code: int, message: Optional[str], raw: Optional[str] = None):
        self.status_code = status_code
        self.upstream_message = message
        super().__init__(raw or message or UPSTREAM_ERROR)


class UpstreamNetworkError(ChatRelayError):
    pass


class EmptyCompletionError(ChatRelayError):
    def __init__(self, message: str = EMPTY_COMPLETION):
        super().__init__(message)


def classify(exc: BaseException) -> Tuple[int, str]:
    if isinstance(exc, ConfigurationError):
        return 500, CONFIG_ERROR
    if isinstance(exc, UpstreamError):
        return exc.status_code, exc.upstream_message or UPSTREAM_ERROR
    if isinstance(exc, (UpstreamNetworkError, TimeoutError, ConnectionError)):
        return 500, NETWORK_ERROR
    if isinstance(exc, EmptyCompletionError):
        return 500, GENERIC_ERROR

    # fallback sobre el texto del error (best effort)
    text = str(exc)
    if "API key" in text:
        return 500, API_KEY_ERROR
    if "rate limit" in text:
        return 429, RATE_LIMIT_ERROR
    if "timeout" in text or "network" in text:
        return 500, NETWORK_ERROR
    return 500, GENERIC_ERROR


def failure_payload(exc: BaseException, include_details: bool = False) -> Tuple[int, dict]:
    """Map a failure to `(status, body)`; `details` only when asked for."""
    status, message = classify(exc)
    body = {"success": False, "error": message}
    if include_details:
        body["details"] = str(exc)
    return status, body
