"""
Error types

Client input problems surface as InvalidRequestError (mapped to 4xx by the
API layer). Anything going wrong on the provider side is a ProviderError,
which the chat service turns into a friendly reply instead of propagating.
"""
from typing import Optional


class ChatRelayError(Exception):
    """Base class for all chat relay errors"""


class InvalidRequestError(ChatRelayError):
    """Inbound request could not be used (bad JSON, missing question)"""


class ProviderError(ChatRelayError):
    """Completion provider failed or returned something unusable"""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RateLimitError(ProviderError):
    """Provider answered with HTTP 429"""
