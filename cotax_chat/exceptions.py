"""Domain exception hierarchy for the Cotax chat client."""

from __future__ import annotations


class CotaxChatError(RuntimeError):
    """Base class for all domain-level chat errors.

    ``kind`` is the notice category reported to the user-facing error channel.
    """

    kind = "error"


class AttachmentValidationError(CotaxChatError):
    """Raised when a batch of candidate files contains an unsupported type."""

    kind = "validation"


class EncodingError(CotaxChatError):
    """Raised when a staged file cannot be read or encoded."""

    kind = "encoding"


class EmptyInputError(CotaxChatError):
    """Raised when a submission has no instructional text."""

    kind = "empty_input"


class SessionBusyError(CotaxChatError):
    """Raised when a submission arrives while a reply is still in flight."""

    kind = "busy"


class TransportError(CotaxChatError):
    """Raised when the chat backend fails or cannot be reached."""

    kind = "transport"


class RateLimitError(TransportError):
    """Raised when the chat backend rejects the request as rate limited."""


class ImageRequestError(CotaxChatError):
    """Raised when the image endpoint fails or returns a malformed payload."""

    kind = "image_request"


class ConfigValidationError(CotaxChatError):
    """Raised when configuration cannot be validated safely."""

    kind = "config"
