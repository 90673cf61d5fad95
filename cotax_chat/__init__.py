"""Top-level package for cotax-chat."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .app import CotaxChatApp
    from .attachments import Attachment, AttachmentManager, PendingFile
    from .chat import ChatRequest, HttpChatClient, ReplyChunk, StreamingClient
    from .config import ensure_config_dir, load_config
    from .exceptions import (
        AttachmentValidationError,
        ConfigValidationError,
        CotaxChatError,
        EmptyInputError,
        EncodingError,
        ImageRequestError,
        RateLimitError,
        SessionBusyError,
        TransportError,
    )
    from .image_generation import ImageGenerator
    from .message_store import Message, MessageStore
    from .quick_replies import QuickReplyExpander
    from .session import SessionController
    from .state import SessionState, StateManager

# Public name -> defining submodule; resolved lazily so the console front end
# (rich) is only imported when it is actually used.
_EXPORTS: dict[str, str] = {
    "CotaxChatApp": "app",
    "Attachment": "attachments",
    "AttachmentManager": "attachments",
    "PendingFile": "attachments",
    "ChatRequest": "chat",
    "HttpChatClient": "chat",
    "ReplyChunk": "chat",
    "StreamingClient": "chat",
    "ensure_config_dir": "config",
    "load_config": "config",
    "AttachmentValidationError": "exceptions",
    "ConfigValidationError": "exceptions",
    "CotaxChatError": "exceptions",
    "EmptyInputError": "exceptions",
    "EncodingError": "exceptions",
    "ImageRequestError": "exceptions",
    "RateLimitError": "exceptions",
    "SessionBusyError": "exceptions",
    "TransportError": "exceptions",
    "ImageGenerator": "image_generation",
    "Message": "message_store",
    "MessageStore": "message_store",
    "QuickReplyExpander": "quick_replies",
    "SessionController": "session",
    "SessionState": "state",
    "StateManager": "state",
}

__all__ = sorted(_EXPORTS)


def __getattr__(name: str) -> Any:
    """Lazily import exported symbols."""
    module_name = _EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    from importlib import import_module

    return getattr(import_module(f".{module_name}", __name__), name)
