"""Tests for domain exception hierarchy."""

from __future__ import annotations

import unittest

from cotax_chat.exceptions import (
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


class ExceptionHierarchyTests(unittest.TestCase):
    """Validate exception inheritance and notice kinds."""

    def test_exception_hierarchy(self) -> None:
        for cls in (
            AttachmentValidationError,
            EncodingError,
            EmptyInputError,
            SessionBusyError,
            TransportError,
            ImageRequestError,
            ConfigValidationError,
        ):
            self.assertTrue(issubclass(cls, CotaxChatError), cls)
        self.assertTrue(issubclass(RateLimitError, TransportError))

    def test_notice_kinds(self) -> None:
        self.assertEqual(AttachmentValidationError.kind, "validation")
        self.assertEqual(EncodingError.kind, "encoding")
        self.assertEqual(EmptyInputError.kind, "empty_input")
        self.assertEqual(SessionBusyError.kind, "busy")
        self.assertEqual(RateLimitError.kind, "transport")
        self.assertEqual(ImageRequestError.kind, "image_request")


if __name__ == "__main__":
    unittest.main()
