#!/usr/bin/env python3
"""
Error kinds raised by the resw translation pipeline.

Every failure that ends a translation run is one of the classes below, so a
caller only has to catch ReswTranslatorError to report a readable message.
"""


class ReswTranslatorError(Exception):
    """Base exception for all translation pipeline failures."""


class InvalidInputError(ReswTranslatorError):
    """Raised when caller supplied input is missing or inconsistent."""


class InvalidSchemaError(ReswTranslatorError):
    """Raised when the source document is not a version 2.0 resource file."""


class TranslationServiceError(ReswTranslatorError):
    """Raised when the translation service answers with a non-success status."""

    def __init__(self, status_code: int, message: str = None):
        self.status_code = status_code
        super().__init__(
            message or f"Translation failed, HTTP error: {status_code}"
        )


class TranslationCountMismatchError(ReswTranslatorError):
    """Raised when fewer or more translations come back than were sent."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Expected {expected} translations but received {actual}; "
            "no output was written"
        )


class TransportError(ReswTranslatorError):
    """Raised when the translation service could not be reached."""


class WriteError(ReswTranslatorError):
    """Raised when the translated document cannot be written."""
