"""Errors raised while normalizing chapter payloads."""

from typing import Optional


class ParseError(ValueError):
    """Base class for every normalization failure.

    Carries the chapter reference and translation when they are known so
    callers can report which payload failed.
    """

    def __init__(
        self,
        message: str,
        reference: Optional[str] = None,
        translation: Optional[str] = None,
    ):
        self.message = message
        self.reference = reference
        self.translation = translation
        super().__init__(self._format())

    def _format(self) -> str:
        context = [part for part in (self.translation, self.reference) if part]
        if context:
            return f"{self.message} [{' '.join(context)}]"
        return self.message


class InvalidReference(ParseError):
    """Reference string is not of the form '<Book> <chapter>'."""


class MissingPassage(ParseError):
    """Payload has no passages/content container."""


class NoParsableContent(ParseError):
    """Every parsing strategy for an HTML payload produced zero verses."""


class NoVersesFound(ParseError):
    """The JSON content tree and its flat fallbacks produced zero verses."""


class UnsupportedTranslation(ParseError):
    """No parser is registered for the translation identifier."""
