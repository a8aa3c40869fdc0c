"""
Translation to parser lookup.

Parsers are stateless, so one instance per translation is built at import
time and shared by every caller.
"""

from types import MappingProxyType
from typing import Any, Mapping

from .errors import UnsupportedTranslation
from .models import Chapter, Translation
from .parsers import BaseParser, ESVParser, NLTParser, StandardParser


def _build_registry() -> Mapping[Translation, BaseParser]:
    parsers: dict[Translation, BaseParser] = {
        Translation.ESV: ESVParser(),
        Translation.NLT: NLTParser(),
    }
    for translation in Translation:
        parsers.setdefault(translation, StandardParser(translation))
    return MappingProxyType(parsers)


PARSERS = _build_registry()


def get_parser(translation) -> BaseParser:
    """Look up the shared parser for a translation identifier or its value."""
    key = translation.upper() if isinstance(translation, str) else translation
    try:
        return PARSERS[Translation(key)]
    except (KeyError, ValueError):
        raise UnsupportedTranslation(
            f"No parser for translation: {translation!r}",
            translation=str(translation),
        ) from None


def parse_chapter(translation, payload: Any) -> Chapter:
    return get_parser(translation).parse(payload)
