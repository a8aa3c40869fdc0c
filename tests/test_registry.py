"""
Tests for the translation to parser lookup.
"""

import pytest

from bible_normalizer.errors import UnsupportedTranslation
from bible_normalizer.models import Translation
from bible_normalizer.parsers import ESVParser, NLTParser, StandardParser
from bible_normalizer.registry import PARSERS, get_parser, parse_chapter


def test_every_translation_has_a_parser():
    assert set(PARSERS) == set(Translation)


def test_parser_kinds():
    assert isinstance(get_parser(Translation.ESV), ESVParser)
    assert isinstance(get_parser("NLT"), NLTParser)
    for translation in ("KJV", "ASV", "WEB", "WEB_BRITISH", "WEB_UPDATED"):
        parser = get_parser(translation)
        assert isinstance(parser, StandardParser)
        assert parser.translation == Translation(translation)


def test_parsers_are_shared():
    assert get_parser("kjv") is get_parser(Translation.KJV)
    assert get_parser("WEB") is not get_parser("KJV")


def test_registry_is_read_only():
    with pytest.raises(TypeError):
        PARSERS[Translation.KJV] = ESVParser()


@pytest.mark.parametrize("translation", ["MSG", "", None])
def test_unsupported_translation(translation):
    with pytest.raises(UnsupportedTranslation):
        get_parser(translation)


def test_parse_chapter():
    chapter = parse_chapter("ASV", {
        "reference": "John 11",
        "content": [{"attrs": {"style": "p"}, "items": [
            {"name": "verse", "type": "tag", "attrs": {"number": "35"}},
            {"text": "Jesus wept.", "type": "text"},
        ]}],
    })
    assert chapter.translation == Translation.ASV
    assert chapter.verses[0].number == "35"
    assert chapter.verses[0].text == "Jesus wept."
    assert chapter.metadata.translation_name == "American Standard Version"
