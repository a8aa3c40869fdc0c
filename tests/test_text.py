"""
Tests for the shared text helpers.
"""

import re

import pytest

from bible_normalizer.errors import InvalidReference
from bible_normalizer.models import Footnote, FootnoteType, PoetryLine
from bible_normalizer.text import (
    build_verse,
    classify_footnote,
    decompose_reference,
    extract_nested,
    extract_red_letter,
    has_selah,
    is_psalm,
    normalize,
    strip_tags,
)


def test_decompose_reference():
    """Test splitting references into book and chapter."""
    assert decompose_reference("John 3") == ("John", "3")
    assert decompose_reference("1 Corinthians 13") == ("1 Corinthians", "13")
    assert decompose_reference("Song of Solomon 2") == ("Song of Solomon", "2")
    assert decompose_reference("  Psalms 119 ") == ("Psalms", "119")


@pytest.mark.parametrize("reference", ["John", "John 3:16", "", "3", None, 42])
def test_decompose_reference_rejects_bad_input(reference):
    with pytest.raises(InvalidReference):
        decompose_reference(reference)


def test_is_psalm():
    assert is_psalm("Psalm")
    assert is_psalm("Psalms")
    assert is_psalm("psalms ")
    assert not is_psalm("Proverbs")


def test_normalize_collapses_whitespace():
    assert normalize("  In the  beginning\n\tGod  ") == "In the beginning God"
    assert normalize("") == ""


def test_strip_tags():
    """Test tag removal and entity decoding."""
    markup = 'In<br/>the <span class="x">beginning</span>&nbsp;God &amp; &foo; man'
    assert normalize(strip_tags(markup)) == "In the beginning God & man"
    assert strip_tags("Lord&#39;s &quot;word&quot; &mdash; amen") == "Lord's \"word\" — amen"


def test_strip_tags_leaves_no_markup():
    markup = '<p class="body"><b class="verse-num">2&nbsp;</b>The <i>earth</i><br>was</p>'
    text = strip_tags(markup)
    assert "<" not in text and ">" not in text
    assert not re.search(r"&(?:nbsp|amp|quot|#39|mdash);", text)
    assert normalize(text) == "2 The earth was"


def test_has_selah():
    assert has_selah("There is no help for him in God. Selah.")
    assert has_selah("SELAH")
    assert not has_selah("Selahs and such")


def test_extract_red_letter_whole_fragment():
    assert extract_red_letter('<span class="woc">Follow me.</span>') == ("Follow me.", True)
    assert extract_red_letter(' <span class="red">Go.</span> ') == ("Go.", True)
    assert extract_red_letter("<wj>Peace be still.</wj>") == ("Peace be still.", True)


def test_extract_red_letter_drops_unknown_entities():
    assert extract_red_letter('<span class="red">&ldquo;Hi&rdquo;</span>') == ("Hi", True)
    assert extract_red_letter('&ldquo;Hi&rdquo; x') == ("Hi x", False)
    assert extract_red_letter('<span class="woc">a &amp; b</span>') == ("a & b", True)


def test_extract_red_letter_partial_fragment_is_not_red():
    text, is_red = extract_red_letter('He said, <span class="woc">Come.</span>')
    assert text == "He said, Come."
    assert is_red is False

    text, is_red = extract_red_letter('<span class="other">Come.</span>')
    assert text == "Come."
    assert is_red is False


def test_extract_nested_counts_depth():
    """Test that a nested same-type element does not end the outer one."""
    open_re = re.compile(r'<span class="text[^"]*">')
    markup = (
        '<span class="text Gen-1-2">The earth <span class="sc">was</span> void</span>'
        '<span class="text Gen-1-3">Let there be light</span>'
    )
    spans = extract_nested(markup, open_re)

    assert [span.content for span in spans] == [
        'The earth <span class="sc">was</span> void',
        "Let there be light",
    ]
    assert spans[0].start == 0
    assert markup[spans[0].end:].startswith('<span class="text Gen-1-3">')
    assert spans[1].open_tag == '<span class="text Gen-1-3">'


def test_extract_nested_skips_unterminated():
    open_re = re.compile(r'<span class="text">')
    assert extract_nested('<span class="text">never closed', open_re) == []


def test_build_verse_defaults():
    verse = build_verse("16", "  For God so\nloved ")
    assert verse.number == "16"
    assert verse.text == "For God so loved"
    assert verse.is_red_letter is False
    assert verse.is_first_verse is False
    assert verse.footnotes == ()


def test_build_verse_overrides():
    footnote = Footnote(marker="*", content="Or only begotten")
    verse = build_verse("16", "text", is_red_letter=True, footnotes=[footnote], lines=None)
    assert verse.is_red_letter is True
    assert verse.footnotes == (footnote,)
    assert verse.lines == ()


def test_build_verse_keeps_text_when_lines_given():
    lines = [PoetryLine("The LORD is my shepherd;"), PoetryLine("I shall not want.", 2)]
    verse = build_verse("1", "The LORD is my shepherd;\nI shall not want.", poetry_lines=lines)
    assert verse.text == "The LORD is my shepherd;\nI shall not want."
    assert verse.poetry_lines == tuple(lines)


@pytest.mark.parametrize("content, expected", [
    ("Hebrew reads the sons of God", FootnoteType.HEBREW),
    ("Heb. Adam", FootnoteType.HEBREW),
    ("Greek brothers", FootnoteType.GREEK),
    ("Gk. Christos", FootnoteType.GREEK),
    ("Or born from above", FootnoteType.ALTERNATIVE),
    ("Some manuscripts add verse 4", FootnoteType.TEXTUAL_VARIANT),
    ("Compare Ps 2:7", FootnoteType.CROSS_REFERENCE),
    ("See note at 1:1", FootnoteType.CROSS_REFERENCE),
    ("Literally the sons", FootnoteType.OTHER),
    ("Hebrew or Aramaic", FootnoteType.HEBREW),
])
def test_classify_footnote(content, expected):
    assert classify_footnote(content) == expected
