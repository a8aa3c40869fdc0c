"""
Tests for the ESV passage HTML parser.
"""

import pytest

from bible_normalizer.errors import InvalidReference, MissingPassage, NoParsableContent
from bible_normalizer.models import Translation
from bible_normalizer.parsers import ESVParser


JOHN_3 = (
    '<h2 class="extra_text">John 3</h2>\n'
    '<h3 id="p43003001_01-1">You Must Be Born Again</h3>\n'
    '<p id="p43003001_01-1" class="starts-chapter">'
    '<b class="chapter-num" id="v43003001-1">3:1&nbsp;</b>Now there was a man of the Pharisees '
    'named Nicodemus, a ruler of the Jews. '
    '<b class="verse-num" id="v43003002-1">2&nbsp;</b>This man came to Jesus by night.</p>\n'
    '<p id="p43003003_01-1"><b class="verse-num" id="v43003003-1">3&nbsp;</b>Jesus answered him, '
    '<span class="woc">&ldquo;Truly, truly, I say to you, unless one is born again he cannot '
    'see the kingdom of God.&rdquo;</span></p>\n'
    '<p>(<a href="http://www.esv.org" class="copyright">ESV</a>)</p>'
)

GENESIS_1_LEGACY = (
    '<h3>The Creation of the World</h3>'
    '<span class="text Gen-1-1"><span class="chapternum">1 </span>In the beginning, '
    'God created the heavens and the earth.</span> '
    '<span class="text Gen-1-2"><span class="versenum">2 </span>The earth was '
    '<span class="small-caps">without form</span> and void.</span> '
    '<span class="text Gen-1-x">stray text</span>'
)

PSALM_3 = (
    '<h2 class="extra_text">Psalm 3</h2>\n'
    '<h3 id="p19003001_01-1">A Psalm of David, when he fled from Absalom his son.</h3>\n'
    '<p class="block-indent">'
    '<span class="line"><b class="chapter-num" id="v19003001-1">3:1&nbsp;</b>'
    'O LORD, how many are my foes!</span><br />'
    '<span class="indent line">Many are rising against me;</span><br />'
    '<span class="line"><b class="verse-num" id="v19003002-1">2&nbsp;</b>'
    'many are saying of my soul,</span><br />'
    '<span class="indent line">there is no salvation for him in God. <i>Selah</i></span>'
    '<span class="end-line-group"></span><br />'
    '<span class="line"><b class="verse-num" id="v19003003-1">3&nbsp;</b>'
    'But you, O LORD, are a shield about me,</span><br />'
    '</p>'
)


def esv_payload(html, reference="John 3"):
    return {
        "query": reference,
        "canonical": reference,
        "passages": [html],
        "copyright": "Scripture quotations are from the ESV Bible.",
    }


def test_paragraph_form():
    """Test chapter-num and verse-num markers inside paragraphs."""
    chapter = ESVParser().parse(esv_payload(JOHN_3))

    assert chapter.reference == "John 3"
    assert chapter.translation == Translation.ESV
    assert chapter.book_name == "John"
    assert chapter.chapter_number == "3"
    assert [verse.number for verse in chapter.verses] == ["1", "2", "3"]
    assert chapter.verses[0].text == (
        "Now there was a man of the Pharisees named Nicodemus, a ruler of the Jews."
    )
    assert chapter.verses[1].text == "This man came to Jesus by night."
    assert chapter.psalm_metadata is None


def test_first_verse_from_chapter_marker():
    verses = ESVParser().parse(esv_payload(JOHN_3)).verses
    assert [verse.is_first_verse for verse in verses] == [True, False, False]


def test_heading_attached_once():
    """Test that one heading is not repeated on later paragraphs."""
    verses = ESVParser().parse(esv_payload(JOHN_3)).verses

    assert verses[0].heading == "You Must Be Born Again"
    assert verses[0].heading_id == "p43003001_01-1"
    assert verses[1].heading is None
    assert verses[2].heading is None


def test_red_letter_span():
    verses = ESVParser().parse(esv_payload(JOHN_3)).verses
    assert [verse.is_red_letter for verse in verses] == [False, False, True]
    # Unknown entities are dropped, not left in the text
    assert verses[2].text == (
        "Jesus answered him, Truly, truly, I say to you, unless one is born again "
        "he cannot see the kingdom of God."
    )


def test_copyright_paragraph_is_skipped():
    chapter = ESVParser().parse(esv_payload(JOHN_3))
    assert all("ESV" not in verse.text for verse in chapter.verses)
    assert chapter.metadata.copyright == "Scripture quotations are from the ESV Bible."
    assert chapter.metadata.translation_name == "English Standard Version"


def test_composite_chapter_marker():
    html = '<p><b class="chapter-num">105:1&nbsp;</b>Oh give thanks to the LORD;</p>'
    chapter = ESVParser().parse(esv_payload(html, "Psalm 105"))
    assert chapter.verses[0].number == "1"
    assert chapter.verses[0].is_first_verse


def test_legacy_span_form_with_nested_span():
    """Test the fallback span form keeps everything inside a nested span."""
    chapter = ESVParser().parse(esv_payload(GENESIS_1_LEGACY, "Genesis 1"))
    verses = chapter.verses

    assert [verse.number for verse in verses] == ["1", "2"]
    assert verses[0].text == "In the beginning, God created the heavens and the earth."
    assert verses[0].is_first_verse
    assert verses[0].heading == "The Creation of the World"
    assert verses[1].text == "The earth was without form and void."
    assert verses[1].heading is None
    assert '<span class="small-caps">without form</span>' in verses[1].raw_html


def test_psalm_lines():
    """Test line spans, indentation and stanza ends in a Psalm."""
    chapter = ESVParser().parse(esv_payload(PSALM_3, "Psalm 3"))
    first, second, third = chapter.verses

    assert first.is_first_verse
    assert first.text == "O LORD, how many are my foes! Many are rising against me;"
    assert [(line.text, line.indent_level) for line in first.poetry_lines] == [
        ("O LORD, how many are my foes!", 1),
        ("Many are rising against me;", 2),
    ]
    assert first.lines == ("O LORD, how many are my foes!", "Many are rising against me;")

    assert second.stanza_break_after
    assert not first.stanza_break_after
    assert third.poetry_lines[0].has_space_before
    assert not second.poetry_lines[0].has_space_before


def test_psalm_selah_and_metadata():
    chapter = ESVParser().parse(esv_payload(PSALM_3, "Psalm 3"))
    metadata = chapter.psalm_metadata

    assert chapter.is_psalm
    assert metadata.psalm_number == "3"
    assert metadata.has_selah
    assert metadata.superscription == "A Psalm of David, when he fled from Absalom his son."
    assert metadata.section_headings == ()
    assert [verse.is_selah for verse in chapter.verses] == [False, True, False]


def test_psalm_musical_notation_and_section_heading():
    html = (
        '<h3>To the choirmaster: according to The Lilies. A Maskil of the Sons of Korah</h3>'
        '<p><b class="chapter-num">45:1&nbsp;</b>My heart overflows with a pleasing theme;</p>'
        '<h3>The King&rsquo;s Bride</h3>'
        '<p><b class="verse-num">2&nbsp;</b>You are the most handsome of the sons of men;</p>'
    )
    metadata = ESVParser().parse(esv_payload(html, "Psalm 45")).psalm_metadata

    assert metadata.musical_notation == "To the choirmaster: according to The Lilies"
    assert [(h.after_verse, h.heading) for h in metadata.section_headings] == [
        ("1", "The Kings Bride"),
    ]
    assert not metadata.has_selah


@pytest.mark.parametrize("payload", [
    {"canonical": "John 3", "passages": []},
    {"canonical": "John 3"},
    {"canonical": "John 3", "passages": [""]},
    None,
])
def test_missing_passage(payload):
    with pytest.raises(MissingPassage):
        ESVParser().parse(payload)


def test_invalid_reference():
    with pytest.raises(InvalidReference) as excinfo:
        ESVParser().parse(esv_payload(JOHN_3, "John"))
    assert excinfo.value.translation == "ESV"
    assert "ESV" in str(excinfo.value)


def test_no_parsable_content():
    with pytest.raises(NoParsableContent):
        ESVParser().parse(esv_payload("<div>Nothing to see here</div>"))


def test_parse_is_repeatable():
    parser = ESVParser()
    assert parser.parse(esv_payload(PSALM_3, "Psalm 3")) == parser.parse(
        esv_payload(PSALM_3, "Psalm 3")
    )


def test_psalm_line_with_bare_marker_is_dropped():
    html = (
        '<p class="block-indent">'
        '<span class="line"><b class="chapter-num">3:1&nbsp;</b>O LORD</span><br />'
        '<span class="line"><b class="verse-num">2&nbsp;</b></span><br />'
        '<span class="line"><b class="verse-num">3&nbsp;</b>But you</span>'
        '</p>'
    )
    verses = ESVParser().parse(esv_payload(html, "Psalm 3")).verses
    assert [(verse.number, verse.text) for verse in verses] == [("1", "O LORD"), ("3", "But you")]
    assert all(verse.text for verse in verses)
