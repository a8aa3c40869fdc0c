"""
Parser for NLT API passage markup.

The NLT API wraps every verse in its own block:

    <verse_export orig="john_3_1" bk="John" ch="3" vn="1">
        <h2 class="chapter-number"><span class="cw_ch">3</span></h2>
        <h3 class="subhead">Jesus and Nicodemus</h3>
        <p class="body-ch-hd"><span class="vn">1</span>There was a man...
    </verse_export>

Older responses use bare <cn> and <sn> children instead of the chapter
and subhead headings, and some carry no verse_export blocks at all.
"""

import logging
import re
from typing import Any, Optional

from ..errors import MissingPassage, NoParsableContent
from ..models import (
    Chapter,
    Footnote,
    PsalmMetadata,
    SectionHeading,
    SpeakerLabel,
    Translation,
    Verse,
)
from ..text import (
    classify_footnote,
    extract_nested,
    extract_red_letter,
    has_selah,
    is_psalm,
    normalize,
    strip_tags,
)
from .base import BaseParser, VerseDraft

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

NLT_COPYRIGHT = "© 1996, 2004, 2015 by Tyndale House Foundation"
DEFAULT_FOOTNOTE_MARKER = "*"

MUSICAL_NOTATION_RE = re.compile(r"(For the (?:choir )?director[^.]*)", re.IGNORECASE)

_BLOCK_RE = re.compile(
    r'<verse_export\b[^>]*\bvn="([^"]+)"[^>]*>(.*?)</verse_export>', re.DOTALL
)
_CHAPTER_NUMBER_RE = re.compile(
    r'<(h[23])[^>]*class="chapter-number"[^>]*>.*?</\1>|<cn>.*?</cn>', re.DOTALL
)
_SUBHEAD_RE = re.compile(
    r'<(h[34])[^>]*class=["\']?subhead["\']?[^>]*>(.*?)</\1>|<sn>(.*?)</sn>', re.DOTALL
)
_SPEAKER_RE = re.compile(r'<h3[^>]*class="sos-speaker"[^>]*>(.*?)</h3>', re.DOTALL)
_SELAH_PARAGRAPH_RE = re.compile(r'<p[^>]*class=["\']selah["\'][^>]*>.*?</p>', re.DOTALL)
_DROPPED_BLOCK_RES = [
    re.compile(r'<h5[^>]*class="psa-hebrew"[^>]*>.*?</h5>', re.DOTALL),
    re.compile(r'<h2[^>]*class="psa-book"[^>]*>.*?</h2>', re.DOTALL),
    re.compile(r'<p[^>]*class=["\']psa-title["\'][^>]*>.*?</p>', re.DOTALL),
    _SELAH_PARAGRAPH_RE,
]
_VN_SPAN_RE = re.compile(r'<span[^>]*class=["\']vn["\'][^>]*>[^<]*</span>')
_FOOTNOTE_ANCHOR_RE = re.compile(r'<a[^>]*class=["\']a-tn["\'][^>]*>(.*?)</a>', re.DOTALL)
_FOOTNOTE_BODY_OPEN_RE = re.compile(r'<span[^>]*class=["\']tn["\'][^>]*>')
_FOOTNOTE_REF_RE = re.compile(r'<span[^>]*class=["\']tn-ref["\'][^>]*>(.*?)</span>', re.DOTALL)
_RED_LETTER_RE = re.compile(r'<red\b|class=["\']?(?:[^"\'>]*\s)?red(?:-sc)?(?=["\'\s>])')
_INDENT_2_RE = re.compile(r'class=["\']?[^"\'>]*\b(?:poet|q)2')
_INDENT_1_RE = re.compile(r'class=["\']?[^"\'>]*\b(?:poet|q)1')
_STANZA_SPACING_RE = re.compile(r'class=["\'][^"\']*-sp["\'\s]')
_VERSE_ATTR_RE = re.compile(r'vn="(\d+)"')

# Fallbacks for responses without verse_export blocks
_BARE_VERSE_RE = re.compile(
    r'<span[^>]*class="vn"[^>]*>(\d+)</span>(.*?)(?=<span[^>]*class="vn"|$)', re.DOTALL
)
_PARAGRAPH_RE = re.compile(r"<p[^>]*>(.*?)</p>", re.DOTALL)
_VN_OPEN_RE = re.compile(r'<span[^>]*class="vn"[^>]*>')
_CHAPTER_SPAN_RE = re.compile(r'<span[^>]*class="cn"[^>]*>(\d+)</span>(.*)', re.DOTALL)

_SUPERSCRIPTION_RES = [
    re.compile(
        r'<(h3|p)[^>]*class=["\']?(?:psalm-title|psa-title)["\']?[^>]*>(.*?)</\1>',
        re.DOTALL | re.IGNORECASE,
    ),
    re.compile(
        r'<(p)[^>]*class=["\']?psalm-acrostic-title["\']?[^>]*>(.*?)</p>',
        re.DOTALL | re.IGNORECASE,
    ),
]


def _text_before_footnote(markup: str) -> str:
    """Heading text up to the first footnote anchor."""
    anchor = markup.find("<a")
    if anchor > 0:
        markup = markup[:anchor]
    return normalize(strip_tags(markup))


def extract_footnotes(markup: str) -> tuple[str, list[Footnote]]:
    """Remove footnote anchor/body pairs, returning the cleaned markup and notes.

    A footnote body may hold a nested reference span, so bodies are matched
    by nesting depth rather than by the first closing span.
    """
    footnotes = []
    bodies = extract_nested(markup, _FOOTNOTE_BODY_OPEN_RE)
    anchors = list(_FOOTNOTE_ANCHOR_RE.finditer(markup))

    for body in bodies:
        preceding = [anchor for anchor in anchors if anchor.end() <= body.start]
        marker = normalize(strip_tags(preceding[-1].group(1))) if preceding else ""

        ref_match = _FOOTNOTE_REF_RE.search(body.content)
        reference = normalize(strip_tags(ref_match.group(1))) if ref_match else None
        content = body.content.replace(ref_match.group(0), "", 1) if ref_match else body.content
        content = normalize(strip_tags(content))
        if not content:
            continue

        footnotes.append(Footnote(
            marker=marker or DEFAULT_FOOTNOTE_MARKER,
            content=content,
            type=classify_footnote(content),
            reference=reference,
        ))

    # Cut bodies from the end so earlier offsets stay valid
    for body in sorted(bodies, key=lambda span: span.start, reverse=True):
        markup = markup[:body.start] + markup[body.end:]
    markup = _FOOTNOTE_ANCHOR_RE.sub("", markup)
    return markup, footnotes


class NLTParser(BaseParser):
    """Normalizes NLT API passage markup."""

    def __init__(self):
        super().__init__(Translation.NLT)

    def parse(self, payload: Any) -> Chapter:
        """
        Parse an NLT API response.

        Expected input:
            {
                "passages": [{
                    "reference": "John 3",
                    "content": "<verse_export vn='1'>...</verse_export>..."
                }]
            }
        """
        passages = payload.get("passages") if isinstance(payload, dict) else None
        passage = passages[0] if passages else None
        if not isinstance(passage, dict) or not isinstance(passage.get("content"), str):
            raise MissingPassage(
                "NLT payload has no passages", translation=self.translation.value
            )

        reference = passage.get("reference")
        book_name, chapter_number = self._decompose(reference)
        html = passage["content"]
        psalm = is_psalm(book_name)

        verses = self._parse_blocks(html, psalm)
        if not verses:
            logger.warning(
                "[%s] no verse_export blocks in %s, trying bare verse numbers",
                self.name, reference,
            )
            verses = self._parse_bare_verses(html) or self._parse_paragraphs(html)

        if not verses:
            raise NoParsableContent(
                "Unable to parse NLT content: no recognizable verse structure",
                reference=reference,
                translation=self.translation.value,
            )

        return self._build_chapter(
            reference,
            book_name,
            chapter_number,
            verses,
            payload,
            copyright=NLT_COPYRIGHT,
            psalm_metadata=self._psalm_metadata(html, chapter_number) if psalm else None,
        )

    # -------------------------------------------------------------------------
    # verse_export blocks
    # -------------------------------------------------------------------------

    def _parse_blocks(self, html: str, psalm: bool) -> list[Verse]:
        drafts: list[VerseDraft] = []

        for index, match in enumerate(_BLOCK_RE.finditer(html)):
            number = match.group(1)
            content = match.group(2)
            draft = VerseDraft(number=number, is_first_verse=index == 0, raw_html=match.group(0))

            if _CHAPTER_NUMBER_RE.search(content):
                draft.is_first_verse = True
                content = _CHAPTER_NUMBER_RE.sub("", content)

            heading_match = _SUBHEAD_RE.search(content)
            if heading_match:
                heading = heading_match.group(2) if heading_match.group(1) else heading_match.group(3)
                draft.heading = _text_before_footnote(heading) or None
                draft.heading_id = f"heading-{number}" if draft.heading else None
                content = content.replace(heading_match.group(0), "", 1)

            for speaker in _SPEAKER_RE.finditer(content):
                label = _text_before_footnote(speaker.group(1))
                if label:
                    draft.speaker_labels.append(SpeakerLabel(text=label, before_line_index=0))
            content = _SPEAKER_RE.sub(" ", content)

            has_selah_paragraph = bool(_SELAH_PARAGRAPH_RE.search(content))
            for pattern in _DROPPED_BLOCK_RES:
                content = pattern.sub(" ", content)

            content = _VN_SPAN_RE.sub("", content)
            content, draft.footnotes = extract_footnotes(content)

            # Red letter may cover only part of the verse
            draft.is_red_letter = bool(_RED_LETTER_RE.search(content))

            if psalm:
                draft.is_selah = has_selah_paragraph or has_selah(strip_tags(content))
                if _INDENT_2_RE.search(content):
                    draft.poetry_indent_level = 2
                elif _INDENT_1_RE.search(content):
                    draft.poetry_indent_level = 1

            # Extra spacing before this verse means the previous one ends a stanza
            if drafts and _STANZA_SPACING_RE.search(content):
                drafts[-1].stanza_break_after = True

            draft.text_parts.append(strip_tags(content))
            drafts.append(draft)

        return [draft.to_verse() for draft in drafts]

    # -------------------------------------------------------------------------
    # Fallbacks
    # -------------------------------------------------------------------------

    def _fallback_verse(self, number: str, markup: str, first: bool) -> Verse:
        markup, footnotes = extract_footnotes(markup)
        text, red_letter = extract_red_letter(markup)
        draft = VerseDraft(
            number=number,
            text_parts=[text],
            is_first_verse=first,
            is_red_letter=red_letter or bool(_RED_LETTER_RE.search(markup)),
            footnotes=footnotes,
        )
        return draft.to_verse()

    def _parse_bare_verses(self, html: str) -> list[Verse]:
        return [
            self._fallback_verse(match.group(1), match.group(2), index == 0)
            for index, match in enumerate(_BARE_VERSE_RE.finditer(html))
        ]

    def _parse_paragraphs(self, html: str) -> list[Verse]:
        verses = []
        for paragraph in _PARAGRAPH_RE.finditer(html):
            pieces = _VN_OPEN_RE.split(paragraph.group(1))
            for index, piece in enumerate(pieces):
                verse_match = re.match(r"^(\d+)</span>(.*)", piece, re.DOTALL)
                if verse_match:
                    verses.append(self._fallback_verse(
                        verse_match.group(1), verse_match.group(2), not verses
                    ))
                elif index == 0 and 'class="cn"' in piece:
                    chapter_match = _CHAPTER_SPAN_RE.search(piece)
                    if chapter_match:
                        verses.append(self._fallback_verse("1", chapter_match.group(2), True))
        return verses

    # -------------------------------------------------------------------------
    # Psalm metadata
    # -------------------------------------------------------------------------

    def _psalm_metadata(self, html: str, chapter_number: str) -> PsalmMetadata:
        superscription: Optional[str] = None
        for pattern in _SUPERSCRIPTION_RES:
            match = pattern.search(html)
            if match:
                superscription = _text_before_footnote(match.group(2)) or None
                break

        musical_notation = None
        if superscription:
            musical = MUSICAL_NOTATION_RE.search(superscription)
            if musical:
                musical_notation = musical.group(1).strip()

        section_headings = []
        for match in _SUBHEAD_RE.finditer(html):
            heading = match.group(2) if match.group(1) else match.group(3)
            text = _text_before_footnote(heading)
            if not text or text == superscription:
                continue
            verse_numbers = _VERSE_ATTR_RE.findall(html, 0, match.start())
            if verse_numbers:
                section_headings.append(
                    SectionHeading(after_verse=verse_numbers[-1], heading=text)
                )

        return PsalmMetadata(
            psalm_number=chapter_number,
            has_selah=bool(_SELAH_PARAGRAPH_RE.search(html)) or has_selah(strip_tags(html)),
            superscription=superscription,
            musical_notation=musical_notation,
            section_headings=tuple(section_headings),
        )
