"""
Parser for ESV API passage HTML.

The ESV API returns one HTML fragment per passage. Two markup generations
are handled, tried in this order:

    Paragraph form:  <p><b class="chapter-num">1:1&nbsp;</b>In the beginning...
                     <b class="verse-num">2&nbsp;</b>The earth was...</p>
    Legacy form:     <span class="text Gen-1-1"><span class="chapternum">1 </span>
                     In the beginning...</span>

Psalms in the paragraph form wrap each poetic line in <span class="line">
(or "indent line") and close a stanza with an empty end-line-group span.
"""

import bisect
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

from ..errors import MissingPassage, NoParsableContent
from ..models import Chapter, PsalmMetadata, SectionHeading, Translation, Verse
from ..text import extract_nested, has_selah, is_psalm, normalize, strip_tags
from .base import BaseParser, LineDraft, VerseDraft

logger = logging.getLogger(__name__)


# =============================================================================
# Markup patterns
# =============================================================================

COPYRIGHT_MARKER = 'class="copyright"'

SUPERSCRIPTION_RE = re.compile(r"^(?:To the|A |Of |When |For |In |The )", re.IGNORECASE)
MUSICAL_NOTATION_RE = re.compile(r"(To the choirmaster[^.]*)", re.IGNORECASE)

_HEADING_RE = re.compile(r"<h3\b([^>]*)>(.*?)</h3>", re.DOTALL | re.IGNORECASE)
_ID_RE = re.compile(r'\bid="([^"]*)"')
_PARAGRAPH_RE = re.compile(r"<p\b[^>]*>(.*?)</p>", re.DOTALL | re.IGNORECASE)
_MARKER_RE = re.compile(
    r'<b[^>]*class="[^"]*(chapter-num|verse-num)[^"]*"[^>]*>([^<]+)</b>'
)
_WOC_RE = re.compile(r'<span[^>]*class="(?:[^"]*\s)?woc(?:\s[^"]*)?"')
_LINE_OPEN_RE = re.compile(r'<span\b[^>]*class="(?:[^"]*\s)?line(?:\s[^"]*)?"[^>]*>')
_INDENT_RE = re.compile(r'class="(?:[^"]*\s)?indent(?:\s[^"]*)?"')
_END_LINE_GROUP_RE = re.compile(r'<span[^>]*class="end-line-group"[^>]*>\s*</span>')
_TEXT_SPAN_OPEN_RE = re.compile(r'<span[^>]*class="text[^"]*"[^>]*>')
_CHAPTERNUM_RE = re.compile(r'<span[^>]*class="chapternum"[^>]*>(\d+)(?:\s|&nbsp;)*</span>')
_VERSENUM_RE = re.compile(r'<span[^>]*class="versenum"[^>]*>(\d+)(?:\s|&nbsp;)*</span>')


@dataclass(frozen=True)
class Heading:
    position: int
    text: str
    heading_id: Optional[str]


# =============================================================================
# Scanning helpers
# =============================================================================

def marker_number(kind: str, label: str) -> str:
    """Verse number from a marker label: '105:1&nbsp;' -> '1', '2&nbsp;' -> '2'."""
    if "chapter-num" in kind:
        match = re.search(r"\d+:(\d+)", label)
        return match.group(1) if match else "1"
    match = re.search(r"\d+", label)
    return match.group(0) if match else ""


def find_headings(html: str) -> list[Heading]:
    headings = []
    for match in _HEADING_RE.finditer(html):
        id_match = _ID_RE.search(match.group(1))
        headings.append(Heading(
            position=match.start(),
            text=normalize(strip_tags(match.group(2))),
            heading_id=id_match.group(1) if id_match else None,
        ))
    return headings


def _claim_heading(draft: VerseDraft, heading: Optional[Heading], used: set[str]):
    """Attach a heading to the verse unless an earlier verse already has it."""
    if heading is None or not heading.text or heading.text in used:
        return
    draft.heading = heading.text
    draft.heading_id = heading.heading_id
    used.add(heading.text)


# =============================================================================
# Parser
# =============================================================================

class ESVParser(BaseParser):
    """Normalizes ESV API passage HTML."""

    def __init__(self):
        super().__init__(Translation.ESV)

    def parse(self, payload: Any) -> Chapter:
        """
        Parse an ESV API response.

        Expected input:
            {
                "canonical": "John 3",
                "passages": ["<h2>...</h2><p>...</p>"],
                "copyright": "..."
            }
        """
        passages = payload.get("passages") if isinstance(payload, dict) else None
        if not passages or not passages[0] or not isinstance(passages[0], str):
            raise MissingPassage(
                "ESV payload has no passages", translation=self.translation.value
            )

        reference = payload.get("canonical") or payload.get("query")
        book_name, chapter_number = self._decompose(reference)
        html = passages[0]
        psalm = is_psalm(book_name)

        verses = self._parse_paragraphs(html, psalm)
        if not verses:
            logger.warning(
                "[%s] no paragraph markers in %s, falling back to verse spans",
                self.name, reference,
            )
            verses = self._parse_verse_spans(html, psalm)

        if not verses:
            raise NoParsableContent(
                "No verses found in ESV passage HTML",
                reference=reference,
                translation=self.translation.value,
            )

        return self._build_chapter(
            reference,
            book_name,
            chapter_number,
            verses,
            payload,
            copyright=payload.get("copyright"),
            psalm_metadata=self._psalm_metadata(html, chapter_number) if psalm else None,
        )

    # -------------------------------------------------------------------------
    # Paragraph form
    # -------------------------------------------------------------------------

    def _parse_paragraphs(self, html: str, psalm: bool) -> list[Verse]:
        headings = find_headings(html)
        heading_positions = [heading.position for heading in headings]
        used_headings: set[str] = set()
        drafts: list[VerseDraft] = []

        for match in _PARAGRAPH_RE.finditer(html):
            body = match.group(1)
            if COPYRIGHT_MARKER in body:
                continue

            # Nearest heading before this paragraph
            index = bisect.bisect_left(heading_positions, match.start()) - 1
            heading = headings[index] if index >= 0 else None

            if psalm and _LINE_OPEN_RE.search(body):
                self._scan_lines(body, heading, drafts, used_headings)
            else:
                self._scan_markers(body, heading, drafts, used_headings, psalm)

        verses = []
        for draft in drafts:
            if not draft.text:
                logger.debug("[%s] dropping empty verse %s", self.name, draft.number)
                continue
            verses.append(draft.to_verse(check_selah=psalm))
        return verses

    def _scan_markers(
        self,
        body: str,
        heading: Optional[Heading],
        drafts: list[VerseDraft],
        used_headings: set[str],
        psalm: bool,
    ):
        markers = list(_MARKER_RE.finditer(body))
        added = []

        for index, marker in enumerate(markers):
            number = marker_number(marker.group(1), marker.group(2))
            end = markers[index + 1].start() if index + 1 < len(markers) else len(body)
            segment = body[marker.end():end]
            text = normalize(strip_tags(segment))
            if not number or not text:
                continue

            draft = VerseDraft(
                number=number,
                text_parts=[text],
                is_first_verse=marker.group(1) == "chapter-num" or number == "1",
                is_red_letter=bool(_WOC_RE.search(segment)),
            )
            if not added:
                _claim_heading(draft, heading, used_headings)
            added.append(draft)

        # Psalm paragraphs are stanzas
        if psalm and added:
            added[-1].stanza_break_after = True
        drafts.extend(added)

    def _scan_lines(
        self,
        body: str,
        heading: Optional[Heading],
        drafts: list[VerseDraft],
        used_headings: set[str],
    ):
        lines = extract_nested(body, _LINE_OPEN_RE)

        # An end-line-group marker closes the stanza at the line before it
        stanza_ends = set()
        for group_end in _END_LINE_GROUP_RE.finditer(body):
            before = [i for i, line in enumerate(lines) if line.end <= group_end.start()]
            if before:
                stanza_ends.add(before[-1])

        opened_here = False
        space_before = False
        for index, line in enumerate(lines):
            indented = bool(_INDENT_RE.search(line.open_tag))
            marker = _MARKER_RE.search(line.content)
            segment = line.content[marker.end():] if marker else line.content
            text = normalize(strip_tags(segment))
            poetry_line = LineDraft(
                text_parts=[text],
                indent_level=2 if indented else 1,
                is_red_letter=bool(_WOC_RE.search(segment)),
                has_space_before=space_before,
            )
            space_before = index in stanza_ends

            number = marker_number(marker.group(1), marker.group(2)) if marker else ""
            if number:
                draft = VerseDraft(
                    number=number,
                    is_first_verse=marker.group(1) == "chapter-num" or number == "1",
                    poetry_indent_level=1 if indented else 0,
                    keep_lines=True,
                )
                if not opened_here:
                    _claim_heading(draft, heading, used_headings)
                    opened_here = True
                drafts.append(draft)

            if not drafts:
                logger.debug("[%s] dropping line before first verse: %.60s", self.name, text)
                continue

            # Lines without a marker continue the previous verse
            current = drafts[-1]
            if text:
                current.append(" " + text)
                if current.keep_lines:
                    current.lines.append(poetry_line)
                current.is_red_letter = current.is_red_letter or poetry_line.is_red_letter
            if index in stanza_ends:
                current.stanza_break_after = True

    # -------------------------------------------------------------------------
    # Legacy span form
    # -------------------------------------------------------------------------

    def _parse_verse_spans(self, html: str, psalm: bool) -> list[Verse]:
        spans = extract_nested(html, _TEXT_SPAN_OPEN_RE)

        # Each heading belongs to the first verse span after it
        heading_by_span: dict[int, Heading] = {}
        for heading in find_headings(html):
            for index, span in enumerate(spans):
                if span.start > heading.position:
                    heading_by_span[index] = heading
                    break

        used_headings: set[str] = set()
        drafts = []
        for index, span in enumerate(spans):
            content = span.content
            chapter_match = _CHAPTERNUM_RE.search(content)
            verse_match = None if chapter_match else _VERSENUM_RE.search(content)

            if chapter_match:
                number = "1"
                body = content.replace(chapter_match.group(0), "", 1)
            elif verse_match:
                number = verse_match.group(1)
                body = content.replace(verse_match.group(0), "", 1)
            else:
                logger.debug(
                    "[%s] skipping verse span without a number: %.100s", self.name, content
                )
                continue

            draft = VerseDraft(
                number=number,
                text_parts=[strip_tags(body)],
                is_first_verse=number == "1",
                is_red_letter=bool(_WOC_RE.search(body)),
                raw_html=content,
            )
            _claim_heading(draft, heading_by_span.get(index), used_headings)
            drafts.append(draft)

        return [draft.to_verse(check_selah=psalm) for draft in drafts]

    # -------------------------------------------------------------------------
    # Psalm metadata
    # -------------------------------------------------------------------------

    def _psalm_metadata(self, html: str, chapter_number: str) -> PsalmMetadata:
        headings = find_headings(html)
        superscription = None
        musical_notation = None

        if headings:
            first = headings[0].text
            if SUPERSCRIPTION_RE.match(first) or re.search(r"psalm", first, re.IGNORECASE):
                superscription = first
                musical = MUSICAL_NOTATION_RE.search(first)
                if musical:
                    musical_notation = musical.group(1).strip()

        markers = sorted(
            [(m.start(), marker_number(m.group(1), m.group(2))) for m in _MARKER_RE.finditer(html)]
            + [(m.start(), "1") for m in _CHAPTERNUM_RE.finditer(html)]
            + [(m.start(), m.group(1)) for m in _VERSENUM_RE.finditer(html)]
        )
        marker_positions = [position for position, _ in markers]

        section_headings = []
        for heading in headings[1 if superscription else 0:]:
            index = bisect.bisect_left(marker_positions, heading.position) - 1
            if index < 0 or not heading.text:
                continue
            section_headings.append(
                SectionHeading(after_verse=markers[index][1], heading=heading.text)
            )

        return PsalmMetadata(
            psalm_number=chapter_number,
            has_selah=has_selah(strip_tags(html)),
            superscription=superscription,
            musical_notation=musical_notation,
            section_headings=tuple(section_headings),
        )
