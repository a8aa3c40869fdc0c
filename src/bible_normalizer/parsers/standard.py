"""
Parser for structured JSON chapter content (KJV, ASV, WEB editions).

The standard payload is a tree of paragraph nodes. Each paragraph carries a
USFM-style style tag and a list of items: text runs, verse markers, character
spans and notes.

    {
        "reference": "Psalms 23",
        "content": [
            {"name": "para", "type": "tag", "attrs": {"style": "d"},
             "items": [{"text": "A Psalm of David.", "type": "text"}]},
            {"name": "para", "type": "tag", "attrs": {"style": "q1"},
             "items": [
                 {"name": "verse", "type": "tag", "attrs": {"number": "1"}},
                 {"text": "The LORD is my shepherd;", "type": "text"}
             ]}
        ]
    }

A verse may run across several paragraphs, so the walker keeps one open
verse until the next marker rather than closing it at a paragraph boundary.
"""

import logging
import re
from enum import Enum
from typing import Any, Iterator, Optional

from ..errors import NoVersesFound
from ..models import (
    Chapter,
    Footnote,
    FootnoteType,
    PsalmMetadata,
    SectionHeading,
    SpeakerLabel,
    Translation,
    Verse,
)
from ..text import build_verse, classify_footnote, has_selah, is_psalm, normalize
from .base import BaseParser, LineDraft, VerseDraft

logger = logging.getLogger(__name__)


# =============================================================================
# Paragraph and character styles
# =============================================================================

HEADING_STYLES = {"s1", "s2", "s3"}
SECTION_HEADING_STYLES = {"s2", "s3"}
SUPERSCRIPTION_STYLES = {"d", "s1"}
SPEAKER_STYLES = {"sp"}
BLANK_STYLES = {"b"}

# Titles and reference lines that never hold verse text
SKIPPED_STYLES = {"d", "r", "mr", "ms", "ms1", "ms2", "cl"}

POETRY_INDENT = {"q": 1, "q1": 1, "q2": 2, "q3": 2, "qm": 1, "qm1": 1, "qm2": 2}

RED_LETTER_STYLE = "wj"
FOOTNOTE_STYLE = "f"
CROSS_REFERENCE_STYLE = "x"
REFERENCE_STYLES = {"fr", "xo"}

# Callers the publisher leaves for the renderer to number
AUTO_CALLERS = {"+", "-"}
DEFAULT_MARKERS = {FOOTNOTE_STYLE: "*", CROSS_REFERENCE_STYLE: "†"}

MUSICAL_NOTATION_RE = re.compile(r"(To the (?:chief )?Musician[^.]*)", re.IGNORECASE)
_NUMERIC_RE = re.compile(r"^\s*\d+\s*$")


# =============================================================================
# Node helpers
# =============================================================================

def _style(node: dict) -> Optional[str]:
    attrs = node.get("attrs")
    return attrs.get("style") if isinstance(attrs, dict) else None


def _items(node: dict) -> list:
    items = node.get("items")
    return items if isinstance(items, list) else []


def _verse_number(item: dict) -> Optional[str]:
    """The number of a verse marker, or None for any other item."""
    if item.get("type") != "tag" or item.get("name") != "verse":
        return None
    attrs = item.get("attrs")
    number = attrs.get("number") if isinstance(attrs, dict) else None
    return str(number).strip() if number not in (None, "") else None


def _is_note(item: dict) -> bool:
    return item.get("type") == "tag" and item.get("name") == "note"


def _opens_with_marker(items: list) -> bool:
    for item in items:
        if not isinstance(item, dict):
            continue
        if item.get("type") == "text" and not str(item.get("text", "")).strip():
            continue
        return _verse_number(item) is not None
    return False


def collect_text(items: list) -> str:
    """Concatenated text of a node list, notes excluded."""
    parts = []
    for item in items:
        if not isinstance(item, dict) or _is_note(item):
            continue
        if item.get("type") == "text":
            parts.append(str(item.get("text", "")))
        else:
            parts.append(collect_text(_items(item)))
    return "".join(parts)


def iter_texts(items: list) -> Iterator[str]:
    for item in items:
        if not isinstance(item, dict):
            continue
        if item.get("type") == "text" and isinstance(item.get("text"), str):
            yield item["text"]
        yield from iter_texts(_items(item))


def _split_note(items: list, reference: list, body: list, in_reference: bool = False):
    for item in items:
        if not isinstance(item, dict):
            continue
        if item.get("type") == "text":
            (reference if in_reference else body).append(str(item.get("text", "")))
        else:
            _split_note(
                _items(item), reference, body,
                in_reference or _style(item) in REFERENCE_STYLES,
            )


def build_footnote(note: dict) -> Optional[Footnote]:
    """Turn a note tag into a Footnote, or None when it has no body text."""
    style = _style(note)
    if style not in DEFAULT_MARKERS:
        return None

    reference_parts: list[str] = []
    body_parts: list[str] = []
    _split_note(_items(note), reference_parts, body_parts)
    content = normalize("".join(body_parts))
    if not content:
        return None

    caller = (note.get("attrs") or {}).get("caller")
    if not caller or caller in AUTO_CALLERS:
        caller = DEFAULT_MARKERS[style]

    if style == CROSS_REFERENCE_STYLE:
        footnote_type = FootnoteType.CROSS_REFERENCE
    else:
        footnote_type = classify_footnote(content)

    return Footnote(
        marker=caller,
        content=content,
        type=footnote_type,
        reference=normalize("".join(reference_parts)) or None,
    )


# =============================================================================
# Paragraph walk
# =============================================================================

class WalkState(Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"


class ChapterWalk:
    """Accumulates verses while walking the paragraph list in order.

    Headings and speaker labels wait until a verse can take them and are
    consumed exactly once. A blank paragraph between two verse-bearing
    paragraphs closes a stanza.
    """

    def __init__(self, psalm: bool):
        self.psalm = psalm
        self.state = WalkState.IDLE
        self.verses: list[Verse] = []
        self.active: Optional[VerseDraft] = None
        self.segments: list[tuple[bool, LineDraft]] = []  # (is_poetry, line)
        self.line: Optional[LineDraft] = None
        self.current_heading: Optional[str] = None
        self.current_speaker: Optional[str] = None
        self.pending_break = False
        self.paragraph_style: Optional[str] = None
        self.first_marker = False
        self.space_before = False
        self.used_headings: set[str] = set()

    def run(self, paragraphs: list) -> list[Verse]:
        for paragraph in paragraphs:
            if not isinstance(paragraph, dict):
                continue
            style = _style(paragraph)
            if style in HEADING_STYLES:
                self.current_heading = normalize(collect_text(_items(paragraph))) or None
            elif style in SPEAKER_STYLES:
                self.current_speaker = normalize(collect_text(_items(paragraph))) or None
            elif style in BLANK_STYLES:
                self.pending_break = True
            elif style in SKIPPED_STYLES:
                continue
            else:
                self._paragraph(paragraph, style)
        self._flush()
        return self.verses

    # -------------------------------------------------------------------------

    def _paragraph(self, paragraph: dict, style: Optional[str]):
        space_before = False
        if self.pending_break and self.active is not None:
            self.active.stanza_break_after = True
            space_before = True
        self.pending_break = False

        if self.active is not None:
            # The open verse continues into this paragraph
            self.active.append(" ")
            self._start_segment(style, space_before)
            if self.current_speaker and not _opens_with_marker(_items(paragraph)):
                self.active.speaker_labels.append(
                    SpeakerLabel(text=self.current_speaker, before_line_index=self._line_count())
                )
                self.current_speaker = None

        self.first_marker = True
        self.space_before = space_before
        self.paragraph_style = style
        self._consume(_items(paragraph), red_letter=False)

    def _consume(self, items: list, red_letter: bool):
        for item in items:
            if not isinstance(item, dict):
                continue

            number = _verse_number(item)
            if number is not None:
                self._open(number)
            elif _is_note(item):
                footnote = build_footnote(item)
                if footnote is not None and self.active is not None:
                    self.active.footnotes.append(footnote)
            elif item.get("type") == "text":
                self._text(str(item.get("text", "")), red_letter)
            else:
                self._consume(_items(item), red_letter or _style(item) == RED_LETTER_STYLE)

    def _text(self, text: str, red_letter: bool):
        if self.state is WalkState.IDLE:
            if text.strip():
                logger.debug("dropping text before first verse: %.60s", text)
            return
        self.active.append(text, self.line)
        if red_letter and text.strip():
            self.active.is_red_letter = True
            self.line.is_red_letter = True

    def _open(self, number: str):
        self._flush()
        draft = VerseDraft(
            number=number,
            starts_paragraph=self.first_marker and bool(self.verses),
            poetry_indent_level=POETRY_INDENT.get(self.paragraph_style, 0),
        )
        if self.current_heading and self.current_heading not in self.used_headings:
            draft.heading = self.current_heading
            self.used_headings.add(self.current_heading)
        self.current_heading = None
        if self.current_speaker:
            draft.speaker_labels.append(SpeakerLabel(text=self.current_speaker, before_line_index=0))
            self.current_speaker = None

        self.active = draft
        self.state = WalkState.ACCUMULATING
        self._start_segment(self.paragraph_style, self.first_marker and self.space_before)
        self.first_marker = False

    def _start_segment(self, style: Optional[str], space_before: bool):
        poetry = style in POETRY_INDENT
        self.line = LineDraft(
            indent_level=POETRY_INDENT.get(style, 1),
            has_space_before=space_before and poetry,
        )
        self.segments.append((poetry, self.line))

    def _line_count(self) -> int:
        return sum(1 for poetry, line in self.segments[:-1] if poetry and line.text)

    def _flush(self):
        draft = self.active
        if draft is None:
            return

        poetry = [index for index, (is_poetry, line) in enumerate(self.segments)
                  if is_poetry and line.text]
        if poetry:
            draft.lines = [self.segments[index][1] for index in poetry]
            before = [line.text for _, line in self.segments[:poetry[0]]]
            after = [line.text for _, line in self.segments[poetry[-1] + 1:]]
            draft.prose_before = normalize(" ".join(before)) or None
            draft.prose_after = normalize(" ".join(after)) or None

        if draft.text:
            draft.is_first_verse = not self.verses
            self.verses.append(draft.to_verse(check_selah=self.psalm))
        else:
            logger.debug("dropping empty verse %s", draft.number)

        self.active = None
        self.line = None
        self.segments = []
        self.state = WalkState.IDLE


# =============================================================================
# Parser
# =============================================================================

class StandardParser(BaseParser):
    """Normalizes structured JSON chapter content."""

    def __init__(self, translation: Translation):
        super().__init__(translation)

    def parse(self, payload: Any) -> Chapter:
        reference = payload.get("reference") if isinstance(payload, dict) else None
        book_name, chapter_number = self._decompose(reference)
        psalm = is_psalm(book_name)

        content = payload.get("content")
        paragraphs = content if isinstance(content, list) else []

        verses = ChapterWalk(psalm).run(paragraphs)
        if not verses:
            verses = self._parse_flat(paragraphs) or self._parse_flat(
                [{"items": payload.get("items")}]
            )
            if verses:
                logger.warning(
                    "[%s] no verse markers in %s, used flat item list", self.name, reference
                )

        if not verses:
            logger.error(
                "[%s] no verses in %s (content paragraphs: %d, root items: %s)",
                self.name, reference, len(paragraphs), "items" in payload,
            )
            raise NoVersesFound(
                "No verses found in chapter content",
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
            psalm_metadata=self._psalm_metadata(paragraphs, chapter_number) if psalm else None,
        )

    def _parse_flat(self, paragraphs: list) -> list[Verse]:
        """Verses from simple {"name": "3", "text": "..."} items."""
        verses = []
        for paragraph in paragraphs:
            if not isinstance(paragraph, dict):
                continue
            for item in _items(paragraph):
                if not isinstance(item, dict):
                    continue
                name = item.get("name")
                text = item.get("text")
                if not isinstance(name, str) or not _NUMERIC_RE.match(name):
                    continue
                if not isinstance(text, str) or not text.strip():
                    continue
                verses.append(build_verse(name.strip(), text, is_first_verse=not verses))
        return verses

    # -------------------------------------------------------------------------
    # Psalm metadata
    # -------------------------------------------------------------------------

    def _psalm_metadata(self, paragraphs: list, chapter_number: str) -> PsalmMetadata:
        paragraphs = [p for p in paragraphs if isinstance(p, dict)]

        superscription = None
        musical_notation = None
        if paragraphs and _style(paragraphs[0]) in SUPERSCRIPTION_STYLES:
            superscription = normalize(collect_text(_items(paragraphs[0]))) or None
            musical = MUSICAL_NOTATION_RE.search(superscription or "")
            if musical:
                musical_notation = musical.group(1).strip()

        section_headings = []
        last_verse = None
        for paragraph in paragraphs:
            if _style(paragraph) in SECTION_HEADING_STYLES:
                heading = normalize(collect_text(_items(paragraph)))
                if heading and last_verse is not None:
                    section_headings.append(SectionHeading(after_verse=last_verse, heading=heading))
            last_verse = _last_marker(_items(paragraph), last_verse)

        return PsalmMetadata(
            psalm_number=chapter_number,
            has_selah=any(has_selah(text) for text in iter_texts(paragraphs)),
            superscription=superscription,
            musical_notation=musical_notation,
            section_headings=tuple(section_headings),
        )


def _last_marker(items: list, last: Optional[str]) -> Optional[str]:
    for item in items:
        if not isinstance(item, dict):
            continue
        number = _verse_number(item)
        if number is not None:
            last = number
        else:
            last = _last_marker(_items(item), last)
    return last
