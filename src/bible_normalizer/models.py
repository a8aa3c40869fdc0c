"""Data models for normalized Bible chapters."""

import json
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Optional


class Translation(str, Enum):
    """Translations the normalizer knows how to handle."""

    KJV = "KJV"
    ASV = "ASV"
    ESV = "ESV"
    NLT = "NLT"
    WEB = "WEB"
    WEB_BRITISH = "WEB_BRITISH"
    WEB_UPDATED = "WEB_UPDATED"

    @property
    def full_name(self) -> str:
        return TRANSLATION_NAMES[self]


TRANSLATION_NAMES = {
    Translation.KJV: "King James Version",
    Translation.ASV: "American Standard Version",
    Translation.ESV: "English Standard Version",
    Translation.NLT: "New Living Translation",
    Translation.WEB: "World English Bible",
    Translation.WEB_BRITISH: "World English Bible British Edition",
    Translation.WEB_UPDATED: "World English Bible Updated",
}


class FootnoteType(str, Enum):
    """Coarse classification of a footnote body."""

    HEBREW = "hebrew"
    GREEK = "greek"
    ALTERNATIVE = "alternative"
    CROSS_REFERENCE = "cross-reference"
    TEXTUAL_VARIANT = "textual-variant"
    OTHER = "other"


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, tuple):
        return list(value)
    return value


def _dict_factory(items: list[tuple[str, Any]]) -> dict:
    return {key: _plain(value) for key, value in items}


@dataclass(frozen=True)
class Footnote:
    """A footnote or cross-reference note attached to a verse."""

    marker: str  # e.g. "*" or "a"
    content: str  # footnote body, never empty
    type: FootnoteType = FootnoteType.OTHER
    reference: Optional[str] = None  # e.g. "7:8"


@dataclass(frozen=True)
class PoetryLine:
    """One line of a poetic verse."""

    text: str
    indent_level: int = 1  # 1 or 2
    is_red_letter: bool = False
    has_space_before: bool = False  # new stanza starts at this line


@dataclass(frozen=True)
class SpeakerLabel:
    """Speaker attribution placed before a given poetry line."""

    text: str  # e.g. "The Bride"
    before_line_index: int = 0


@dataclass(frozen=True)
class SectionHeading:
    """A heading inside a Psalm, anchored to the verse it follows."""

    after_verse: str
    heading: str


@dataclass(frozen=True)
class PsalmMetadata:
    """Extra information reported for Psalm chapters."""

    psalm_number: str
    has_selah: bool = False
    superscription: Optional[str] = None  # e.g. "A Psalm of David."
    musical_notation: Optional[str] = None  # e.g. "To the choirmaster"
    section_headings: tuple[SectionHeading, ...] = ()


@dataclass(frozen=True)
class ChapterMetadata:
    copyright: Optional[str] = None
    book_title: Optional[str] = None
    translation_name: Optional[str] = None


@dataclass(frozen=True)
class Verse:
    """A single verse in the normalized format."""

    number: str  # kept as text: "16", "4-5"
    text: str
    is_red_letter: bool = False
    is_first_verse: bool = False
    heading: Optional[str] = None
    heading_id: Optional[str] = None
    raw_html: Optional[str] = None

    # Poetry
    poetry_indent_level: int = 0  # 0 = prose
    is_selah: bool = False
    stanza_break_after: bool = False
    starts_paragraph: bool = False
    poetry_lines: tuple[PoetryLine, ...] = ()
    lines: tuple[str, ...] = ()
    prose_before: Optional[str] = None
    prose_after: Optional[str] = None
    speaker_labels: tuple[SpeakerLabel, ...] = ()

    footnotes: tuple[Footnote, ...] = ()

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self, dict_factory=_dict_factory)


@dataclass(frozen=True)
class Chapter:
    """A whole chapter in the normalized format."""

    reference: str  # e.g. "John 3"
    translation: Translation
    book_name: str
    chapter_number: str
    verses: tuple[Verse, ...]
    metadata: ChapterMetadata = field(default_factory=ChapterMetadata)
    psalm_metadata: Optional[PsalmMetadata] = None
    # Original payload, kept for diagnostics only
    raw_response: Any = field(default=None, compare=False, repr=False)

    @property
    def is_psalm(self) -> bool:
        return self.psalm_metadata is not None

    def to_dict(self) -> dict:
        """Convert to dictionary, leaving out the raw payload."""
        return {
            "reference": self.reference,
            "translation": self.translation.value,
            "book_name": self.book_name,
            "chapter_number": self.chapter_number,
            "verses": [verse.to_dict() for verse in self.verses],
            "metadata": asdict(self.metadata, dict_factory=_dict_factory),
            "psalm_metadata": (
                asdict(self.psalm_metadata, dict_factory=_dict_factory)
                if self.psalm_metadata else None
            ),
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)
