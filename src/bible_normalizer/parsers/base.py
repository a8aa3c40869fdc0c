"""
Base parser interface.

Every payload parser takes one raw, already-fetched API payload and returns
a complete Chapter or raises a ParseError. Parsers hold nothing but their
translation identifier, so one instance can be shared between threads.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from ..models import (
    Chapter,
    ChapterMetadata,
    Footnote,
    PoetryLine,
    PsalmMetadata,
    SpeakerLabel,
    Translation,
    Verse,
)
from ..errors import InvalidReference
from ..text import build_verse, decompose_reference, has_selah, normalize

logger = logging.getLogger(__name__)


@dataclass
class LineDraft:
    """Mutable accumulator for one poetry line."""

    text_parts: list[str] = field(default_factory=list)
    indent_level: int = 1
    is_red_letter: bool = False
    has_space_before: bool = False

    @property
    def text(self) -> str:
        return normalize("".join(self.text_parts))

    def to_line(self) -> PoetryLine:
        return PoetryLine(
            text=self.text,
            indent_level=self.indent_level,
            is_red_letter=self.is_red_letter,
            has_space_before=self.has_space_before,
        )


@dataclass
class VerseDraft:
    """Mutable accumulator for a verse that is still being scanned."""

    number: str
    text_parts: list[str] = field(default_factory=list)
    lines: list[LineDraft] = field(default_factory=list)
    is_red_letter: bool = False
    is_first_verse: bool = False
    heading: Optional[str] = None
    heading_id: Optional[str] = None
    raw_html: Optional[str] = None
    poetry_indent_level: int = 0
    is_selah: bool = False
    stanza_break_after: bool = False
    starts_paragraph: bool = False
    prose_before: Optional[str] = None
    prose_after: Optional[str] = None
    speaker_labels: list[SpeakerLabel] = field(default_factory=list)
    footnotes: list[Footnote] = field(default_factory=list)
    keep_lines: bool = False  # also emit the plain `lines` list

    @property
    def text(self) -> str:
        return normalize("".join(self.text_parts))

    def append(self, text: str, line: Optional[LineDraft] = None):
        self.text_parts.append(text)
        if line is not None:
            line.text_parts.append(text)

    def to_verse(self, check_selah: bool = False) -> Verse:
        text = self.text
        lines = [line.to_line() for line in self.lines if line.text]
        return build_verse(
            self.number,
            text,
            is_red_letter=self.is_red_letter,
            is_first_verse=self.is_first_verse,
            heading=self.heading,
            heading_id=self.heading_id,
            raw_html=self.raw_html,
            poetry_indent_level=self.poetry_indent_level,
            is_selah=self.is_selah or (check_selah and has_selah(text)),
            stanza_break_after=self.stanza_break_after,
            starts_paragraph=self.starts_paragraph,
            poetry_lines=lines,
            lines=[line.text for line in lines] if self.keep_lines else None,
            prose_before=self.prose_before,
            prose_after=self.prose_after,
            speaker_labels=self.speaker_labels,
            footnotes=self.footnotes,
        )


class BaseParser(ABC):
    """Common plumbing for the format parsers."""

    def __init__(self, translation: Translation):
        self._translation = Translation(translation)

    @property
    def translation(self) -> Translation:
        return self._translation

    @property
    def name(self) -> str:
        return f"{self._translation.value}Parser"

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._translation.value}>"

    @abstractmethod
    def parse(self, payload: Any) -> Chapter:
        """Normalize one raw payload into a Chapter."""

    def _decompose(self, reference) -> tuple[str, str]:
        try:
            return decompose_reference(reference)
        except InvalidReference as exc:
            raise InvalidReference(
                exc.message,
                reference=reference if isinstance(reference, str) else None,
                translation=self._translation.value,
            ) from None

    def _build_chapter(
        self,
        reference: str,
        book_name: str,
        chapter_number: str,
        verses: list[Verse],
        payload: Any,
        copyright: Optional[str] = None,
        psalm_metadata: Optional[PsalmMetadata] = None,
    ) -> Chapter:
        logger.debug(
            "[%s] parsed %s: %d verses", self.name, reference, len(verses)
        )
        return Chapter(
            reference=reference,
            translation=self._translation,
            book_name=book_name,
            chapter_number=chapter_number,
            verses=tuple(verses),
            metadata=ChapterMetadata(
                copyright=copyright,
                translation_name=self._translation.full_name,
            ),
            psalm_metadata=psalm_metadata,
            raw_response=payload,
        )
