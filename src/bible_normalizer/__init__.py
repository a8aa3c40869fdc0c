"""
Bible Normalizer - Turns ESV, NLT and structured JSON chapter payloads into one canonical chapter model.
"""

from .errors import (
    InvalidReference,
    MissingPassage,
    NoParsableContent,
    NoVersesFound,
    ParseError,
    UnsupportedTranslation,
)
from .models import (
    Chapter,
    ChapterMetadata,
    Footnote,
    FootnoteType,
    PoetryLine,
    PsalmMetadata,
    SectionHeading,
    SpeakerLabel,
    Translation,
    Verse,
)
from .parsers import ESVParser, NLTParser, StandardParser
from .registry import get_parser, parse_chapter

__all__ = [
    "Chapter",
    "ChapterMetadata",
    "Footnote",
    "FootnoteType",
    "PoetryLine",
    "PsalmMetadata",
    "SectionHeading",
    "SpeakerLabel",
    "Translation",
    "Verse",
    "ParseError",
    "InvalidReference",
    "MissingPassage",
    "NoParsableContent",
    "NoVersesFound",
    "UnsupportedTranslation",
    "ESVParser",
    "NLTParser",
    "StandardParser",
    "get_parser",
    "parse_chapter",
]

__version__ = "0.1.0"
