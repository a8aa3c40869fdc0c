"""Text helpers shared by every payload parser."""

import re
from dataclasses import dataclass

from bs4 import BeautifulSoup, NavigableString, Tag

from .errors import InvalidReference
from .models import FootnoteType, Verse


# =============================================================================
# Constants
# =============================================================================

# Classes (or bare tag names) that mark the words of Jesus
RED_LETTER_CLASSES = {"woc", "red", "words-of-jesus", "wj"}

PSALM_BOOKS = {"psalm", "psalms"}

ENTITIES = {
    "nbsp": " ",
    "amp": "&",
    "lt": "<",
    "gt": ">",
    "quot": '"',
    "#39": "'",
    "mdash": "—",
}

_REFERENCE_RE = re.compile(r"^(.+?)\s+(\d+)$")
_WHITESPACE_RE = re.compile(r"\s+")
_BR_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
_STRUCTURAL_TAG_RE = re.compile(r"</?(?:p|div|span)\b[^>]*>", re.IGNORECASE)
_ANY_TAG_RE = re.compile(r"<[^>]+>")
_ENTITY_RE = re.compile(r"&([^;\s&]+);")
_SELAH_RE = re.compile(r"\bSelah\b", re.IGNORECASE)

# Footnote classification, tested in this order
_FOOTNOTE_RULES = [
    (re.compile(r"\bheb(?:rew)?\b", re.IGNORECASE), FootnoteType.HEBREW),
    (re.compile(r"\b(?:gr|gk|greek)\b", re.IGNORECASE), FootnoteType.GREEK),
    (re.compile(r"\bor\b", re.IGNORECASE), FootnoteType.ALTERNATIVE),
    (re.compile(r"manuscript", re.IGNORECASE), FootnoteType.TEXTUAL_VARIANT),
    (re.compile(r"\b(?:compare|see)\b", re.IGNORECASE), FootnoteType.CROSS_REFERENCE),
]

_SEQUENCE_FIELDS = ("lines", "poetry_lines", "speaker_labels", "footnotes")


# =============================================================================
# References
# =============================================================================

def decompose_reference(reference) -> tuple[str, str]:
    """Split a chapter reference like '1 Corinthians 13' into book and chapter."""
    if not isinstance(reference, str):
        raise InvalidReference(f"Invalid chapter reference: {reference!r}")
    match = _REFERENCE_RE.match(reference.strip())
    if not match:
        raise InvalidReference(
            f"Invalid chapter reference: {reference!r}", reference=reference
        )
    return match.group(1).strip(), match.group(2)


def is_psalm(book_name: str) -> bool:
    return book_name.strip().lower() in PSALM_BOOKS


# =============================================================================
# Markup cleanup
# =============================================================================

def normalize(text: str) -> str:
    """Collapse whitespace runs (nbsp and line breaks included) and trim."""
    return _WHITESPACE_RE.sub(" ", text).strip()


def strip_tags(markup: str) -> str:
    """Remove tags and decode the handful of entities the upstream APIs emit.

    Line breaks become spaces so neighbouring words do not run together.
    Entities outside the known set are dropped.
    """
    text = _BR_RE.sub(" ", markup)
    text = _STRUCTURAL_TAG_RE.sub("", text)
    text = _ANY_TAG_RE.sub("", text)
    return _ENTITY_RE.sub(lambda m: ENTITIES.get(m.group(1).lower(), ""), text)


def has_selah(text: str) -> bool:
    return bool(_SELAH_RE.search(text))


def _inner_markup(markup: str) -> str:
    """Raw markup between a lone wrapper's opening and closing tags."""
    fragment = markup.strip()
    start = fragment.find(">") + 1
    end = fragment.rfind("</")
    return fragment[start:end] if end >= start else fragment[start:]


def extract_red_letter(markup: str) -> tuple[str, bool]:
    """Return the fragment text and whether the whole fragment is red letter.

    Only a fragment wrapped in a single red-letter element counts; partial
    red-letter spans are left to the format parsers.
    """
    soup = BeautifulSoup(markup, "html.parser")
    nodes = [
        node for node in soup.contents
        if not (isinstance(node, NavigableString) and not node.strip())
    ]
    if len(nodes) == 1 and isinstance(nodes[0], Tag):
        wrapper = nodes[0]
        classes = wrapper.get("class") or []
        if wrapper.name in RED_LETTER_CLASSES or RED_LETTER_CLASSES.intersection(classes):
            return strip_tags(_inner_markup(markup)), True
    return strip_tags(markup), False


# =============================================================================
# Nested elements
# =============================================================================

@dataclass(frozen=True)
class Span:
    """An element found by extract_nested, with offsets into the source."""

    start: int  # offset of the opening tag
    end: int  # offset just past the matching closing tag
    open_tag: str
    content: str


def extract_nested(markup: str, open_re: re.Pattern, tag: str = "span") -> list[Span]:
    """Find every element opened by `open_re` together with its real content.

    The first closing tag after an opening tag is not necessarily its own
    when the content holds nested elements of the same kind, so walk forward
    counting opens and closes until the depth returns to zero. Elements with
    no matching close are skipped.
    """
    opener = f"<{tag}"
    closer = f"</{tag}>"
    spans = []

    for match in open_re.finditer(markup):
        content_start = match.end()
        depth = 1
        cursor = content_start

        while depth > 0 and cursor < len(markup):
            next_open = markup.find(opener, cursor)
            next_close = markup.find(closer, cursor)
            if next_close == -1:
                break

            if next_open != -1 and next_open < next_close:
                depth += 1
                cursor = next_open + 1
            else:
                depth -= 1
                if depth == 0:
                    spans.append(Span(
                        start=match.start(),
                        end=next_close + len(closer),
                        open_tag=match.group(0),
                        content=markup[content_start:next_close],
                    ))
                cursor = next_close + 1

    return spans


# =============================================================================
# Verses and footnotes
# =============================================================================

def build_verse(number: str, text: str, **overrides) -> Verse:
    """Create a Verse with the usual defaults.

    Text is normalized unless explicit lines are supplied, in which case
    the caller owns the line structure.
    """
    if not (overrides.get("lines") or overrides.get("poetry_lines")):
        text = normalize(text)
    for name in _SEQUENCE_FIELDS:
        if name in overrides and overrides[name] is not None:
            overrides[name] = tuple(overrides[name])
        elif name in overrides:
            del overrides[name]
    fields = {"is_red_letter": False, "is_first_verse": False}
    fields.update(overrides)
    return Verse(number=number, text=text, **fields)


def classify_footnote(content: str) -> FootnoteType:
    """Guess what kind of note a footnote body is."""
    for pattern, footnote_type in _FOOTNOTE_RULES:
        if pattern.search(content):
            return footnote_type
    return FootnoteType.OTHER
