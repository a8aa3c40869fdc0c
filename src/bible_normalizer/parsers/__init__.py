"""Format parsers, one per upstream payload dialect."""

from .base import BaseParser
from .esv import ESVParser
from .nlt import NLTParser
from .standard import StandardParser

__all__ = [
    "BaseParser",
    "ESVParser",
    "NLTParser",
    "StandardParser",
]
