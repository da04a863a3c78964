"""
Content validation for extracted spans.

Legacy binaries interleave structure bytes with text, so a regular
expression run over extracted text happily matches garbage such as
``{=\x01\x9f...}``. Every sample that ends up in a report passes through
:class:`ContentValidator` first.
"""

import unicodedata
from dataclasses import dataclass

REPLACEMENT_CHAR = "�"

DEFAULT_MIN_LENGTH = 10
DEFAULT_MAX_NON_PRINTABLE_RATIO = 0.3
DEFAULT_MAX_REPLACEMENT_RATIO = 0.2


def is_printable_char(ch: str) -> bool:
    """Printable in the Unicode sense: letters, marks, numbers, punctuation,
    symbols and the ASCII space."""
    if ch == " ":
        return True
    return unicodedata.category(ch)[0] in "LMNPS"


def is_printable_or_space(ch: str) -> bool:
    return ch.isspace() or is_printable_char(ch)


@dataclass(frozen=True)
class ContentValidator:
    min_length: int = DEFAULT_MIN_LENGTH
    max_non_printable_ratio: float = DEFAULT_MAX_NON_PRINTABLE_RATIO
    max_replacement_ratio: float = DEFAULT_MAX_REPLACEMENT_RATIO

    def is_valid(self, content: str) -> bool:
        """True when ``content`` looks like genuine text rather than binary noise."""
        if not content or len(content) < self.min_length:
            return False

        replacement = 0
        non_printable = 0
        for ch in content:
            if ch == REPLACEMENT_CHAR:
                replacement += 1
            elif not is_printable_or_space(ch):
                non_printable += 1

        total = len(content)
        if replacement / total > self.max_replacement_ratio:
            return False
        if non_printable / total > self.max_non_printable_ratio:
            return False
        return True

    def clean(self, content: str) -> str:
        """Drop non-printable code points, keeping the order of the rest."""
        return "".join(ch for ch in content if is_printable_or_space(ch))


DEFAULT_VALIDATOR = ContentValidator()
