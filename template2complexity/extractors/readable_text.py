"""
Printable-run scanning for binary containers.

This is the fallback every extractor degrades to: walk a buffer, keep
maximal runs of printable characters, and drop runs that look like binary
structure (hex dumps, pointers, symbol soup) rather than words.
"""

import re
from typing import Iterator

from template2complexity.extractors.format_detection import is_printable_byte

MIN_RUN_LENGTH = 3

_RE_UPPER_HEX = re.compile(r"[0-9A-F]+")
_RE_POINTER = re.compile(r"0x[0-9a-fA-F]+")
_MAX_PLAIN_HEX_LENGTH = 8
_MAX_NON_ALPHA_RATIO = 0.5


def is_binary_pattern(run: str) -> bool:
    """True when a printable run is more likely structure bytes than text."""
    if not run:
        return True
    if len(run) > _MAX_PLAIN_HEX_LENGTH and _RE_UPPER_HEX.fullmatch(run):
        return True
    if _RE_POINTER.fullmatch(run):
        return True

    non_alpha = sum(
        1 for ch in run if not (("a" <= ch <= "z") or ("A" <= ch <= "Z") or ch == " ")
    )
    return non_alpha / len(run) > _MAX_NON_ALPHA_RATIO


def iter_printable_runs(
    data: bytes, min_length: int = MIN_RUN_LENGTH
) -> Iterator[str]:
    """Yield maximal runs of printable ASCII bytes that pass the binary filter."""
    start = None
    for index, value in enumerate(data):
        if is_printable_byte(value):
            if start is None:
                start = index
            continue
        if start is not None:
            run = data[start:index].decode("ascii")
            if len(run) >= min_length and not is_binary_pattern(run):
                yield run
            start = None

    if start is not None:
        run = data[start:].decode("ascii")
        if len(run) >= min_length and not is_binary_pattern(run):
            yield run


def extract_readable_text(data: bytes, min_length: int = MIN_RUN_LENGTH) -> str:
    """Space-joined printable runs of ``data``."""
    return " ".join(iter_printable_runs(data, min_length))
