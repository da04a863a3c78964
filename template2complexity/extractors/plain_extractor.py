"""
Plain text and unknown-format extractors.
"""

import logging

from template2complexity.extractors.content_validator import is_printable_or_space
from template2complexity.extractors.data_types import (
    DocumentFormat,
    ExtractedDocument,
)
from template2complexity.extractors.readable_text import extract_readable_text
from template2complexity.extractors.util.vba import contains_macro_indicators

logger = logging.getLogger(__name__)

UTF8_MIN_PRINTABLE_RATIO = 0.9


def read_plain_text(data: bytes) -> ExtractedDocument:
    """
    Decode a plain-text template.

    Undecodable bytes become U+FFFD so the content validator can still see
    that something was wrong with them.
    """
    logger.debug("Reading plain text template")
    text = data.decode("utf-8", errors="replace")

    return ExtractedDocument(
        format=DocumentFormat.PLAIN_TEXT,
        text=text,
        has_macros=contains_macro_indicators(text),
        metadata={"format": DocumentFormat.PLAIN_TEXT.display_name},
    )


def read_unknown(data: bytes) -> ExtractedDocument:
    """
    Last-resort extraction for buffers no signature matched.

    Valid UTF-8 (e.g. text in a non-Latin script, which fails the ASCII
    printable-ratio heuristic) is used as is, anything else goes through the
    printable-run scanner.
    """
    text = _decode_readable_utf8(data)
    if text is None:
        text = extract_readable_text(data)
        logger.debug(
            "Unknown format: recovered %d characters of printable runs", len(text)
        )

    return ExtractedDocument(
        format=DocumentFormat.UNKNOWN,
        text=text,
        has_macros=contains_macro_indicators(data.decode("latin-1")),
        metadata={"format": DocumentFormat.UNKNOWN.display_name},
    )


def _decode_readable_utf8(data: bytes) -> str | None:
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        return None
    if not text:
        return None
    printable = sum(1 for ch in text if is_printable_or_space(ch))
    if printable / len(text) <= UTF8_MIN_PRINTABLE_RATIO:
        return None
    return text
