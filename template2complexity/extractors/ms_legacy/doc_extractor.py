"""
DOC/DOT Template Extractor
==========================

Extracts analysable text from legacy Word 97-2003 documents and templates
stored in the OLE2 Compound File Binary Format.

File Format Background
----------------------
The text of a .doc lives in the "WordDocument" stream, either as 8-bit
CP1252 or as UTF-16LE, interleaved with binary structures (FIB, piece
tables, property runs). Reconstructing the text properly needs the piece
table; this extractor deliberately does not do that. Instead it scans the
raw container for printable runs, which recovers field instructions and
body text from the overwhelming majority of templates.

Extraction passes:
    1. 8-bit pass: printable ASCII runs after the 512-byte OLE header.
    2. UTF-16LE pass: the same scan over the buffer decoded as UTF-16LE.
       Word's field markers are rendered as braces here:
       - \\x13 (field begin) -> "{"
       - \\x14 (field separator) -> start of cached result, skipped
       - \\x15 (field end) -> "}"
    3. Keyword pass: every hit of a field keyword (MERGEFIELD, IF,
       DOCVARIABLE, ...) emits a bounded context window as a synthetic
       field code.

Runs that look like hex dumps, pointers, or symbol soup are discarded by
``is_binary_pattern``; without that filter every counter downstream fills
with noise.

Dependencies
------------
olefile: https://github.com/decalage2/olefile
    pip install olefile

    Used best-effort only, for:
    - SummaryInformation metadata (title, author, template, ...)
    - Detecting VBA storages (Macros, _VBA_PROJECT_CUR)

    A container olefile cannot open is still scanned for text.
"""

import datetime
import io
import logging
from typing import Iterator

import olefile

from template2complexity.extractors.data_types import (
    DocumentFormat,
    ExtractedDocument,
)
from template2complexity.extractors.format_detection import is_printable_byte
from template2complexity.extractors.readable_text import (
    MIN_RUN_LENGTH,
    extract_readable_text,
    is_binary_pattern,
)
from template2complexity.extractors.util.vba import (
    OLE_VBA_STORAGES,
    contains_macro_indicators,
)

logger = logging.getLogger(__name__)

OLE_HEADER_SIZE = 512
# Sector size exponents allowed by the compound-file header (512 and 4096)
VALID_SECTOR_SHIFTS = (9, 12)

# Word field markers inside the text stream
FIELD_BEGIN = "\x13"
FIELD_SEPARATOR = "\x14"
FIELD_END = "\x15"

FIELD_KEYWORDS = (
    "MERGEFIELD",
    "IF ",
    "DOCPROPERTY",
    "DOCVARIABLE",
    "INCLUDETEXT",
    "REF ",
)
# Guillemets are single bytes in CP1252 and far too common in binary
# structure, so they are only searched for in the UTF-16LE view
UTF16_ONLY_KEYWORDS = ("«", "»")

CONTEXT_BEFORE = 50
CONTEXT_AFTER = 200
MAX_HITS_PER_KEYWORD = 20

_FIELD_RUN_CHARS = frozenset(FIELD_BEGIN + FIELD_SEPARATOR + FIELD_END + "«»")

_SUMMARY_PROPERTIES = (
    "title",
    "subject",
    "author",
    "keywords",
    "comments",
    "template",
    "last_saved_by",
    "creating_application",
    "company",
)


def read_doc_template(data: bytes) -> ExtractedDocument:
    """
    Extract text, synthetic field codes and metadata from an OLE container.

    Never parses the compound-file directory for text and never raises on
    malformed input: a buffer that is only an OLE signature yields an empty
    text, and the caller's fallback takes over.
    """
    body = data[OLE_HEADER_SIZE:] if len(data) > OLE_HEADER_SIZE else b""

    passes = [extract_readable_text(body), _extract_utf16_text(body)]
    text = "\n".join(chunk for chunk in passes if chunk)
    if not text:
        text = extract_readable_text(data)

    field_codes = _keyword_context_windows(data)
    metadata, has_vba_storage = _inspect_container(data)
    metadata["format"] = DocumentFormat.OLE_CONTAINER.display_name

    has_macros = (
        has_vba_storage
        or contains_macro_indicators(data.decode("latin-1"))
        or contains_macro_indicators(text)
    )

    logger.info(
        "Extracted OLE template: %d characters, %d keyword windows",
        len(text),
        len(field_codes),
    )
    return ExtractedDocument(
        format=DocumentFormat.OLE_CONTAINER,
        text=text,
        field_codes=tuple(field_codes),
        has_macros=has_macros,
        metadata=metadata,
    )


def render_field_markers(run: str) -> str:
    """
    Replace Word field markers in a run with brace syntax.

    Cached field results (between separator and end) are dropped, nested
    fields stay nested. Unterminated fields are left open.
    """
    out: list[str] = []
    frames: list[bool] = []  # True once the frame reached its result
    open_results = 0
    for ch in run:
        if ch == FIELD_BEGIN:
            if open_results == 0:
                out.append("{")
            frames.append(False)
        elif ch == FIELD_SEPARATOR:
            if frames and not frames[-1]:
                frames[-1] = True
                open_results += 1
        elif ch == FIELD_END:
            if not frames:
                continue
            if frames.pop():
                open_results -= 1
            if open_results == 0:
                out.append("}")
        elif open_results == 0:
            out.append(ch)
    return "".join(out)


def _is_run_char(ch: str) -> bool:
    return ch in _FIELD_RUN_CHARS or (ch.isascii() and is_printable_byte(ord(ch)))


def iter_utf16_runs(decoded: str, min_length: int = MIN_RUN_LENGTH) -> Iterator[str]:
    """Printable runs of a UTF-16LE view, with field markers rendered."""
    start = None
    for index, ch in enumerate(decoded):
        if _is_run_char(ch):
            if start is None:
                start = index
            continue
        if start is not None:
            yield from _finish_run(decoded[start:index], min_length)
            start = None
    if start is not None:
        yield from _finish_run(decoded[start:], min_length)


def _finish_run(raw: str, min_length: int) -> Iterator[str]:
    run = render_field_markers(raw).strip()
    if len(run) >= min_length and not is_binary_pattern(run):
        yield run


def _decode_utf16(data: bytes) -> str:
    return data[: len(data) - len(data) % 2].decode("utf-16-le", errors="replace")


def _extract_utf16_text(body: bytes) -> str:
    if len(body) < 2:
        return ""
    return " ".join(iter_utf16_runs(_decode_utf16(body)))


def _keyword_context_windows(data: bytes) -> list[str]:
    windows: list[str] = []
    seen: set[str] = set()

    def add(window: str) -> None:
        window = window.strip()
        if window and window not in seen:
            seen.add(window)
            windows.append(window)

    for keyword in FIELD_KEYWORDS:
        for index in _find_all(data, keyword.encode("ascii")):
            start = max(0, index - CONTEXT_BEFORE)
            add(extract_readable_text(data[start : index + CONTEXT_AFTER]))

    for keyword in FIELD_KEYWORDS + UTF16_ONLY_KEYWORDS:
        for index in _find_all(data, keyword.encode("utf-16-le")):
            start = max(index % 2, index - 2 * CONTEXT_BEFORE)
            window = data[start : index + 2 * CONTEXT_AFTER]
            add(" ".join(iter_utf16_runs(_decode_utf16(window))))

    return windows


def _find_all(data: bytes, needle: bytes) -> Iterator[int]:
    hits = 0
    index = data.find(needle)
    while index >= 0 and hits < MAX_HITS_PER_KEYWORD:
        yield index
        hits += 1
        index = data.find(needle, index + len(needle))


def _decode_property(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace").strip("\x00 ").strip()
    if isinstance(value, datetime.datetime):
        return value.isoformat()
    return str(value).strip()


def _has_plausible_header(data: bytes) -> bool:
    # header plus at least a FAT and a directory sector
    if len(data) < OLE_HEADER_SIZE * 3:
        return False
    sector_shift = int.from_bytes(data[30:32], "little")
    return sector_shift in VALID_SECTOR_SHIFTS


def _inspect_container(data: bytes) -> tuple[dict[str, str], bool]:
    """
    Read SummaryInformation and look for VBA storages with olefile.

    Failures are logged at debug level and yield empty results; the text
    passes do not depend on the directory being readable.
    """
    metadata: dict[str, str] = {}
    has_vba = False
    if not _has_plausible_header(data):
        logger.debug("OLE header implausible, skipping directory inspection")
        return metadata, has_vba
    try:
        with olefile.OleFileIO(io.BytesIO(data)) as ole:
            for entry in ole.listdir(streams=True, storages=True):
                if any(part in OLE_VBA_STORAGES for part in entry):
                    has_vba = True
                    break

            meta = ole.get_metadata()
            for name in _SUMMARY_PROPERTIES:
                value = _decode_property(getattr(meta, name, None))
                if value:
                    metadata[name] = value
    except Exception as e:
        logger.debug(f"OLE directory inspection failed: [{e}]")
    return metadata, has_vba
