"""
RTF Template Extractor

Flattens RTF (Rich Text Format) into analysable text. This is a tokenizer,
not an RTF reader: groups are dropped, control words are stripped, and a
fixed set of destinations (tables of fonts, colours, styles, document info,
pictures, ignorable ``\\*`` destinations) is skipped entirely.

Fields are the one structure that survives. ``{\\field{\\*\\fldinst MERGEFIELD
Name}{\\fldrslt «Name»}}`` comes out as ``{MERGEFIELD Name}``: the
instruction is kept, the cached result is dropped, and nested fields nest.
"""

import logging
import re

from template2complexity.extractors.data_types import (
    DocumentFormat,
    ExtractedDocument,
)
from template2complexity.extractors.util.vba import contains_macro_indicators

logger = logging.getLogger(__name__)

# =============================================================================
# Tokenizer
# =============================================================================

_RE_TOKEN = re.compile(
    r"\\([a-zA-Z]+)(-?\d+)? ?"  # control word with optional parameter
    r"|\\'([0-9a-fA-F]{2})"  # hex escaped byte
    r"|\\(.)"  # control symbol
    r"|([{}])"  # group delimiters
    r"|([^\\{}\r\n]+)"  # plain text
    r"|[\r\n]+",  # raw line breaks carry no meaning in RTF
    re.DOTALL,
)

_RE_WHITESPACE = re.compile(r"\s+")

_RE_INFO_FIELD = re.compile(
    r"\{\\(title|subject|author|keywords|operator|company|doccomm)\s+([^{}]*)\}",
    re.IGNORECASE,
)
_INFO_KEYS = {
    "title": "title",
    "subject": "subject",
    "author": "author",
    "keywords": "keywords",
    "operator": "lastModifiedBy",
    "company": "company",
    "doccomm": "description",
}

# Destinations whose content is never document text
SKIP_DESTINATIONS = frozenset(
    {
        "fonttbl",
        "colortbl",
        "stylesheet",
        "info",
        "pict",
        "object",
        "datafield",
        "ftnsep",
        "ftnsepc",
        "aftnsep",
        "aftnsepc",
        "pnseclvl",
        "xmlnstbl",
        "rsidtbl",
        "mmathPr",
        "generator",
        "listtable",
        "listoverridetable",
        "revtbl",
        "themedata",
        "colorschememapping",
        "latentstyles",
        "datastore",
    }
)

# Control words rendered as text; line and paragraph breaks collapse to spaces
SPECIAL_CHARS = {
    "par": " ",
    "line": " ",
    "tab": " ",
    "cell": " ",
    "row": " ",
    "sect": " ",
    "page": " ",
    "lquote": "'",
    "rquote": "'",
    "ldblquote": '"',
    "rdblquote": '"',
    "bullet": "•",
    "endash": "–",
    "emdash": "—",
    "emspace": " ",
    "enspace": " ",
}


class _Group:
    __slots__ = ("skip", "is_field", "fresh", "ignorable")

    def __init__(self, skip: bool):
        self.skip = skip
        self.is_field = False
        # True until the first token of the group has been seen
        self.fresh = True
        self.ignorable = False


class _RtfFlattener:
    """Single pass over the token stream with a stack of group states."""

    def __init__(self, source: str):
        self.source = source
        self.out: list[str] = []
        self.stack: list[_Group] = [_Group(skip=False)]
        self._pending_skip_chars = 0

    @property
    def current(self) -> _Group:
        return self.stack[-1]

    def run(self) -> str:
        for match in _RE_TOKEN.finditer(self.source):
            word, param, hex_byte, symbol, brace, text = match.groups()
            if brace == "{":
                self.stack.append(_Group(skip=self.current.skip))
            elif brace == "}":
                self._close_group()
            elif word is not None:
                self._control_word(word, param)
            elif hex_byte is not None:
                self._hex(hex_byte)
            elif symbol is not None:
                self._control_symbol(symbol)
            elif text is not None:
                self._text(text)
        return self._normalized()

    def _close_group(self) -> None:
        if len(self.stack) == 1:
            return  # unbalanced closing brace
        group = self.stack.pop()
        if group.is_field and not self.current.skip:
            self.out.append("}")

    def _control_word(self, word: str, param: str | None) -> None:
        group = self.current
        fresh = group.fresh
        group.fresh = False

        if word == "field":
            if not group.skip:
                group.is_field = True
                self.out.append("{")
            return
        if word == "fldinst":
            return
        if word == "fldrslt":
            group.skip = True
            return
        if group.ignorable or (fresh and word in SKIP_DESTINATIONS):
            group.skip = True
            group.ignorable = False
            return
        if word == "u" and param is not None:
            code = int(param)
            if code < 0:
                code += 65536
            self._emit(chr(code))
            # \ucN fallback characters follow; the common case is one
            self._pending_skip_chars = 1
            return
        if word in SPECIAL_CHARS:
            self._emit(SPECIAL_CHARS[word])

    def _control_symbol(self, symbol: str) -> None:
        group = self.current
        if symbol == "*":
            if group.fresh:
                group.ignorable = True
            return
        group.fresh = False
        if symbol in "{}\\":
            self._emit(symbol)
        elif symbol == "~":
            self._emit(" ")
        elif symbol in "\r\n":
            self._emit(" ")

    def _text(self, text: str) -> None:
        group = self.current
        group.fresh = False
        if self._pending_skip_chars:
            text = text[self._pending_skip_chars :]
            self._pending_skip_chars = 0
        self._emit(text)

    def _hex(self, hex_byte: str) -> None:
        self.current.fresh = False
        if self._pending_skip_chars:
            self._pending_skip_chars -= 1
            return
        self._emit(bytes([int(hex_byte, 16)]).decode("cp1252", errors="replace"))

    def _emit(self, text: str) -> None:
        if not self.current.skip and text:
            self.out.append(text)

    def _normalized(self) -> str:
        return _RE_WHITESPACE.sub(" ", "".join(self.out)).strip()


def _fix_ignorable_field_instruction(source: str) -> str:
    # {\*\fldinst ...} is an ignorable destination that must not be skipped
    return source.replace("\\*\\fldinst", "\\fldinst")


def flatten_rtf(source: str) -> str:
    """Text and brace-wrapped field instructions of an RTF document."""
    return _RtfFlattener(_fix_ignorable_field_instruction(source)).run()


def _read_info(source: str) -> dict[str, str]:
    metadata: dict[str, str] = {}
    for key, value in _RE_INFO_FIELD.findall(source):
        value = _RE_WHITESPACE.sub(" ", value).strip()
        if value:
            metadata.setdefault(_INFO_KEYS[key.lower()], value)
    return metadata


def read_rtf_template(data: bytes) -> ExtractedDocument:
    """
    Extract text and fields from an RTF buffer.

    RTF is 7-bit by definition; stray 8-bit bytes are read as CP1252.
    """
    source = data.decode("cp1252", errors="replace")
    text = flatten_rtf(source)

    metadata = _read_info(source)
    metadata["format"] = DocumentFormat.RTF.display_name

    field_codes = tuple(_top_level_fields(text))
    logger.info(
        "Extracted RTF template: %d characters, %d fields",
        len(text),
        len(field_codes),
    )
    return ExtractedDocument(
        format=DocumentFormat.RTF,
        text=text,
        field_codes=field_codes,
        has_macros=contains_macro_indicators(source),
        metadata=metadata,
    )


def _top_level_fields(text: str) -> list[str]:
    fields = []
    depth = 0
    start = 0
    for index, ch in enumerate(text):
        if ch == "{":
            if depth == 0:
                start = index
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                fields.append(text[start : index + 1])
    return fields
