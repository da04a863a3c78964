"""
DOCX/DOTX Template Extractor
============================

Extracts analysable text from Office Open XML word-processing packages
(Word 2007 and later, including macro-enabled ``.docm``/``.dotm``).

The package is a ZIP archive of XML parts. Only the parts that carry
visible template content are read:

    word/document.xml: Main document body
    word/headerN.xml, word/footerN.xml: Headers and footers
    word/footnotes.xml, word/endnotes.xml: Notes
    word/comments.xml: Comments
    docProps/core.xml, docProps/app.xml: Metadata

Field Handling
--------------
Word stores a field as a run sequence::

    <w:fldChar w:fldCharType="begin"/>
    <w:instrText> MERGEFIELD Name \\* MERGEFORMAT </w:instrText>
    <w:fldChar w:fldCharType="separate"/>
    <w:t>«Name»</w:t>                       (cached result)
    <w:fldChar w:fldCharType="end"/>

or as ``<w:fldSimple w:instr="...">``. The extractor re-wraps every field
instruction in braces (``{ MERGEFIELD Name \\* MERGEFORMAT }``), keeps nested
fields nested, and skips cached results, so the pattern analysis sees the
same syntax it sees in plain-text templates. An IF field's branch text is
part of its instruction and is kept.

Known Limitations
-----------------
- Text runs are joined with single spaces, so words split across runs
  come out split
- Text boxes inside drawings are read like any other run
- Tracked deletions are ignored
"""

import logging
import re
import zipfile
from xml.etree import ElementTree as ET

from template2complexity.exceptions import ExtractionFailedError
from template2complexity.extractors.data_types import (
    DocumentFormat,
    ExtractedDocument,
)
from template2complexity.extractors.util.vba import (
    contains_macro_indicators,
    is_vba_part,
)
from template2complexity.extractors.util.zip_bomb import (
    DEFAULT_ZIP_BOMB_LIMITS,
    ZipBombLimits,
)
from template2complexity.extractors.util.zip_context import ZipContext

logger = logging.getLogger(__name__)

# XML namespaces used in OOXML packages
W_NS = "{http://schemas.openxmlformats.org/wordprocessingml/2006/main}"
MC_NS = "{http://schemas.openxmlformats.org/markup-compatibility/2006}"
CP_NS = "{http://schemas.openxmlformats.org/package/2006/metadata/core-properties}"
DC_NS = "{http://purl.org/dc/elements/1.1/}"
EP_NS = "{http://schemas.openxmlformats.org/officeDocument/2006/extended-properties}"

_T = f"{W_NS}t"
_INSTR_TEXT = f"{W_NS}instrText"
_FLD_CHAR = f"{W_NS}fldChar"
_FLD_CHAR_TYPE = f"{W_NS}fldCharType"
_FLD_SIMPLE = f"{W_NS}fldSimple"
_INSTR = f"{W_NS}instr"
_TBL = f"{W_NS}tbl"
_MC_FALLBACK = f"{MC_NS}Fallback"

# Allow-listed content parts, in the order they are read
_CONTENT_PARTS = (
    re.compile(r"word/document\.xml"),
    re.compile(r"word/header\d*\.xml"),
    re.compile(r"word/footer\d*\.xml"),
    re.compile(r"word/footnotes\.xml"),
    re.compile(r"word/endnotes\.xml"),
    re.compile(r"word/comments\.xml"),
)

_CORE_PROPERTIES = {
    "title": f"{DC_NS}title",
    "creator": f"{DC_NS}creator",
    "description": f"{DC_NS}description",
    "subject": f"{DC_NS}subject",
    "keywords": f"{CP_NS}keywords",
    "lastModifiedBy": f"{CP_NS}lastModifiedBy",
    "revision": f"{CP_NS}revision",
}
_APP_PROPERTIES = {
    "application": f"{EP_NS}Application",
    "appVersion": f"{EP_NS}AppVersion",
}

# MERGEFIELD typed as literal text rather than inserted as a field
_RE_TEXT_MERGEFIELD = re.compile(r"(?<![{\w])MERGEFIELD\s+[^\s{}]+")


def read_docx_template(
    data: bytes, zip_limits: ZipBombLimits = DEFAULT_ZIP_BOMB_LIMITS
) -> ExtractedDocument:
    """
    Extract text, field codes, table counts and metadata from an OOXML package.

    Args:
        data: Complete package bytes.
        zip_limits: ZIP-bomb limits checked before anything is decompressed.

    Returns:
        ExtractedDocument with format ZIP_CONTAINER.

    Raises:
        ExtractionZipBombError: The archive directory breaks a limit.
        ExtractionFailedError: The buffer is not a readable archive, or no
            allow-listed or fallback part produced text.
    """
    try:
        ctx = ZipContext(data, limits=zip_limits)
    except zipfile.BadZipFile as exc:
        raise ExtractionFailedError(
            "Failed to open ZIP-based document", cause=exc
        ) from exc

    with ctx:
        names = ctx.namelist
        content_parts = _select_content_parts(names)
        warnings: list[str] = []

        walkers = _walk_parts(ctx, content_parts, warnings)
        if not any(w.has_text for w in walkers):
            fallback_parts = [
                name
                for name in names
                if name.startswith("word/")
                and name.endswith(".xml")
                and name not in content_parts
            ]
            logger.debug(
                "No text in standard parts, scanning %d fallback parts",
                len(fallback_parts),
            )
            walkers.extend(_walk_parts(ctx, fallback_parts, warnings))

        text = "\n".join(w.text for w in walkers if w.has_text)
        if not text:
            raise ExtractionFailedError(
                "No text content found in ZIP-based document"
            )

        field_codes = [code for w in walkers for code in w.field_codes]
        metadata = _read_metadata(ctx)
        metadata["format"] = DocumentFormat.ZIP_CONTAINER.display_name
        metadata["parts"] = str(sum(1 for w in walkers if w.has_text))

        has_macros = any(is_vba_part(name) for name in names)
        has_macros = has_macros or contains_macro_indicators(text)

    logger.info(
        "Extracted OOXML template: %d characters, %d field codes",
        len(text),
        len(field_codes),
    )
    return ExtractedDocument(
        format=DocumentFormat.ZIP_CONTAINER,
        text=text,
        field_codes=tuple(field_codes),
        has_macros=has_macros,
        metadata=metadata,
        table_count=sum(w.table_count for w in walkers),
        nested_table_count=sum(w.nested_table_count for w in walkers),
        warnings=tuple(warnings),
    )


def _select_content_parts(names: list[str]) -> list[str]:
    selected = []
    for pattern in _CONTENT_PARTS:
        selected.extend(_natural_order([n for n in names if pattern.fullmatch(n)]))
    return selected


def _natural_order(names: list[str]) -> list[str]:
    # header2.xml before header10.xml
    def key(name: str):
        digits = re.findall(r"\d+", name)
        return (int(digits[-1]) if digits else 0, name)

    return sorted(names, key=key)


def _walk_parts(
    ctx: ZipContext, parts: list[str], warnings: list[str]
) -> list["_PartWalker"]:
    walkers = []
    for part in parts:
        try:
            root = ctx.read_xml_root(part)
        except ET.ParseError as exc:
            logger.warning("Skipping malformed XML part %s: %s", part, exc)
            warnings.append(f"Malformed XML in {part}: {exc}")
            continue
        walker = _PartWalker(part)
        walker.walk(root)
        logger.debug(
            "Part %s: %d characters, %d fields",
            part,
            len(walker.text),
            len(walker.field_codes),
        )
        walkers.append(walker)
    return walkers


def _read_metadata(ctx: ZipContext) -> dict[str, str]:
    metadata: dict[str, str] = {}
    for part, properties in (
        ("docProps/core.xml", _CORE_PROPERTIES),
        ("docProps/app.xml", _APP_PROPERTIES),
    ):
        if not ctx.exists(part):
            continue
        try:
            root = ctx.read_xml_root(part)
        except ET.ParseError as exc:
            logger.debug(f"Metadata part {part} unreadable: [{exc}]")
            continue
        for key, tag in properties.items():
            elem = root.find(tag)
            if elem is not None and elem.text and elem.text.strip():
                metadata[key] = elem.text.strip()
    return metadata


class _FieldFrame:
    __slots__ = ("parts", "in_result")

    def __init__(self):
        self.parts: list[str] = []
        self.in_result = False


class _PartWalker:
    """Walks one XML part in document order, collecting text and fields."""

    def __init__(self, name: str):
        self.name = name
        self.chunks: list[str] = []
        self.run_texts: list[str] = []
        self.field_codes: list[str] = []
        self.table_count = 0
        self.nested_table_count = 0
        self._fields: list[_FieldFrame] = []
        self._table_depth = 0

    @property
    def text(self) -> str:
        return " ".join(self.chunks)

    @property
    def has_text(self) -> bool:
        return bool(self.chunks)

    def walk(self, root: ET.Element) -> None:
        self._visit(root)
        # Fields still open at the end of the part are closed implicitly
        while self._fields:
            self._close_field()
        for marker in _RE_TEXT_MERGEFIELD.findall(" ".join(self.run_texts)):
            self._add_top_level_field("{" + marker + "}")

    def _visit(self, elem: ET.Element) -> None:
        tag = elem.tag
        if tag == _MC_FALLBACK:
            return
        if tag == _FLD_SIMPLE:
            instr = (elem.get(_INSTR) or "").strip()
            if instr:
                self._add_field("{" + instr + "}")
            return
        if tag == _FLD_CHAR:
            self._on_fld_char(elem.get(_FLD_CHAR_TYPE) or "")
        elif tag == _INSTR_TEXT:
            if self._fields and not self._fields[-1].in_result:
                self._fields[-1].parts.append(elem.text or "")
        elif tag == _T:
            if not self._fields:
                text = (elem.text or "").strip()
                if text:
                    self.chunks.append(text)
                    self.run_texts.append(text)
        elif tag == _TBL:
            self.table_count += 1
            if self._table_depth > 0:
                self.nested_table_count += 1
            self._table_depth += 1
            for child in elem:
                self._visit(child)
            self._table_depth -= 1
            return

        for child in elem:
            self._visit(child)

    def _on_fld_char(self, char_type: str) -> None:
        if char_type == "begin":
            self._fields.append(_FieldFrame())
        elif char_type == "separate":
            if self._fields:
                self._fields[-1].in_result = True
        elif char_type == "end":
            if self._fields:
                self._close_field()

    def _close_field(self) -> None:
        frame = self._fields.pop()
        instruction = " ".join("".join(frame.parts).split())
        if instruction:
            self._add_field("{" + instruction + "}")

    def _add_field(self, code: str) -> None:
        if self._fields:
            parent = self._fields[-1]
            # nested fields inside a cached result are part of the result
            if not parent.in_result:
                parent.parts.append(code)
            return
        self._add_top_level_field(code)

    def _add_top_level_field(self, code: str) -> None:
        self.chunks.append(code)
        self.field_codes.append(code)
