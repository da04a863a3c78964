import io
import logging
import unittest
import zipfile

import pytest

from template2complexity.exceptions import ExtractionFailedError
from template2complexity.extractors.content_validator import ContentValidator
from template2complexity.extractors.data_types import (
    DocumentFormat,
    ExtractedDocument,
)
from template2complexity.extractors.format_detection import (
    OLE_SIGNATURE,
    RTF_SIGNATURE,
    ZIP_SIGNATURE,
    detect_format,
)
from template2complexity.extractors.ms_legacy.doc_extractor import (
    _inspect_container,
    read_doc_template,
    render_field_markers,
)
from template2complexity.extractors.ms_legacy.rtf_extractor import (
    flatten_rtf,
    read_rtf_template,
)
from template2complexity.extractors.ms_modern.docx_extractor import (
    read_docx_template,
)
from template2complexity.extractors.plain_extractor import (
    read_plain_text,
    read_unknown,
)
from template2complexity.extractors.readable_text import (
    extract_readable_text,
    is_binary_pattern,
)

logger = logging.getLogger(__name__)

tc = unittest.TestCase()

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"


def _zip(files: dict[str, str | bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_STORED) as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buffer.getvalue()


def _docx(body: str, extra_parts: dict[str, str | bytes] | None = None) -> bytes:
    document = (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        f'<w:document xmlns:w="{W_NS}"><w:body>{body}</w:body></w:document>'
    )
    files = {"[Content_Types].xml": "<Types/>", "word/document.xml": document}
    files.update(extra_parts or {})
    return _zip(files)


def _para(text: str) -> str:
    return f"<w:p><w:r><w:t>{text}</w:t></w:r></w:p>"


def _ole(body: bytes) -> bytes:
    return OLE_SIGNATURE + b"\x00" * (512 - len(OLE_SIGNATURE)) + body


####################
# Format detection #
####################


def test_detect_format_signatures() -> None:
    tc.assertEqual(
        DocumentFormat.ZIP_CONTAINER, detect_format(ZIP_SIGNATURE + b"\x00" * 20)
    )
    tc.assertEqual(
        DocumentFormat.OLE_CONTAINER, detect_format(OLE_SIGNATURE + b"\x00" * 504)
    )
    tc.assertEqual(DocumentFormat.RTF, detect_format(b"{\\rtf1\\ansi hello}"))
    tc.assertEqual(
        DocumentFormat.PLAIN_TEXT, detect_format(b"Dear customer, thank you.")
    )
    tc.assertEqual(DocumentFormat.UNKNOWN, detect_format(bytes(range(256))))


def test_detect_format_empty_and_short_buffers() -> None:
    tc.assertEqual(DocumentFormat.UNKNOWN, detect_format(b""))

    candidates = [b"\x00", b"\xff\xfe", b"abc", b"hello!!"]
    for signature in (ZIP_SIGNATURE, OLE_SIGNATURE, RTF_SIGNATURE):
        candidates.extend(signature[:n] for n in range(1, min(len(signature), 7) + 1))

    for data in candidates:
        tc.assertLess(len(data), 8)
        tc.assertIn(
            detect_format(data),
            (DocumentFormat.UNKNOWN, DocumentFormat.PLAIN_TEXT),
            msg=repr(data),
        )


def test_detect_format_text_heuristic_samples_first_1000_bytes() -> None:
    tc.assertEqual(
        DocumentFormat.PLAIN_TEXT, detect_format(b"a" * 1000 + b"\x00" * 5000)
    )
    tc.assertEqual(
        DocumentFormat.UNKNOWN, detect_format(b"a" * 850 + b"\x00" * 150)
    )


#####################
# Content validator #
#####################


def test_content_validator_length_and_ratios() -> None:
    validator = ContentValidator()

    tc.assertTrue(validator.is_valid("{MERGEFIELD Name}"))
    # 9 characters
    tc.assertFalse(validator.is_valid("{= 2 + 2}"))
    tc.assertFalse(validator.is_valid(""))

    tc.assertFalse(validator.is_valid("abcdefghij" + "�" * 3))
    tc.assertTrue(validator.is_valid("abcdefghijkl" + "�" * 2))

    tc.assertFalse(validator.is_valid("abcdefg\x01\x02\x03\x04"))
    tc.assertTrue(validator.is_valid("abcdefghij\x01\x02"))
    tc.assertTrue(validator.is_valid("tab\tand\nnewline"))


def test_content_validator_clean_keeps_order() -> None:
    validator = ContentValidator()
    tc.assertEqual("abc\td", validator.clean("ab\x00c\td\x07"))
    tc.assertEqual("Grüße «Name»", validator.clean("Grüße\x01 «Name»"))


def test_content_validator_custom_minimum() -> None:
    tc.assertTrue(ContentValidator(min_length=4).is_valid("CLSID:"))
    tc.assertFalse(ContentValidator().is_valid("CLSID:"))


##################
# Readable runs  #
##################


def test_is_binary_pattern() -> None:
    tc.assertTrue(is_binary_pattern("DEADBEEF01"))
    tc.assertFalse(is_binary_pattern("DEADBEEF"))
    tc.assertTrue(is_binary_pattern("0x1234"))
    tc.assertTrue(is_binary_pattern("1234;"))
    tc.assertFalse(is_binary_pattern("a1b2c3"))
    tc.assertFalse(is_binary_pattern("Hello world"))


def test_extract_readable_text_drops_short_and_binary_runs() -> None:
    data = b"\x00\x01Hello\x00ab\x00World text\xff0x00FF\x00DEADBEEF99\x00"
    tc.assertEqual("Hello World text", extract_readable_text(data))
    tc.assertEqual("", extract_readable_text(b""))


########
# DOCX #
########


def test_docx_complex_field_instruction_is_wrapped_and_result_skipped() -> None:
    body = (
        "<w:p><w:r><w:t>Dear</w:t></w:r>"
        '<w:r><w:fldChar w:fldCharType="begin"/></w:r>'
        '<w:r><w:instrText xml:space="preserve"> MERGEFIELD FirstName \\* MERGEFORMAT </w:instrText></w:r>'
        '<w:r><w:fldChar w:fldCharType="separate"/></w:r>'
        "<w:r><w:t>«FirstName»</w:t></w:r>"
        '<w:r><w:fldChar w:fldCharType="end"/></w:r></w:p>'
    )
    doc = read_docx_template(_docx(body))

    tc.assertEqual(DocumentFormat.ZIP_CONTAINER, doc.format)
    tc.assertEqual(
        ("{MERGEFIELD FirstName \\* MERGEFORMAT}",), doc.field_codes
    )
    tc.assertEqual("Dear {MERGEFIELD FirstName \\* MERGEFORMAT}", doc.text)
    tc.assertNotIn("«FirstName»", doc.text)
    tc.assertFalse(doc.has_macros)
    tc.assertEqual("Modern Word (ZIP-based)", doc.metadata["format"])


def test_docx_nested_fields_stay_nested() -> None:
    body = (
        "<w:p>"
        '<w:r><w:fldChar w:fldCharType="begin"/></w:r>'
        "<w:r><w:instrText>IF </w:instrText></w:r>"
        '<w:r><w:fldChar w:fldCharType="begin"/></w:r>'
        "<w:r><w:instrText>MERGEFIELD Gender</w:instrText></w:r>"
        '<w:r><w:fldChar w:fldCharType="separate"/></w:r>'
        "<w:r><w:t>M</w:t></w:r>"
        '<w:r><w:fldChar w:fldCharType="end"/></w:r>'
        '<w:r><w:instrText> = "M" "Sir" "Madam"</w:instrText></w:r>'
        '<w:r><w:fldChar w:fldCharType="separate"/></w:r>'
        "<w:r><w:t>Sir</w:t></w:r>"
        '<w:r><w:fldChar w:fldCharType="end"/></w:r>'
        "</w:p>"
    )
    doc = read_docx_template(_docx(body))

    tc.assertEqual(('{IF {MERGEFIELD Gender} = "M" "Sir" "Madam"}',), doc.field_codes)
    tc.assertNotIn("Sir Sir", doc.text)


def test_docx_simple_field_and_literal_mergefield_marker() -> None:
    body = (
        '<w:p><w:fldSimple w:instr=" DOCVARIABLE Client "><w:r><w:t>Acme</w:t></w:r>'
        "</w:fldSimple></w:p>" + _para("MERGEFIELD Amount")
    )
    doc = read_docx_template(_docx(body))

    tc.assertIn("{DOCVARIABLE Client}", doc.field_codes)
    tc.assertIn("{MERGEFIELD Amount}", doc.field_codes)
    tc.assertNotIn("Acme", doc.text)


def test_docx_tables_parts_and_metadata() -> None:
    nested_table = (
        "<w:tbl><w:tr><w:tc><w:tbl><w:tr><w:tc>"
        + _para("inner cell")
        + "</w:tc></w:tr></w:tbl></w:tc></w:tr></w:tbl>"
    )
    core = (
        '<cp:coreProperties xmlns:cp="http://schemas.openxmlformats.org/package/2006/metadata/core-properties" '
        'xmlns:dc="http://purl.org/dc/elements/1.1/">'
        "<dc:title>Invoice</dc:title><dc:creator>Jane</dc:creator>"
        "</cp:coreProperties>"
    )
    header = f'<w:hdr xmlns:w="{W_NS}">{_para("Header text")}</w:hdr>'
    doc = read_docx_template(
        _docx(
            _para("Body text") + nested_table,
            {"word/header1.xml": header, "docProps/core.xml": core},
        )
    )

    tc.assertEqual(2, doc.table_count)
    tc.assertEqual(1, doc.nested_table_count)
    tc.assertLess(doc.text.index("Body text"), doc.text.index("Header text"))
    tc.assertEqual("Invoice", doc.metadata["title"])
    tc.assertEqual("Jane", doc.metadata["creator"])
    tc.assertEqual("2", doc.metadata["parts"])


def test_docx_vba_project_part_flags_macros() -> None:
    doc = read_docx_template(
        _docx(_para("Macro enabled"), {"word/vbaProject.bin": b"\x00\x01\x02"})
    )
    tc.assertTrue(doc.has_macros)


def test_docx_falls_back_to_other_word_parts() -> None:
    data = _zip(
        {
            "word/custom.xml": (
                f'<w:document xmlns:w="{W_NS}"><w:body>'
                f'{_para("Fallback text")}</w:body></w:document>'
            )
        }
    )
    doc = read_docx_template(data)
    tc.assertEqual("Fallback text", doc.text)


def test_docx_without_text_raises() -> None:
    with pytest.raises(ExtractionFailedError):
        read_docx_template(_docx("<w:p/>"))


def test_docx_unreadable_archive_raises_with_cause() -> None:
    with pytest.raises(ExtractionFailedError) as excinfo:
        read_docx_template(b"PK\x03\x04 not really an archive")
    tc.assertIsInstance(excinfo.value.__cause__, zipfile.BadZipFile)


def test_docx_malformed_part_is_a_warning() -> None:
    doc = read_docx_template(
        _docx(_para("Body text"), {"word/header1.xml": "<w:hdr broken"})
    )
    tc.assertEqual("Body text", doc.text)
    tc.assertEqual(1, len(doc.warnings))
    tc.assertIn("word/header1.xml", doc.warnings[0])


#######
# OLE #
#######


def test_render_field_markers() -> None:
    run = '\x13 IF \x13 MERGEFIELD x \x14val\x15 = 1 "a" "b" \x14cached\x15 tail'
    tc.assertEqual('{ IF { MERGEFIELD x } = 1 "a" "b" } tail', render_field_markers(run))
    # unterminated field stays open
    tc.assertEqual("{ REF name", render_field_markers("\x13 REF name"))


def test_doc_utf16_text_and_keyword_windows() -> None:
    utf16 = "Dear \x13 MERGEFIELD Name \x14«Name»\x15 friend".encode("utf-16-le")
    data = _ole(b"\x00\x00Hello template text!\x00\x00" + utf16 + b"\x00\x00")

    doc = read_doc_template(data)

    tc.assertEqual(DocumentFormat.OLE_CONTAINER, doc.format)
    tc.assertIn("Hello template text!", doc.text)
    tc.assertIn("Dear { MERGEFIELD Name } friend", doc.text)
    tc.assertNotIn("«Name»", doc.text)
    tc.assertTrue(any("MERGEFIELD Name" in code for code in doc.field_codes))
    tc.assertFalse(doc.has_macros)
    tc.assertEqual("Legacy Word (OLE-based)", doc.metadata["format"])


def test_doc_macro_indicators_in_raw_buffer() -> None:
    data = _ole(b"\x00Attribute VB_Name\x00Sub AutoOpen()\x00End Sub\x00")
    doc = read_doc_template(data)
    tc.assertTrue(doc.has_macros)
    tc.assertIn("Sub AutoOpen()", doc.text)


def test_doc_signature_only_yields_empty_text() -> None:
    doc = read_doc_template(OLE_SIGNATURE)
    tc.assertEqual("", doc.text)
    tc.assertEqual((), doc.field_codes)


def test_doc_container_inspection_tolerates_garbage() -> None:
    metadata, has_vba = _inspect_container(_ole(b"\xff" * 2048))
    tc.assertEqual({}, metadata)
    tc.assertFalse(has_vba)


#######
# RTF #
#######


def test_rtf_fields_metadata_and_destinations() -> None:
    source = (
        r"{\rtf1\ansi{\fonttbl{\f0 Arial;}}{\info{\title Letter}{\author Jane}}"
        r"\pard Dear {\field{\*\fldinst MERGEFIELD Name}{\fldrslt Name}}\par "
        r"Total: {\field{\*\fldinst = 2 + 3}{\fldrslt 5}}\par}"
    )
    doc = read_rtf_template(source.encode("ascii"))

    tc.assertEqual(DocumentFormat.RTF, doc.format)
    tc.assertEqual("Dear {MERGEFIELD Name} Total: {= 2 + 3}", doc.text)
    tc.assertEqual(("{MERGEFIELD Name}", "{= 2 + 3}"), doc.field_codes)
    tc.assertEqual("Letter", doc.metadata["title"])
    tc.assertEqual("Jane", doc.metadata["author"])
    tc.assertNotIn("Arial", doc.text)


def test_rtf_nested_fields() -> None:
    source = (
        r"{\rtf1 {\field{\*\fldinst IF {\field{\*\fldinst MERGEFIELD Gender}"
        r'{\fldrslt M}} = "M" "Sir" "Madam"}{\fldrslt Sir}}}'
    )
    tc.assertEqual(
        '{IF {MERGEFIELD Gender} = "M" "Sir" "Madam"}', flatten_rtf(source)
    )


def test_rtf_escapes() -> None:
    tc.assertEqual("Cafés", flatten_rtf(r"{\rtf1 Caf\u233?s}"))
    tc.assertEqual("naïve", flatten_rtf(r"{\rtf1 na\'efve}"))
    tc.assertEqual("a { b } c", flatten_rtf(r"{\rtf1 a \{ b \} c}"))
    tc.assertEqual("one two", flatten_rtf(r"{\rtf1 one\par two}"))


#########
# Plain #
#########


def test_plain_text_keeps_replacement_characters() -> None:
    doc = read_plain_text(b"Hello \xff world")
    tc.assertEqual(DocumentFormat.PLAIN_TEXT, doc.format)
    tc.assertEqual("Hello � world", doc.text)


def test_unknown_uses_utf8_or_printable_runs() -> None:
    text = "Привет мир, шаблон письма"
    tc.assertEqual(text, read_unknown(text.encode("utf-8")).text)

    doc = read_unknown(b"\xff\xfe\x00Readable words here\x00\x01")
    tc.assertEqual(DocumentFormat.UNKNOWN, doc.format)
    tc.assertEqual("Readable words here", doc.text)


def test_extracted_document_is_read_only() -> None:
    doc = ExtractedDocument(text="x", metadata={"a": "b"}, field_codes=["c"])
    tc.assertEqual(("c",), doc.field_codes)
    tc.assertEqual("x", doc.text)
    with pytest.raises(TypeError):
        doc.metadata["a"] = "z"
