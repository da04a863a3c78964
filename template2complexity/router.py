import logging
from typing import Callable

from template2complexity.extractors.data_types import (
    DocumentFormat,
    ExtractedDocument,
)
from template2complexity.extractors.format_detection import detect_format
from template2complexity.extractors.readable_text import extract_readable_text
from template2complexity.extractors.util.zip_bomb import (
    DEFAULT_ZIP_BOMB_LIMITS,
    ZipBombLimits,
)

logger = logging.getLogger(__name__)


def get_extractor(fmt: DocumentFormat) -> Callable[..., ExtractedDocument]:
    """Return the extractor function for a detected format (lazy import)."""
    if fmt == DocumentFormat.ZIP_CONTAINER:
        from template2complexity.extractors.ms_modern.docx_extractor import (
            read_docx_template,
        )

        return read_docx_template
    elif fmt == DocumentFormat.OLE_CONTAINER:
        from template2complexity.extractors.ms_legacy.doc_extractor import (
            read_doc_template,
        )

        return read_doc_template
    elif fmt == DocumentFormat.RTF:
        from template2complexity.extractors.ms_legacy.rtf_extractor import (
            read_rtf_template,
        )

        return read_rtf_template
    elif fmt == DocumentFormat.PLAIN_TEXT:
        from template2complexity.extractors.plain_extractor import read_plain_text

        return read_plain_text
    elif fmt == DocumentFormat.UNKNOWN:
        from template2complexity.extractors.plain_extractor import read_unknown

        return read_unknown
    else:
        raise RuntimeError(f"No extractor for document format: {fmt}")


def extract_document(
    data: bytes, zip_limits: ZipBombLimits = DEFAULT_ZIP_BOMB_LIMITS
) -> ExtractedDocument:
    """
    Detect the format of ``data`` and extract its analysable text.

    Never raises for bad input. A failing format branch is logged, the
    printable-run scanner takes over, and the failure is carried in
    ``ExtractedDocument.warnings``.
    """
    fmt = detect_format(data)

    try:
        if fmt == DocumentFormat.ZIP_CONTAINER:
            return get_extractor(fmt)(data, zip_limits=zip_limits)
        return get_extractor(fmt)(data)
    except Exception as e:
        logger.warning(
            "Extraction from %s format failed, using printable-run fallback: %s",
            fmt.display_name,
            e,
        )
        return ExtractedDocument(
            format=fmt,
            text=extract_readable_text(data),
            metadata={"format": fmt.display_name},
            warnings=(f"{fmt.display_name} extraction failed: {e}",),
        )
