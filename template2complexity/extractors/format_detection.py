import logging

from template2complexity.extractors.data_types import DocumentFormat

logger = logging.getLogger(__name__)

ZIP_SIGNATURE = b"PK\x03\x04"
OLE_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"
RTF_SIGNATURE = b"{\\rtf"

# Number of leading bytes inspected by the plain-text heuristic
TEXT_SAMPLE_SIZE = 1000
# Shorter buffers cannot be a container, whatever their prefix
MIN_CONTAINER_LENGTH = len(OLE_SIGNATURE)
PLAIN_TEXT_MIN_RATIO = 0.9


def is_printable_byte(value: int) -> bool:
    return 32 <= value <= 126 or value in (0x09, 0x0A, 0x0D)


def is_probably_text(sample: bytes) -> bool:
    if not sample:
        return False
    printable = sum(1 for b in sample if is_printable_byte(b))
    return printable / len(sample) > PLAIN_TEXT_MIN_RATIO


def detect_format(data: bytes) -> DocumentFormat:
    """
    Classify a buffer by its magic number.

    The checks run from the most specific signature to the weakest heuristic.
    Buffers shorter than the OLE signature only get the text heuristic,
    so the function is total: it never raises and always returns a DocumentFormat.
    """
    if data is None:
        return DocumentFormat.UNKNOWN
    data = bytes(data)

    if len(data) < MIN_CONTAINER_LENGTH:
        fmt = (
            DocumentFormat.PLAIN_TEXT
            if is_probably_text(data)
            else DocumentFormat.UNKNOWN
        )
    elif data.startswith(ZIP_SIGNATURE):
        fmt = DocumentFormat.ZIP_CONTAINER
    elif data.startswith(OLE_SIGNATURE):
        fmt = DocumentFormat.OLE_CONTAINER
    elif data.startswith(RTF_SIGNATURE):
        fmt = DocumentFormat.RTF
    elif is_probably_text(data[:TEXT_SAMPLE_SIZE]):
        fmt = DocumentFormat.PLAIN_TEXT
    else:
        fmt = DocumentFormat.UNKNOWN

    logger.debug("Detected format %s for %d bytes", fmt.name, len(data))
    return fmt
