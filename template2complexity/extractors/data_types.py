import enum
import types
from dataclasses import dataclass, field
from typing import Mapping


class DocumentFormat(enum.Enum):
    """Container formats the extractors can tell apart from the first bytes."""

    UNKNOWN = "unknown"
    PLAIN_TEXT = "plain_text"
    ZIP_CONTAINER = "zip_container"
    OLE_CONTAINER = "ole_container"
    RTF = "rtf"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    DocumentFormat.UNKNOWN: "Unknown",
    DocumentFormat.PLAIN_TEXT: "Plain Text",
    DocumentFormat.ZIP_CONTAINER: "Modern Word (ZIP-based)",
    DocumentFormat.OLE_CONTAINER: "Legacy Word (OLE-based)",
    DocumentFormat.RTF: "Rich Text Format",
}


def _freeze_metadata(metadata: Mapping[str, str] | None) -> Mapping[str, str]:
    return types.MappingProxyType(dict(metadata or {}))


@dataclass(frozen=True)
class ExtractedDocument:
    """
    Best-effort text representation of a template.

    ``text`` is what the pattern analysis runs over. Field instructions
    recovered from the container structure are embedded in ``text`` wrapped
    in braces, so native ``{MERGEFIELD x}`` syntax and extracted fields look
    the same downstream. ``field_codes`` holds field instructions and
    keyword context windows recovered by the extractor, and ``warnings``
    holds non-fatal extraction problems.
    """

    format: DocumentFormat = DocumentFormat.UNKNOWN
    text: str = ""
    field_codes: tuple[str, ...] = ()
    has_macros: bool = False
    metadata: Mapping[str, str] = field(default_factory=dict)
    table_count: int = 0
    nested_table_count: int = 0
    warnings: tuple[str, ...] = ()

    def __post_init__(self):
        # frozen: assign through object.__setattr__
        object.__setattr__(self, "field_codes", tuple(self.field_codes))
        object.__setattr__(self, "warnings", tuple(self.warnings))
        object.__setattr__(self, "metadata", _freeze_metadata(self.metadata))
