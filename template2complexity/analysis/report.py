import enum
import json
import types
from dataclasses import dataclass, field
from typing import Mapping

from template2complexity.extractors.data_types import DocumentFormat


class Severity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ComplexityLevel(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class ComplexityIssue:
    """One detected complexity concern."""

    type: str
    description: str
    severity: Severity
    location: str = ""


@dataclass(frozen=True)
class ComplexityReport:
    """
    Result of one analysis.

    Every collection is a tuple and the instance is frozen, so a report can
    be handed to other threads or cached as is. ``document_format`` and
    ``metadata`` describe the input and are not part of the JSON form.
    """

    score: int = 0
    level: ComplexityLevel = ComplexityLevel.LOW
    needs_review: bool = False
    nested_if_depth: int = 0
    total_if_statements: int = 0
    total_merge_fields: int = 0
    complex_merge_fields: tuple[str, ...] = ()
    macros: tuple[str, ...] = ()
    formulas: tuple[str, ...] = ()
    issues: tuple[ComplexityIssue, ...] = ()
    recommendations: tuple[str, ...] = ()
    parse_errors: tuple[str, ...] = ()
    field_codes: tuple[str, ...] = ()
    valid_formulas: int = 0
    invalid_formulas: int = 0
    document_format: DocumentFormat = DocumentFormat.UNKNOWN
    metadata: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        for name in (
            "complex_merge_fields",
            "macros",
            "formulas",
            "issues",
            "recommendations",
            "parse_errors",
            "field_codes",
        ):
            object.__setattr__(self, name, tuple(getattr(self, name)))
        object.__setattr__(self, "level", ComplexityLevel(self.level))
        object.__setattr__(
            self, "metadata", types.MappingProxyType(dict(self.metadata))
        )

    def has_issue(self, issue_type: str) -> bool:
        return any(issue.type == issue_type for issue in self.issues)

    def to_dict(self) -> dict:
        from template2complexity.extractors.serialization import serialize_report

        return serialize_report(self)

    def to_json(self, **kwargs) -> str:
        return json.dumps(self.to_dict(), **kwargs)
