"""
template2complexity: Complexity analysis for legacy word-processing templates.

Detects the container format of a template (OOXML, OLE compound file, RTF,
plain text), extracts its text without a full parser for any of them, and
scores the structures that make a template hard to convert: nested IF
fields, formatted merge fields, formulas, VBA macros, nested tables and
ActiveX controls.
"""

from pathlib import Path

from template2complexity.analysis.cancellation import CancellationToken
from template2complexity.analysis.config import DEFAULT_CONFIG, ComplexityConfig
from template2complexity.analysis.engine import analyze
from template2complexity.analysis.nesting import calculate_nesting_depth
from template2complexity.analysis.patterns import (
    PatternRegistry,
    build_default_registry,
    get_default_registry,
)
from template2complexity.analysis.report import (
    ComplexityIssue,
    ComplexityLevel,
    ComplexityReport,
    Severity,
)
from template2complexity.exceptions import (
    ConfigurationError,
    ExtractionError,
    ExtractionFailedError,
    ExtractionZipBombError,
)
from template2complexity.extractors.data_types import (
    DocumentFormat,
    ExtractedDocument,
)
from template2complexity.extractors.format_detection import detect_format
from template2complexity.router import extract_document

__version__ = "0.1.0"


def analyze_file(
    path: str | Path,
    config: ComplexityConfig | None = None,
    cancellation=None,
) -> ComplexityReport:
    """
    Read a file and analyse it.

    This is the only entry point that touches the file system; I/O errors
    propagate to the caller.
    """
    data = Path(path).read_bytes()
    return analyze(data, config=config, cancellation=cancellation)


__all__ = [
    "__version__",
    "analyze",
    "analyze_file",
    "calculate_nesting_depth",
    "detect_format",
    "extract_document",
    # Configuration
    "ComplexityConfig",
    "DEFAULT_CONFIG",
    "CancellationToken",
    "PatternRegistry",
    "build_default_registry",
    "get_default_registry",
    # Results
    "ComplexityReport",
    "ComplexityIssue",
    "ComplexityLevel",
    "Severity",
    "DocumentFormat",
    "ExtractedDocument",
    # Errors
    "ExtractionError",
    "ExtractionFailedError",
    "ExtractionZipBombError",
    "ConfigurationError",
]
