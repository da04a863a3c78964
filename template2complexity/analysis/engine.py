"""
Complexity analysis engine.

``analyze`` turns a template byte buffer into a ``ComplexityReport``:

    bytes -> format detection -> text extraction
          -> nesting, merge fields, macros, formulas, tables, ActiveX,
             field codes
          -> score, level, review flag -> recommendations

The engine does no I/O and keeps no state between calls. It never raises
for bad input: extraction problems, failing detectors and cancellation are
all reported through ``ComplexityReport.parse_errors``.
"""

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Callable

from template2complexity.analysis.cancellation import Cancellation
from template2complexity.analysis.config import DEFAULT_CONFIG, ComplexityConfig
from template2complexity.analysis.matcher import PatternMatcher
from template2complexity.analysis.nesting import measure_nesting
from template2complexity.analysis.patterns import (
    PatternRegistry,
    get_default_registry,
)
from template2complexity.analysis.recommendations import generate_recommendations
from template2complexity.analysis.report import (
    ComplexityIssue,
    ComplexityReport,
)
from template2complexity.analysis.scoring import ComplexityScorer, PhaseResult
from template2complexity.extractors.content_validator import ContentValidator
from template2complexity.extractors.data_types import (
    DocumentFormat,
    ExtractedDocument,
)
from template2complexity.extractors.readable_text import extract_readable_text
from template2complexity.router import extract_document

logger = logging.getLogger(__name__)

ANALYSIS_CANCELLED = "Analysis cancelled"
MACRO_PROJECT_PLACEHOLDER = "VBA Project detected in document"

# ActiveX hints are short tokens ("CLSID:", "ComboBox1"); they only need to
# survive the noise checks, not the formula-length minimum
ACTIVEX_VALIDATOR = ContentValidator(min_length=4)


@dataclass
class _ReportBuilder:
    """Mutable state of one analysis, frozen into a report at the end."""

    score: int = 0
    issues: list[ComplexityIssue] = field(default_factory=list)
    needs_review: bool = False
    nested_if_depth: int = 0
    total_if_statements: int = 0
    total_merge_fields: int = 0
    complex_merge_fields: tuple[str, ...] = ()
    macros: tuple[str, ...] = ()
    formulas: tuple[str, ...] = ()
    parse_errors: list[str] = field(default_factory=list)
    field_codes: tuple[str, ...] = ()
    valid_formulas: int = 0
    invalid_formulas: int = 0
    cancelled: bool = False

    def commit(self, result: PhaseResult) -> None:
        for scored in result.issues:
            self.issues.append(scored.issue)
            self.score += scored.weight
        for name, value in result.fields.items():
            setattr(self, name, value)
        if result.force_review:
            self.needs_review = True

    def add_error(self, message: str) -> None:
        self.parse_errors.append(message)


class _Analysis:
    def __init__(
        self,
        data: bytes,
        config: ComplexityConfig,
        cancellation: Cancellation | None,
    ):
        self.data = data
        self.config = config
        self.cancellation = cancellation
        self.registry: PatternRegistry = config.patterns or get_default_registry()
        self.matcher = PatternMatcher(max_sample_length=config.max_sample_length)
        self.scorer = ComplexityScorer(config)
        self.builder = _ReportBuilder()
        self.document: ExtractedDocument | None = None
        self.text = ""

    def is_cancelled(self) -> bool:
        return self.cancellation is not None and self.cancellation.is_cancelled()

    def run(self) -> ComplexityReport:
        if self.is_cancelled():
            logger.info("Analysis cancelled before extraction")
            return ComplexityReport(parse_errors=(ANALYSIS_CANCELLED,))

        self._extract()

        phases: list[tuple[str, Callable[[], PhaseResult]]] = [
            ("IF analysis error", self._analyze_nesting),
            ("Merge field analysis error", self._analyze_merge_fields),
            ("Macro detection error", self._detect_macros),
            ("Formula detection error", self._detect_formulas),
            ("Table detection error", self._detect_tables),
            ("ActiveX detection error", self._detect_activex),
        ]
        if self.config.extract_field_codes:
            phases.append(("Field code detection error", self._detect_field_codes))

        for error_label, phase in phases:
            if not self._run_phase(error_label, phase):
                break

        return self._finalize()

    def _extract(self) -> None:
        builder = self.builder
        document = extract_document(self.data, zip_limits=self.config.zip_limits)
        self.document = document

        for warning in document.warnings:
            builder.add_error(f"Document extraction warning: {warning}")

        text = document.text
        if (
            len(text) < self.config.limited_text_length
            and document.format != DocumentFormat.PLAIN_TEXT
        ):
            builder.add_error(
                f"Limited text extraction from {document.format.display_name} "
                f"format (only {len(text)} chars)"
            )
            # a ZIP payload is compressed, the router already rescans a broken one
            if document.format != DocumentFormat.ZIP_CONTAINER:
                fallback = extract_readable_text(self.data)
                if len(fallback) > len(text):
                    logger.debug(
                        "Using printable-run fallback text (%d chars)",
                        len(fallback),
                    )
                    text = fallback
        self.text = text

        if document.has_macros:
            builder.macros = (MACRO_PROJECT_PLACEHOLDER,)
            builder.needs_review = True

        if document.field_codes:
            builder.field_codes = self.matcher.collect(
                document.field_codes, self.config.max_stored_field_codes
            ).samples

    def _run_phase(self, error_label: str, phase: Callable[[], PhaseResult]) -> bool:
        """Run one detector; False once the analysis has been cancelled."""
        if self.is_cancelled():
            logger.info("Analysis cancelled before %s", phase.__name__.lstrip("_"))
            self.builder.cancelled = True
            self.builder.add_error(ANALYSIS_CANCELLED)
            return False
        try:
            result = phase()
        except Exception as e:
            logger.warning("%s: %s", error_label, e, exc_info=True)
            self.builder.add_error(f"{error_label}: {e}")
            return True
        self.builder.commit(result)
        return True

    def _analyze_nesting(self) -> PhaseResult:
        registry = self.registry
        if_count = len(registry.if_field_full.match_all(self.text))
        measurement = measure_nesting(self.text, registry.if_field_start)
        return self.scorer.score_nesting(
            measurement.depth, if_count, measurement.offset
        )

    def _analyze_merge_fields(self) -> PhaseResult:
        # every occurrence counts, duplicates included
        total = sum(
            len(matcher.match_all(self.text))
            for matcher in self.registry.merge_fields
        )
        complex_fields = self.matcher.match(
            self.text,
            self.registry.complex_merge_field,
            self.config.max_stored_formulas,
            validate=True,
        )
        return self.scorer.score_merge_fields(total, complex_fields.samples)

    def _detect_macros(self) -> PhaseResult:
        macros = self.matcher.match(
            self.text,
            self.registry.macros,
            self.config.max_stored_formulas,
            validate=True,
        )
        return self.scorer.score_macros(macros.samples)

    def _detect_formulas(self) -> PhaseResult:
        formulas = self.matcher.match(
            self.text,
            self.registry.formulas,
            self.config.max_stored_formulas,
            validate=self.config.validate_formulas,
        )
        return self.scorer.score_formulas(
            formulas.samples, formulas.valid_count, formulas.invalid_count
        )

    def _detect_tables(self) -> PhaseResult:
        table_count = len(self.registry.table.match_all(self.text))
        nested_count = len(self.registry.nested_table.match_all(self.text))
        if self.document is not None:
            table_count += self.document.table_count
            nested_count += self.document.nested_table_count
        return self.scorer.score_tables(table_count, nested_count)

    def _detect_activex(self) -> PhaseResult:
        found = False
        for matcher in self.registry.activex:
            matches = matcher.match_all(self.text)
            if matches and ACTIVEX_VALIDATOR.is_valid(matches[0]):
                found = True
                break
        return self.scorer.score_activex(found)

    def _detect_field_codes(self) -> PhaseResult:
        field_codes = self.matcher.match(
            self.text,
            self.registry.field_codes,
            self.config.max_stored_field_codes,
            validate=True,
        )
        return self.scorer.score_field_codes(field_codes.samples)

    def _finalize(self) -> ComplexityReport:
        builder = self.builder
        score, level, needs_review = self.scorer.finalize(
            builder.score,
            builder.issues,
            valid_formulas=builder.valid_formulas,
            invalid_formulas=builder.invalid_formulas,
            nested_if_depth=builder.nested_if_depth,
            has_macros=bool(builder.macros),
            needs_review=builder.needs_review,
        )

        document = self.document
        report = ComplexityReport(
            score=score,
            level=level,
            needs_review=needs_review,
            nested_if_depth=builder.nested_if_depth,
            total_if_statements=builder.total_if_statements,
            total_merge_fields=builder.total_merge_fields,
            complex_merge_fields=builder.complex_merge_fields,
            macros=builder.macros,
            formulas=builder.formulas,
            issues=tuple(builder.issues),
            parse_errors=tuple(builder.parse_errors),
            field_codes=builder.field_codes,
            valid_formulas=builder.valid_formulas,
            invalid_formulas=builder.invalid_formulas,
            document_format=document.format if document else DocumentFormat.UNKNOWN,
            metadata=document.metadata if document else {},
        )
        report = dataclasses.replace(
            report,
            recommendations=tuple(generate_recommendations(report, self.config)),
        )

        logger.info(
            "Analysed %s template: score %d (%s), review %s, %d issues%s",
            report.document_format.display_name,
            report.score,
            report.level.value,
            report.needs_review,
            len(report.issues),
            " [cancelled]" if builder.cancelled else "",
        )
        return report


def analyze(
    data: bytes,
    config: ComplexityConfig | None = None,
    cancellation: Cancellation | None = None,
) -> ComplexityReport:
    """
    Analyse the complexity of a template held in memory.

    Args:
        data: Complete file contents. Any length, including empty.
        config: Thresholds, weights and caps. ``DEFAULT_CONFIG`` when None.
        cancellation: Anything with ``is_cancelled() -> bool``, e.g. a
            ``CancellationToken``. Checked before extraction and before each
            detector; a cancelled analysis returns what it has so far with
            "Analysis cancelled" in ``parse_errors``.

    Returns:
        A frozen ComplexityReport. Never raises for malformed input.
    """
    if config is None:
        config = DEFAULT_CONFIG
    data = bytes(data) if data is not None else b""
    return _Analysis(data, config, cancellation).run()
