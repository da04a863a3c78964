"""
Complexity scoring.

Detectors measure; the scorer decides what a measurement is worth. Each
``score_*`` method turns raw counts into a ``PhaseResult``: the issues to
report with their weights, the report fields to set, and whether the
finding forces human review on its own. The engine commits a result only
when its detector ran to completion, so a failing detector contributes
nothing.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from template2complexity.analysis.config import DEFAULT_CONFIG, ComplexityConfig
from template2complexity.analysis.report import (
    ComplexityIssue,
    ComplexityLevel,
    Severity,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoredIssue:
    issue: ComplexityIssue
    weight: int


@dataclass(frozen=True)
class PhaseResult:
    issues: tuple[ScoredIssue, ...] = ()
    fields: Mapping[str, Any] = field(default_factory=dict)
    force_review: bool = False

    @property
    def weight(self) -> int:
        return sum(scored.weight for scored in self.issues)


def _issue(
    issue_type: str,
    description: str,
    severity: Severity,
    weight: int,
    location: str = "",
) -> ScoredIssue:
    return ScoredIssue(
        ComplexityIssue(issue_type, description, severity, location), weight
    )


def apply_noise_discount(score: int, valid_formulas: int, invalid_formulas: int) -> int:
    """
    Scale the score down when formula matches are mostly garbage.

    More than twice as many invalid as valid formula matches means the
    extractor most likely read binary data as text, so every other count is
    suspect too. The proportion used is a heuristic.
    """
    if invalid_formulas > valid_formulas * 2:
        return score * valid_formulas // (valid_formulas + invalid_formulas + 1)
    return score


def score_to_level(
    score: int, config: ComplexityConfig = DEFAULT_CONFIG
) -> ComplexityLevel:
    if score >= config.critical_score:
        return ComplexityLevel.CRITICAL
    if score >= config.high_score:
        return ComplexityLevel.HIGH
    if score >= config.medium_score:
        return ComplexityLevel.MEDIUM
    return ComplexityLevel.LOW


class ComplexityScorer:
    def __init__(self, config: ComplexityConfig = DEFAULT_CONFIG):
        self.config = config

    def score_nesting(
        self, depth: int, if_count: int, offset: int | None = None
    ) -> PhaseResult:
        config = self.config
        location = f"offset {offset}" if offset is not None else ""
        issues = []
        if depth > config.nested_if_high_threshold:
            issues.append(
                _issue(
                    "nested_conditionals",
                    f"Deep nesting of IF statements detected (depth: {depth})",
                    Severity.HIGH,
                    depth * config.nested_if_high_weight,
                    location,
                )
            )
        elif depth > config.nested_if_medium_threshold:
            issues.append(
                _issue(
                    "nested_conditionals",
                    f"Moderate nesting of IF statements detected (depth: {depth})",
                    Severity.MEDIUM,
                    depth * config.nested_if_medium_weight,
                    location,
                )
            )

        if if_count > config.if_count_high_threshold:
            issues.append(
                _issue(
                    "multiple_conditionals",
                    f"High number of conditional statements ({if_count})",
                    Severity.MEDIUM,
                    if_count * config.multiple_if_weight,
                )
            )

        return PhaseResult(
            tuple(issues),
            {"nested_if_depth": depth, "total_if_statements": if_count},
            force_review=depth > config.nested_if_high_threshold,
        )

    def score_merge_fields(
        self, total: int, complex_fields: Sequence[str]
    ) -> PhaseResult:
        config = self.config
        issues = []
        if complex_fields:
            issues.append(
                _issue(
                    "complex_merge_fields",
                    "Complex merge fields with formatting detected "
                    f"({len(complex_fields)})",
                    Severity.MEDIUM,
                    len(complex_fields) * config.complex_merge_field_weight,
                )
            )
        if total > config.merge_field_high_count:
            issues.append(
                _issue(
                    "numerous_merge_fields",
                    f"Large number of merge fields detected ({total})",
                    Severity.LOW,
                    total,
                )
            )
        return PhaseResult(
            tuple(issues),
            {"total_merge_fields": total, "complex_merge_fields": tuple(complex_fields)},
        )

    def score_macros(self, macros: Sequence[str]) -> PhaseResult:
        if not macros:
            return PhaseResult()
        return PhaseResult(
            (
                _issue(
                    "vba_macros",
                    f"VBA macros detected in document ({len(macros)} unique)",
                    Severity.HIGH,
                    self.config.macro_weight,
                ),
            ),
            {"macros": tuple(macros)},
            force_review=True,
        )

    def score_formulas(
        self, formulas: Sequence[str], valid: int, invalid: int
    ) -> PhaseResult:
        issues = []
        if valid > 0:
            issues.append(
                _issue(
                    "formulas",
                    "Valid formulas and calculations detected "
                    f"({valid} valid, {invalid} invalid)",
                    Severity.MEDIUM,
                    valid * self.config.formula_weight,
                )
            )
        return PhaseResult(
            tuple(issues),
            {
                "formulas": tuple(formulas),
                "valid_formulas": valid,
                "invalid_formulas": invalid,
            },
        )

    def score_tables(self, table_count: int, nested_count: int) -> PhaseResult:
        config = self.config
        issues = []
        if nested_count > 0:
            issues.append(
                _issue(
                    "nested_tables",
                    f"Nested table structures detected ({nested_count})",
                    Severity.MEDIUM,
                    config.nested_table_weight,
                )
            )
        if table_count > config.table_count_threshold:
            issues.append(
                _issue(
                    "multiple_tables",
                    f"Multiple table structures detected ({table_count})",
                    Severity.LOW,
                    config.multiple_table_weight,
                )
            )
        return PhaseResult(tuple(issues))

    def score_activex(self, found: bool) -> PhaseResult:
        if not found:
            return PhaseResult()
        return PhaseResult(
            (
                _issue(
                    "activex_controls",
                    "ActiveX controls detected",
                    Severity.HIGH,
                    self.config.activex_weight,
                ),
            ),
            force_review=True,
        )

    def score_field_codes(self, field_codes: Sequence[str]) -> PhaseResult:
        issues = []
        if field_codes:
            issues.append(
                _issue(
                    "field_codes",
                    f"Special field codes detected ({len(field_codes)})",
                    Severity.LOW,
                    len(field_codes) * self.config.field_code_weight,
                )
            )
        return PhaseResult(tuple(issues), {"field_codes": tuple(field_codes)})

    def finalize(
        self,
        score: int,
        issues: Sequence[ComplexityIssue],
        *,
        valid_formulas: int,
        invalid_formulas: int,
        nested_if_depth: int,
        has_macros: bool,
        needs_review: bool,
    ) -> tuple[int, ComplexityLevel, bool]:
        """
        Apply the noise discount, map the score to a level and settle the
        review flag.

        Returns:
            (score, level, needs_review)
        """
        config = self.config
        discounted = apply_noise_discount(score, valid_formulas, invalid_formulas)
        if discounted != score:
            logger.debug(
                "Noise discount: score %d -> %d (%d valid, %d invalid formulas)",
                score,
                discounted,
                valid_formulas,
                invalid_formulas,
            )

        level = score_to_level(discounted, config)
        if level in (ComplexityLevel.CRITICAL, ComplexityLevel.HIGH):
            needs_review = True
        elif level == ComplexityLevel.MEDIUM and any(
            issue.severity == Severity.HIGH for issue in issues
        ):
            needs_review = True

        if nested_if_depth > config.nested_if_high_threshold or has_macros:
            needs_review = True

        return discounted, level, needs_review
