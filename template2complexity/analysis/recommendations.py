from template2complexity.analysis.config import DEFAULT_CONFIG, ComplexityConfig
from template2complexity.analysis.report import ComplexityLevel, ComplexityReport


def generate_recommendations(
    report: ComplexityReport, config: ComplexityConfig = DEFAULT_CONFIG
) -> list[str]:
    """
    Human-readable guidance for a scored report.

    The checks run in a fixed order, so identical reports always produce
    identical lists.
    """
    recommendations = []

    if report.needs_review:
        recommendations.append("This document requires human review after conversion")

    if report.nested_if_depth > config.nested_if_medium_threshold:
        recommendations.append(
            "Review nested conditional logic for accuracy "
            f"(depth: {report.nested_if_depth})"
        )

    if report.complex_merge_fields:
        recommendations.append("Verify complex merge field formatting after conversion")

    if report.macros:
        recommendations.append(
            "VBA macros will not be converted - manual recreation may be needed"
        )

    if report.valid_formulas > 0:
        recommendations.append(
            "Test all formulas and calculations for accuracy "
            f"({report.valid_formulas} valid formulas found)"
        )

    if report.invalid_formulas > config.invalid_formula_warning_count:
        recommendations.append(
            "Document contains binary or corrupted formula data - "
            "verify source file integrity"
        )

    if report.has_issue("activex_controls"):
        recommendations.append("ActiveX controls require manual replacement or removal")

    if report.field_codes:
        recommendations.append(
            "Special field codes detected - verify they convert correctly"
        )

    if report.level == ComplexityLevel.CRITICAL:
        recommendations.append(
            "Consider manual conversion or specialized tools for this complex document"
        )

    if report.parse_errors:
        recommendations.append(
            "Some analysis features encountered errors - manual review recommended"
        )

    return recommendations
