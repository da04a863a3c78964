"""
JSON form of a complexity report.

The key names are a stable contract with API consumers; renaming a
report attribute must not change them. ``parse_errors`` and
``field_codes`` are omitted when empty.
"""

import typing

from template2complexity.analysis.report import (
    ComplexityIssue,
    ComplexityLevel,
    ComplexityReport,
    Severity,
)

# report attribute -> JSON key, in output order
_REPORT_KEYS = (
    ("score", "complexity_score"),
    ("level", "complexity_level"),
    ("needs_review", "needs_human_review"),
    ("nested_if_depth", "nested_if_depth"),
    ("total_if_statements", "total_if_statements"),
    ("total_merge_fields", "total_merge_fields"),
    ("complex_merge_fields", "complex_merge_fields"),
    ("macros", "macros_found"),
    ("formulas", "formulas_found"),
    ("issues", "potential_issues"),
    ("recommendations", "recommendations"),
    ("parse_errors", "parse_errors"),
    ("field_codes", "field_codes"),
    ("valid_formulas", "valid_formulas_count"),
    ("invalid_formulas", "invalid_formulas_count"),
)
_OMIT_WHEN_EMPTY = frozenset({"parse_errors", "field_codes"})


def _serialize_issue(issue: ComplexityIssue) -> dict:
    result = {
        "type": issue.type,
        "description": issue.description,
        "severity": issue.severity.value,
    }
    if issue.location:
        result["location"] = issue.location
    return result


def _serialize_value(value: typing.Any) -> typing.Any:
    if isinstance(value, ComplexityIssue):
        return _serialize_issue(value)
    if isinstance(value, (ComplexityLevel, Severity)):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_serialize_value(item) for item in value]
    return value


def serialize_report(report: ComplexityReport) -> dict:
    result = {}
    for attribute, key in _REPORT_KEYS:
        value = getattr(report, attribute)
        if attribute in _OMIT_WHEN_EMPTY and not value:
            continue
        result[key] = _serialize_value(value)
    return result


def _deserialize_issue(data: dict) -> ComplexityIssue:
    return ComplexityIssue(
        type=data["type"],
        description=data["description"],
        severity=Severity(data["severity"]),
        location=data.get("location", ""),
    )


def deserialize_report(data: dict) -> ComplexityReport:
    """
    Rebuild a report from its JSON form.

    Attributes outside the JSON contract (format, metadata) come back at
    their defaults.
    """
    if not isinstance(data, dict):
        raise TypeError(f"Expected a dict, got {type(data).__name__}")

    values: dict[str, typing.Any] = {}
    for attribute, key in _REPORT_KEYS:
        if key not in data:
            if attribute in _OMIT_WHEN_EMPTY:
                continue
            raise KeyError(f"Missing report key: {key}")
        values[attribute] = data[key]

    values["issues"] = tuple(_deserialize_issue(item) for item in values["issues"])
    values["level"] = ComplexityLevel(values["level"])
    return ComplexityReport(**values)
