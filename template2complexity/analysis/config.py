"""
Thresholds, weights and caps for the complexity analysis.

``ComplexityConfig`` is a value: build one, hand it to ``analyze`` and never
mutate it. ``DEFAULT_CONFIG`` is used when the caller passes nothing.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping

from template2complexity.exceptions import ConfigurationError
from template2complexity.extractors.util.zip_bomb import (
    DEFAULT_ZIP_BOMB_LIMITS,
    ZipBombLimits,
)

if TYPE_CHECKING:
    from template2complexity.analysis.patterns import PatternRegistry

logger = logging.getLogger(__name__)

# Nesting and count thresholds
NESTED_IF_HIGH_THRESHOLD = 3
NESTED_IF_MEDIUM_THRESHOLD = 1
IF_COUNT_HIGH_THRESHOLD = 10
MERGE_FIELD_HIGH_COUNT = 15
TABLE_COUNT_THRESHOLD = 10
INVALID_FORMULA_WARNING_COUNT = 5

# Score cutoffs
COMPLEXITY_SCORE_CRITICAL = 120
COMPLEXITY_SCORE_HIGH = 60
COMPLEXITY_SCORE_MEDIUM = 30

# Score weights
NESTED_IF_HIGH_WEIGHT = 15
NESTED_IF_MEDIUM_WEIGHT = 8
MULTIPLE_IF_WEIGHT = 3
COMPLEX_MERGE_FIELD_WEIGHT = 6
MACRO_DETECTION_WEIGHT = 40
FORMULA_WEIGHT = 5
NESTED_TABLE_WEIGHT = 20
MULTIPLE_TABLE_WEIGHT = 8
ACTIVEX_CONTROL_WEIGHT = 35
FIELD_CODE_WEIGHT = 2

# Collection limits
DEFAULT_MAX_STORED_FORMULAS = 10
DEFAULT_MAX_STORED_FIELD_CODES = 20
MAX_SAMPLE_LENGTH = 100

# Below this many characters, extraction from a binary format is suspect
LIMITED_TEXT_LENGTH = 100


@dataclass(frozen=True)
class ComplexityConfig:
    nested_if_high_threshold: int = NESTED_IF_HIGH_THRESHOLD
    nested_if_medium_threshold: int = NESTED_IF_MEDIUM_THRESHOLD
    if_count_high_threshold: int = IF_COUNT_HIGH_THRESHOLD
    merge_field_high_count: int = MERGE_FIELD_HIGH_COUNT
    table_count_threshold: int = TABLE_COUNT_THRESHOLD
    invalid_formula_warning_count: int = INVALID_FORMULA_WARNING_COUNT

    critical_score: int = COMPLEXITY_SCORE_CRITICAL
    high_score: int = COMPLEXITY_SCORE_HIGH
    medium_score: int = COMPLEXITY_SCORE_MEDIUM

    nested_if_high_weight: int = NESTED_IF_HIGH_WEIGHT
    nested_if_medium_weight: int = NESTED_IF_MEDIUM_WEIGHT
    multiple_if_weight: int = MULTIPLE_IF_WEIGHT
    complex_merge_field_weight: int = COMPLEX_MERGE_FIELD_WEIGHT
    macro_weight: int = MACRO_DETECTION_WEIGHT
    formula_weight: int = FORMULA_WEIGHT
    nested_table_weight: int = NESTED_TABLE_WEIGHT
    multiple_table_weight: int = MULTIPLE_TABLE_WEIGHT
    activex_weight: int = ACTIVEX_CONTROL_WEIGHT
    field_code_weight: int = FIELD_CODE_WEIGHT

    max_stored_formulas: int = DEFAULT_MAX_STORED_FORMULAS
    max_stored_field_codes: int = DEFAULT_MAX_STORED_FIELD_CODES
    max_sample_length: int = MAX_SAMPLE_LENGTH
    limited_text_length: int = LIMITED_TEXT_LENGTH

    validate_formulas: bool = True
    extract_field_codes: bool = True

    # None means the shared default registry
    patterns: PatternRegistry | None = None
    zip_limits: ZipBombLimits = DEFAULT_ZIP_BOMB_LIMITS

    def __post_init__(self):
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if f.name in ("patterns", "zip_limits"):
                continue
            if f.name in ("validate_formulas", "extract_field_codes"):
                if not isinstance(value, bool):
                    raise ConfigurationError(f.name, f"expected a bool, got {value!r}")
                continue
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f.name, f"expected an int, got {value!r}")
            if value < 0:
                raise ConfigurationError(f.name, f"must not be negative, got {value}")

        if not 0 < self.medium_score < self.high_score < self.critical_score:
            raise ConfigurationError(
                "medium_score",
                "score cutoffs must be positive and strictly ascending "
                f"(medium={self.medium_score}, high={self.high_score}, "
                f"critical={self.critical_score})",
            )
        if self.nested_if_medium_threshold > self.nested_if_high_threshold:
            raise ConfigurationError(
                "nested_if_medium_threshold",
                "must not exceed nested_if_high_threshold",
            )
        if self.max_sample_length < 1:
            raise ConfigurationError("max_sample_length", "must be at least 1")
        if not isinstance(self.zip_limits, ZipBombLimits):
            raise ConfigurationError(
                "zip_limits", f"expected ZipBombLimits, got {self.zip_limits!r}"
            )

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "ComplexityConfig":
        """
        Build a config from plain data, e.g. a parsed JSON file.

        Unknown keys are rejected rather than ignored so that a typo does not
        silently fall back to a default. ``zip_limits`` may be given as a
        nested mapping. A custom pattern registry cannot be expressed as
        plain data and has to be passed with ``with_overrides``.
        """
        known = {f.name for f in dataclasses.fields(cls)} - {"patterns"}
        unknown = sorted(set(mapping) - known)
        if unknown:
            raise ConfigurationError(unknown[0], "unknown configuration key")

        values = dict(mapping)
        if isinstance(values.get("zip_limits"), Mapping):
            try:
                values["zip_limits"] = ZipBombLimits(**values["zip_limits"])
            except TypeError as e:
                raise ConfigurationError("zip_limits", str(e)) from e

        logger.debug(f"Building configuration with overrides: {sorted(values)}")
        return cls(**values)

    def with_overrides(self, **overrides: Any) -> "ComplexityConfig":
        return dataclasses.replace(self, **overrides)


DEFAULT_CONFIG = ComplexityConfig()
