"""
Nesting depth of conditional (IF) fields.

A plain brace counter over-counts: merge fields and formulas share the
``{...}`` syntax and often sit inside IF branches. Each IF field is walked
on its own with a brace balance, and only braces that reopen another IF
add to its depth.

``{IF a "{MERGEFIELD x}" "{IF b "y" "z"}"}`` has depth 2; the merge
field brace is tracked for balance but never counts.
"""

from dataclasses import dataclass

from template2complexity.analysis.patterns import (
    PositionalMatcher,
    get_default_registry,
)

# Characters after a nested "{" in which the IF keyword must appear
IF_LOOKAHEAD_WINDOW = 20


@dataclass(frozen=True)
class NestingMeasurement:
    depth: int = 0
    # Offset of the IF brace where the maximum depth was first reached
    offset: int | None = None


def _walk_field(
    text: str, start: int, end: int, if_start: PositionalMatcher
) -> NestingMeasurement:
    depth = 1
    deepest = start
    balance = 1
    position = end
    length = len(text)
    while position < length and balance > 0:
        ch = text[position]
        if ch == "{":
            balance += 1
            if if_start.matches_at(
                text, position, position + IF_LOOKAHEAD_WINDOW
            ):
                depth += 1
                deepest = position
        elif ch == "}":
            balance -= 1
        position += 1
    return NestingMeasurement(depth, deepest)


def measure_nesting(
    text: str, if_start: PositionalMatcher | None = None
) -> NestingMeasurement:
    """
    Walk forward from every IF field found by the IF-start matcher.

    The walk starts after the IF token with a brace balance of 1. Every
    ``{`` raises the balance, and raises the depth too when an IF token
    starts at that brace within ``IF_LOOKAHEAD_WINDOW`` characters. Every
    ``}`` lowers the balance and the walk ends when it reaches 0, or at the
    end of the text for an unterminated field. The deepest walk wins;
    sibling fields are measured apart and never add up.
    """
    if not text:
        return NestingMeasurement()
    if if_start is None:
        if_start = get_default_registry().if_field_start

    best = NestingMeasurement()
    for start, end in if_start.spans(text):
        measurement = _walk_field(text, start, end, if_start)
        if measurement.depth > best.depth:
            best = measurement
    return best


def calculate_nesting_depth(
    text: str, if_start: PositionalMatcher | None = None
) -> int:
    """Maximum number of IF fields opened inside one another in ``text``."""
    return measure_nesting(text, if_start).depth
