import dataclasses
import unittest

import pytest

from template2complexity.analysis.matcher import PatternMatcher, truncate_sample
from template2complexity.analysis.nesting import (
    IF_LOOKAHEAD_WINDOW,
    calculate_nesting_depth,
    measure_nesting,
)
from template2complexity.analysis.patterns import (
    PositionalMatcher,
    RegexMatcher,
    TextMatcher,
    build_default_registry,
    get_default_registry,
)

tc = unittest.TestCase()

DEEP_IF = '{IF a "{IF b "{IF c "{IF d "deep" "d"}" "c"}" "b"}" "a"}'


class _KeywordMatcher:
    """A matcher that is not a regular expression."""

    def __init__(self, keyword: str):
        self.keyword = keyword

    def match_all(self, text: str) -> list[str]:
        return [word for word in text.split() if word.startswith(self.keyword)]


############
# Registry #
############


def test_default_registry_is_built_once_and_frozen() -> None:
    registry = get_default_registry()
    tc.assertIs(registry, get_default_registry())
    tc.assertIsNot(registry, build_default_registry())

    with pytest.raises(dataclasses.FrozenInstanceError):
        registry.macros = ()


def test_default_registry_groups_satisfy_matcher_protocol() -> None:
    registry = get_default_registry()
    tc.assertIsInstance(registry.if_field_start, PositionalMatcher)
    for group in (
        registry.merge_fields,
        registry.complex_merge_field,
        registry.formulas,
        registry.macros,
        registry.activex,
        registry.field_codes,
    ):
        tc.assertIsInstance(group, tuple)
        for matcher in group:
            tc.assertIsInstance(matcher, TextMatcher)

    tc.assertEqual(7, len(registry.merge_fields))
    tc.assertEqual(5, len(registry.formulas))
    tc.assertEqual(8, len(registry.macros))


def test_default_patterns_are_case_insensitive() -> None:
    registry = get_default_registry()
    tc.assertEqual(
        ["{ mergefield name }"],
        registry.merge_fields[0].match_all("{ mergefield name }"),
    )
    tc.assertEqual(["{ if"], registry.if_field_start.match_all("x { if y }"))
    tc.assertEqual(["autoopen"], registry.macros[6].match_all("call autoopen now"))


def test_merge_field_patterns() -> None:
    registry = get_default_registry()
    text = (
        "{MERGEFIELD Name} «Street» {DOCVARIABLE Client} {DOCPROPERTY Title} "
        '{ASK Question "Prompt?"} {FILLIN "Your name"} {REF Bookmark1}'
    )
    counts = [len(m.match_all(text)) for m in registry.merge_fields]
    tc.assertEqual([1, 1, 1, 1, 1, 1, 1], counts)


def test_complex_merge_field_pattern() -> None:
    (complex_field,) = get_default_registry().complex_merge_field
    tc.assertEqual(
        ['{MERGEFIELD Amount \\f " EUR"}'],
        complex_field.match_all('{MERGEFIELD Amount \\f " EUR"}'),
    )
    tc.assertEqual(1, len(complex_field.match_all("{MERGEFIELD Name \\* Upper}")))
    tc.assertEqual(1, len(complex_field.match_all("{ MERGEFIELD Name MERGEFORMAT }")))
    tc.assertEqual([], complex_field.match_all("{MERGEFIELD Name}"))


def test_nested_table_pattern_needs_one_line() -> None:
    registry = get_default_registry()
    tc.assertEqual(
        1, len(registry.nested_table.match_all("<table><tr><td><table border=1>"))
    )
    tc.assertEqual([], registry.nested_table.match_all("<table>\n<table>"))
    tc.assertEqual(2, len(registry.table.match_all("<table>\n<TABLE class=x>")))


def test_regex_matcher_positions() -> None:
    matcher = RegexMatcher(r"\{\s*IF\b")
    tc.assertEqual([(0, 3), (9, 13)], matcher.spans('{IF a} x { IF b}'))
    tc.assertTrue(matcher.matches_at("x {IF y", 2))
    tc.assertFalse(matcher.matches_at("x {IF y", 0))
    # the window ends before the keyword is complete
    tc.assertFalse(matcher.matches_at("{   IF", 0, 5))


###########
# Matcher #
###########


def test_matcher_deduplicates_and_validates() -> None:
    text = "{= 1 + 2 + 3} {= 1 + 2 + 3} {= 4 + 5 + 6} {= 1}"
    result = PatternMatcher().match(text, get_default_registry().formulas, limit=10)

    tc.assertEqual(("{= 1 + 2 + 3}", "{= 4 + 5 + 6}"), result.samples)
    tc.assertEqual(2, result.valid_count)
    # "{= 1}" is shorter than the validator minimum
    tc.assertEqual(1, result.invalid_count)


def test_matcher_caps_samples_but_keeps_counting() -> None:
    text = " ".join(f"{{= {i} + 100}}" for i in range(15))
    result = PatternMatcher().match(text, get_default_registry().formulas, limit=10)

    tc.assertEqual(10, len(result.samples))
    tc.assertEqual(15, result.valid_count)


def test_matcher_truncates_long_samples() -> None:
    text = "{= " + "1 + " * 40 + "1}"
    result = PatternMatcher().match(text, get_default_registry().formulas, limit=10)

    (sample,) = result.samples
    tc.assertEqual(103, len(sample))
    tc.assertTrue(sample.endswith("..."))
    tc.assertEqual("abc", truncate_sample("abc"))


def test_matcher_rejects_binary_noise() -> None:
    text = "{= \x01\x02\x03\x04\x05\x06\x07\x0e}"
    result = PatternMatcher().match(text, get_default_registry().formulas, limit=10)

    tc.assertEqual((), result.samples)
    tc.assertEqual(0, result.valid_count)
    tc.assertEqual(1, result.invalid_count)


def test_matcher_without_validation_stores_raw_matches() -> None:
    result = PatternMatcher().match(
        "{= 1}", get_default_registry().formulas, limit=10, validate=False
    )
    tc.assertEqual(("{= 1}",), result.samples)
    tc.assertEqual((0, 0), (result.valid_count, result.invalid_count))


def test_matcher_accepts_any_text_matcher() -> None:
    result = PatternMatcher().match(
        "alpha_1234567 beta alpha_1234567 alpha_7654321",
        [_KeywordMatcher("alpha")],
        limit=5,
    )
    tc.assertEqual(("alpha_1234567", "alpha_7654321"), result.samples)


def test_matcher_collect() -> None:
    result = PatternMatcher().collect(
        ["aaaaaaaaaaaa", "aaaaaaaaaaaa", "short"], limit=5
    )
    tc.assertEqual(("aaaaaaaaaaaa",), result.samples)
    tc.assertEqual((1, 1), (result.valid_count, result.invalid_count))


###########
# Nesting #
###########


def test_nesting_depth_basics() -> None:
    tc.assertEqual(0, calculate_nesting_depth(""))
    tc.assertEqual(0, calculate_nesting_depth("no fields at all"))
    tc.assertEqual(1, calculate_nesting_depth('{IF a "x" "y"}'))
    tc.assertEqual(2, calculate_nesting_depth('{IF a "{IF b "x" "y"}" "z"}'))
    tc.assertEqual(4, calculate_nesting_depth(DEEP_IF))


def test_nesting_siblings_do_not_sum() -> None:
    tc.assertEqual(1, calculate_nesting_depth('{IF a "x" "y"} {IF b "x" "y"}'))
    tc.assertEqual(
        1, calculate_nesting_depth('{IF a "x" "y"} {IF b "x" "y"} {IF c "x" "y"}')
    )


def test_nesting_counts_every_if_reopened_inside_a_field() -> None:
    # both branches hold an IF, each one adds to the enclosing field
    text = '{IF a "{IF b "x" "y"}" "{IF c "x" "y"}"}'
    tc.assertEqual(3, calculate_nesting_depth(text))
    measurement = measure_nesting(text)
    tc.assertEqual(3, measurement.depth)
    tc.assertEqual(24, measurement.offset)
    # the branch IFs measured alone stay at depth 1
    tc.assertEqual(1, calculate_nesting_depth('{IF b "x" "y"} {IF c "x" "y"}'))


def test_nesting_ignores_non_if_braces() -> None:
    tc.assertEqual(1, calculate_nesting_depth('{MERGEFIELD x} {IF y "a" "b"}'))
    tc.assertEqual(
        2, calculate_nesting_depth('{IF a "{MERGEFIELD x}" "{IF b "y" "z"}"}')
    )
    tc.assertEqual(1, calculate_nesting_depth('{IF a "{= {MERGEFIELD x} * 2}" "z"}'))
    tc.assertEqual(0, calculate_nesting_depth("{IFFY x} {MERGEFIELD y}"))


def test_nesting_edge_cases() -> None:
    # unterminated fields run to the end of the text
    tc.assertEqual(2, calculate_nesting_depth('{IF a "{IF b "x"'))
    # stray closing braces are ignored
    tc.assertEqual(1, calculate_nesting_depth('}} {IF a "x" "y"}'))
    tc.assertEqual(2, calculate_nesting_depth('{ if a "{ if b "x" "y"}" "z"}'))


def test_nesting_lookahead_window_is_pinned() -> None:
    tc.assertEqual(20, IF_LOOKAHEAD_WINDOW)
    # "{" + 17 spaces + "IF" fills the window exactly
    inside = '{IF a "{' + " " * 17 + 'IF b "x" "y"}" "z"}'
    outside = '{IF a "{' + " " * 18 + 'IF b "x" "y"}" "z"}'
    tc.assertEqual(2, calculate_nesting_depth(inside))
    tc.assertEqual(1, calculate_nesting_depth(outside))


def test_nesting_reports_offset_of_deepest_field() -> None:
    measurement = measure_nesting('{IF a "{IF b "x" "y"}" "z"}')
    tc.assertEqual(2, measurement.depth)
    tc.assertEqual(7, measurement.offset)
    tc.assertIsNone(measure_nesting("plain").offset)


def test_nesting_with_custom_if_matcher() -> None:
    german = RegexMatcher(r"\{\s*WENN\b")
    tc.assertEqual(
        2, calculate_nesting_depth('{WENN a "{WENN b "x" "y"}" "z"}', german)
    )
    tc.assertEqual(0, calculate_nesting_depth('{IF a "x" "y"}', german))
