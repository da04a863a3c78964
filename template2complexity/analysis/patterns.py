"""
Pattern registry for template feature detection.

Every detector in the engine asks the registry for a named group of
matchers and never touches a regular expression directly. A matcher is
anything with ``match_all(text) -> list[str]``; the IF-start matcher also
reports positions, which the nesting scanner needs.

The default registry is compiled once, on first use, and shared by all
analyses. It is immutable, so sharing it across threads needs no locking.
"""

from __future__ import annotations

import functools
import logging
import re
from dataclasses import dataclass
from typing import Protocol, Sequence, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class TextMatcher(Protocol):
    def match_all(self, text: str) -> list[str]: ...


@runtime_checkable
class PositionalMatcher(TextMatcher, Protocol):
    def spans(self, text: str) -> list[tuple[int, int]]: ...

    def matches_at(self, text: str, pos: int, endpos: int | None = None) -> bool: ...


class RegexMatcher:
    """A compiled regular expression behind the matcher interface."""

    __slots__ = ("_regex",)

    def __init__(self, pattern: str, flags: int = re.IGNORECASE):
        self._regex = re.compile(pattern, flags)

    @property
    def pattern(self) -> str:
        return self._regex.pattern

    def match_all(self, text: str) -> list[str]:
        return [m.group(0) for m in self._regex.finditer(text)]

    def spans(self, text: str) -> list[tuple[int, int]]:
        return [m.span() for m in self._regex.finditer(text)]

    def matches_at(self, text: str, pos: int, endpos: int | None = None) -> bool:
        """True when a match starts exactly at ``pos`` and ends by ``endpos``."""
        if endpos is None:
            endpos = len(text)
        return self._regex.match(text, pos, endpos) is not None

    def __repr__(self) -> str:
        return f"RegexMatcher({self._regex.pattern!r})"


def _field_pattern(keyword: str) -> str:
    return r"\{\s*" + keyword + r"\s+([^}]+)\}"


@dataclass(frozen=True)
class PatternRegistry:
    """Named, immutable groups of matchers."""

    if_field_start: PositionalMatcher
    if_field_full: TextMatcher
    merge_fields: tuple[TextMatcher, ...]
    complex_merge_field: tuple[TextMatcher, ...]
    formulas: tuple[TextMatcher, ...]
    macros: tuple[TextMatcher, ...]
    table: TextMatcher
    nested_table: TextMatcher
    activex: tuple[TextMatcher, ...]
    field_codes: tuple[TextMatcher, ...]

    def __post_init__(self):
        for name in (
            "merge_fields",
            "complex_merge_field",
            "formulas",
            "macros",
            "activex",
            "field_codes",
        ):
            object.__setattr__(self, name, tuple(getattr(self, name)))

    @classmethod
    def from_patterns(
        cls,
        *,
        if_field_start: str,
        if_field_full: str,
        merge_fields: Sequence[str],
        complex_merge_field: Sequence[str],
        formulas: Sequence[str],
        macros: Sequence[str],
        table: str,
        nested_table: str,
        activex: Sequence[str],
        field_codes: Sequence[str],
        flags: int = re.IGNORECASE,
    ) -> "PatternRegistry":
        """Compile a registry from regular expression source strings."""

        def group(patterns: Sequence[str]) -> tuple[RegexMatcher, ...]:
            return tuple(RegexMatcher(p, flags) for p in patterns)

        return cls(
            if_field_start=RegexMatcher(if_field_start, flags),
            if_field_full=RegexMatcher(if_field_full, flags),
            merge_fields=group(merge_fields),
            complex_merge_field=group(complex_merge_field),
            formulas=group(formulas),
            macros=group(macros),
            table=RegexMatcher(table, flags),
            nested_table=RegexMatcher(nested_table, flags),
            activex=group(activex),
            field_codes=group(field_codes),
        )


def build_default_registry() -> PatternRegistry:
    """Compile the built-in patterns. Prefer ``get_default_registry``."""
    return PatternRegistry.from_patterns(
        if_field_start=r"\{\s*IF\b",
        if_field_full=r"\{\s*IF\b[^}]*\}",
        merge_fields=(
            _field_pattern("MERGEFIELD"),
            r"«([^»]+)»",
            _field_pattern("DOCVARIABLE"),
            _field_pattern("DOCPROPERTY"),
            _field_pattern("ASK"),
            _field_pattern("FILLIN"),
            _field_pattern("REF"),
        ),
        complex_merge_field=(
            r"\{\s*MERGEFIELD\s+[^}]*(\*|\\\w+|MERGEFORMAT)[^}]*\}",
        ),
        formulas=(
            r"\{\s*=\s*[^}]+\}",
            r"\{\s*FORMULA\s+[^}]+\}",
            r"\{\s*EQ\s+[^}]+\}",
            r"\{\s*CALC\s+[^}]+\}",
            r"\{\s*SYMBOL\s+[^}]+\}",
        ),
        macros=(
            r"Sub\s+\w+\s*\(",
            r"Function\s+\w+\s*\(",
            r"Private\s+Sub",
            r"Public\s+Sub",
            r"\.VBProject",
            r"Macro\d+",
            r"Auto(Open|Close|New|Exit)",
            r"Document_Open",
        ),
        table=r"<table[^>]*>",
        # no DOTALL: both tags have to sit on one line
        nested_table=r"<table[^>]*>.*?<table[^>]*>",
        activex=(
            r"ACTIVEX",
            r"\.OCX\b",
            r"CLSID:",
            r"ComboBox\d+",
            r"CheckBox\d+",
            r"CommandButton\d+",
            r"Forms\.\w+\.\d+",
        ),
        field_codes=(
            r"\{\s*AUTOTEXT\s+[^}]+\}",
            r"\{\s*INCLUDETEXT\s+[^}]+\}",
            r"\{\s*LINK\s+[^}]+\}",
            r"\{\s*EMBED\s+[^}]+\}",
        ),
    )


@functools.lru_cache(maxsize=1)
def get_default_registry() -> PatternRegistry:
    logger.debug("Compiling default pattern registry")
    return build_default_registry()
