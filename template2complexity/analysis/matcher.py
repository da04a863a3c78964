import itertools
import logging
from dataclasses import dataclass
from typing import Iterable

from template2complexity.analysis.config import MAX_SAMPLE_LENGTH
from template2complexity.analysis.patterns import TextMatcher
from template2complexity.extractors.content_validator import (
    DEFAULT_VALIDATOR,
    ContentValidator,
)

logger = logging.getLogger(__name__)

TRUNCATION_SUFFIX = "..."


@dataclass(frozen=True)
class MatchResult:
    samples: tuple[str, ...] = ()
    valid_count: int = 0
    invalid_count: int = 0


def truncate_sample(sample: str, max_length: int = MAX_SAMPLE_LENGTH) -> str:
    if len(sample) > max_length:
        return sample[:max_length] + TRUNCATION_SUFFIX
    return sample


class PatternMatcher:
    """
    Deduplicating, capped matching over a group of matchers.

    All detectors share this so that validation, deduplication and sample
    capping behave the same for merge fields, formulas, macros and field
    codes.
    """

    def __init__(
        self,
        validator: ContentValidator = DEFAULT_VALIDATOR,
        max_sample_length: int = MAX_SAMPLE_LENGTH,
    ):
        self.validator = validator
        self.max_sample_length = max_sample_length

    def match(
        self,
        text: str,
        group: Iterable[TextMatcher],
        limit: int,
        validate: bool = True,
    ) -> MatchResult:
        """
        Run every matcher of ``group`` over ``text``.

        Args:
            text: Extracted document text.
            group: Matchers, applied in order.
            limit: Maximum number of samples stored. Counting continues past it.
            validate: Route each distinct match through the content validator.
                Rejected matches are counted as invalid and never stored.

        Returns:
            MatchResult with at most ``limit`` samples. ``valid_count`` and
            ``invalid_count`` stay 0 when ``validate`` is False.
        """
        candidates = itertools.chain.from_iterable(
            matcher.match_all(text) for matcher in group
        )
        return self.collect(candidates, limit, validate)

    def collect(
        self, candidates: Iterable[str], limit: int, validate: bool = True
    ) -> MatchResult:
        """Deduplicate, validate and cap already extracted strings."""
        samples: list[str] = []
        seen: set[str] = set()
        valid = invalid = 0

        for found in candidates:
            if found in seen:
                continue
            seen.add(found)

            if validate:
                if not self.validator.is_valid(found):
                    invalid += 1
                    continue
                valid += 1
                found = self.validator.clean(found)

            if len(samples) < limit:
                samples.append(truncate_sample(found, self.max_sample_length))

        if invalid:
            logger.debug("Rejected %d of %d distinct matches", invalid, len(seen))
        return MatchResult(tuple(samples), valid, invalid)
