"""
Minimum-evidence precondition for claim verification.
"""

from dataclasses import dataclass
from typing import Sequence

from verifyshot.schemas.analysis import Source

HIGH_QUALITY_THRESHOLD = 0.7
MIN_HIGH_QUALITY_SOURCES = 3


@dataclass(frozen=True)
class GateDecision:
    passed: bool
    high_quality_count: int
    required: int = MIN_HIGH_QUALITY_SOURCES

    @property
    def shortfall(self) -> int:
        return max(0, self.required - self.high_quality_count)


def count_high_quality(sources: Sequence[Source], threshold: float = HIGH_QUALITY_THRESHOLD) -> int:
    return sum(1 for source in sources if source.credibility_score >= threshold)


def evaluate_quality_gate(sources: Sequence[Source]) -> GateDecision:
    """Pass only when at least three sources have credibility of 0.7 or more."""
    high_quality = count_high_quality(sources)
    return GateDecision(
        passed=high_quality >= MIN_HIGH_QUALITY_SOURCES,
        high_quality_count=high_quality,
    )
