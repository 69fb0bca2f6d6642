"""
Trust score engine.

Turns evidence quality, model consensus and bias into a bounded integer
score in [0, 100]. The score measures confidence in a claim's verdict,
not the truth of the claim: a claim that every model confidently calls
misleading can still score high, and the verdict carries the polarity.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from verifyshot.schemas.analysis import BiasSignals, Source
from verifyshot.scoring.quality_gate import HIGH_QUALITY_THRESHOLD
from verifyshot.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class TrustWeights:
    source_quality: float
    model_consensus: float
    recency: float
    independent_agreement: float
    bias: float


WEIGHTS_WITH_SOURCES = TrustWeights(
    source_quality=0.45, model_consensus=0.30, recency=0.10, independent_agreement=0.10, bias=0.05,
)
# Model opinion carries more weight when there is no external evidence
WEIGHTS_WITHOUT_SOURCES = TrustWeights(
    source_quality=0.20, model_consensus=0.50, recency=0.05, independent_agreement=0.05, bias=0.05,
)

NO_SOURCE_DEFAULT = 0.3

# effective consensus = avg confidence * (BASE + BOOST * agreement)
AGREEMENT_BLEND_BASE = 0.7
AGREEMENT_BLEND_BOOST = 0.3

LIKELY_TRUE_THRESHOLD = 75
MIXED_THRESHOLD = 40

LABEL_LIKELY_TRUE = "Likely True"
LABEL_MIXED = "Unverified / Mixed"
LABEL_MISLEADING = "Likely Misleading"
LABEL_UNABLE_TO_VERIFY = "Unable to Verify"

UNPARSEABLE_DATE_RECENCY = 0.4


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up."""
    return int(math.floor(round(value, 9) + 0.5))


def effective_consensus(avg_confidence: float, model_agreement: float) -> float:
    """Blend average model confidence with the agreement fraction."""
    blended = _clamp01(avg_confidence) * (AGREEMENT_BLEND_BASE + AGREEMENT_BLEND_BOOST * _clamp01(model_agreement))
    return _clamp01(blended)


def _parse_source_date(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def recency_bucket(published: str, now: datetime) -> float:
    """Score one publication date: under a week 1.0, a month 0.9, a year 0.7, else 0.4."""
    parsed = _parse_source_date(published)
    if parsed is None:
        return UNPARSEABLE_DATE_RECENCY

    age = now - parsed
    if age < timedelta(days=7):
        return 1.0
    if age < timedelta(days=30):
        return 0.9
    if age < timedelta(days=365):
        return 0.7
    return 0.4


def recency_score(sources: Sequence[Source], now: Optional[datetime] = None) -> float:
    if not sources:
        return 0.0
    now = now or datetime.now(timezone.utc)
    return sum(recency_bucket(source.date, now) for source in sources) / len(sources)


def bias_penalty(signals: BiasSignals) -> float:
    """Half the absolute political bias plus half the sensationalism."""
    return _clamp01(0.5 * abs(signals.political_bias) + 0.5 * signals.sensationalism)


def trust_label(score: int) -> str:
    if score >= LIKELY_TRUE_THRESHOLD:
        return LABEL_LIKELY_TRUE
    if score >= MIXED_THRESHOLD:
        return LABEL_MIXED
    return LABEL_MISLEADING


def calculate_trust_score(
    sources: Sequence[Source],
    model_consensus: float,
    bias_penalty: float,
    model_agreement: float = 1.0,
    now: Optional[datetime] = None,
) -> int:
    """
    Calculate the trust score for one claim.

    Args:
        sources: Sources consulted for the claim
        model_consensus: Average model confidence in [0, 1]
        bias_penalty: Bias penalty in [0, 1]
        model_agreement: Fraction of models matching the final verdict
        now: Reference time for recency, defaults to the current UTC time

    Returns:
        Integer score in [0, 100]
    """
    if sources:
        weights = WEIGHTS_WITH_SOURCES
        source_quality = sum(source.credibility_score for source in sources) / len(sources)
        high_quality = sum(1 for source in sources if source.credibility_score >= HIGH_QUALITY_THRESHOLD)
        independent_agreement = high_quality / len(sources)
    else:
        weights = WEIGHTS_WITHOUT_SOURCES
        source_quality = NO_SOURCE_DEFAULT
        independent_agreement = NO_SOURCE_DEFAULT

    recency = recency_score(sources, now)
    consensus = effective_consensus(model_consensus, model_agreement)

    raw = (
        weights.source_quality * source_quality
        + weights.model_consensus * consensus
        + weights.recency * recency
        + weights.independent_agreement * independent_agreement
        - weights.bias * _clamp01(bias_penalty)
    )
    score = round_half_up(100 * _clamp01(raw))

    logger.debug("Trust score calculated",
                 source_count=len(sources),
                 source_quality=round(source_quality, 3),
                 consensus=round(consensus, 3),
                 recency=round(recency, 3),
                 independent_agreement=round(independent_agreement, 3),
                 bias_penalty=round(bias_penalty, 3),
                 raw=round(raw, 4),
                 score=score)
    return score
