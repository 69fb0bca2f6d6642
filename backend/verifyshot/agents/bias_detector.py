"""
Multi-perspective bias assessment.

Three perspective lenses (US left, US right, international) are each
run on every backend of the roster, all concurrently. The assessments
are aggregated by mean and population standard deviation; a failed
assessment counts as a neutral default rather than being dropped.
"""

import asyncio
import statistics
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from verifyshot.backends.base import ModelBackend
from verifyshot.schemas.analysis import BiasPerspectives, BiasSignals, PerspectiveScore, Source
from verifyshot.utils.logger import get_logger
from verifyshot.utils.model_output import coerce_bias, coerce_confidence, parse_model_output

logger = get_logger(__name__)

NEUTRAL_BIAS = 0.0
NEUTRAL_SENSATIONALISM = 0.3

HIGH_AGREEMENT_STDDEV = 0.2
MEDIUM_AGREEMENT_STDDEV = 0.4
MAX_KEY_SIGNALS = 5
FALLBACK_SIGNAL = "Standard reporting"

_RESPONSE_FORMAT = (
    "Return ONLY valid JSON with these fields: politicalBias (number -1 to 1), "
    "sensationalism (number 0 to 1), reasoning (string).\n"
    "No markdown, no code blocks, no extra text. Just the JSON object."
)

PERSPECTIVES: Dict[str, str] = {
    "us_left": "\n".join([
        "You are a media bias analyst specializing in progressive and left-leaning framing.",
        "Analyze claims for political bias and sensationalism.",
        "Consider how language, framing, and fact selection might appeal to left-leaning audiences.",
        _RESPONSE_FORMAT,
    ]),
    "us_right": "\n".join([
        "You are a media bias analyst specializing in conservative and right-leaning framing.",
        "Analyze claims for political bias and sensationalism.",
        "Consider how language, framing, and fact selection might appeal to right-leaning audiences.",
        _RESPONSE_FORMAT,
    ]),
    "international": "\n".join([
        "You are a neutral international media analyst from a non-US perspective.",
        "Analyze claims for political bias and sensationalism objectively.",
        "Consider how the framing might appear to audiences outside the US political context.",
        _RESPONSE_FORMAT,
    ]),
}

# (tag, trigger words) scanned in reasoning text, in output order
SIGNAL_VOCABULARY: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("Emotional language", ("emotional", "emotion")),
    ("Selective fact presentation", ("selective", "cherry")),
    ("Loaded terminology", ("loaded", "charged")),
    ("Exaggeration", ("exaggerat", "hyperbol")),
    ("Framing bias", ("framing", "frame")),
    ("Factual omissions", ("omission", "omit")),
    ("Balanced reporting", ("neutral", "balanced")),
    ("Factual tone", ("factual", "objective")),
)


@dataclass(frozen=True)
class BiasAssessment:
    perspective: str
    model_name: str
    political_bias: float
    sensationalism: float
    reasoning: str
    failed: bool = False


def population_stddev(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return statistics.pstdev(values)


def consensus_from_stddev(stddev: float) -> float:
    """1 - stddev / 2, clamped to [0, 1]."""
    return max(0.0, min(1.0, 1.0 - stddev / 2.0))


def agreement_label(stddev: float) -> str:
    if stddev < HIGH_AGREEMENT_STDDEV:
        return "high"
    if stddev < MEDIUM_AGREEMENT_STDDEV:
        return "medium"
    return "low"


def bias_label(mean_bias: float) -> str:
    if mean_bias < -0.5:
        return "left"
    if mean_bias < -0.15:
        return "slight_left"
    if mean_bias > 0.5:
        return "right"
    if mean_bias > 0.15:
        return "slight_right"
    return "center"


def extract_key_signals(reasoning: str) -> List[str]:
    """Tag bias indicators mentioned in the reasoning text."""
    lower = reasoning.lower()
    signals = [tag for tag, triggers in SIGNAL_VOCABULARY if any(word in lower for word in triggers)]
    return signals[:MAX_KEY_SIGNALS] or [FALLBACK_SIGNAL]


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _describe(mean_bias: float, mean_sensationalism: float, agreement: str, signals: List[str]) -> str:
    if mean_bias < -0.3:
        bias_desc = "left-leaning"
    elif mean_bias > 0.3:
        bias_desc = "right-leaning"
    else:
        bias_desc = "relatively neutral"

    if mean_sensationalism > 0.7:
        sens_desc = "highly sensational"
    elif mean_sensationalism > 0.4:
        sens_desc = "moderately sensational"
    else:
        sens_desc = "low sensationalism"

    agree_desc = {"high": "Strong", "medium": "Moderate", "low": "Low"}[agreement]
    return (
        f"Multi-perspective analysis (US Left, US Right, International) shows {bias_desc} framing "
        f"with {sens_desc}. {agree_desc} agreement among assessments. "
        f"Key signals: {', '.join(signals[:3])}."
    )


def aggregate_assessments(assessments: Sequence[BiasAssessment]) -> BiasSignals:
    """
    Aggregate perspective x model assessments into job-level bias signals.

    Pure and deterministic: the same assessments always yield the same result,
    whatever order they arrive in.
    """
    if not assessments:
        return neutral_bias_signals("No bias assessments were available.")

    ordered = sorted(assessments, key=lambda a: (a.perspective, a.model_name, a.political_bias, a.sensationalism))

    per_perspective = {}
    for perspective in PERSPECTIVES:
        group = [a for a in ordered if a.perspective == perspective]
        biases = [a.political_bias for a in group]
        per_perspective[perspective] = PerspectiveScore(
            bias=round(_mean(biases), 2),
            sensationalism=round(_mean([a.sensationalism for a in group]), 2),
            consensus=round(consensus_from_stddev(population_stddev(biases)), 2),
        )

    all_biases = [a.political_bias for a in ordered]
    mean_bias = _mean(all_biases)
    mean_sensationalism = _mean([a.sensationalism for a in ordered])
    stddev = population_stddev(all_biases)
    agreement = agreement_label(stddev)

    signals = extract_key_signals(" ".join(a.reasoning for a in ordered if not a.failed))

    return BiasSignals(
        political_bias=round(mean_bias, 2),
        sensationalism=round(mean_sensationalism, 2),
        overall_bias=bias_label(mean_bias),
        explanation=_describe(mean_bias, mean_sensationalism, agreement, signals),
        confidence=round(consensus_from_stddev(stddev), 2),
        agreement=agreement,
        perspectives=BiasPerspectives(**per_perspective),
        key_signals=signals,
    )


def neutral_bias_signals(explanation: str) -> BiasSignals:
    """Placeholder signals used when no bias stage ran."""
    return BiasSignals(
        political_bias=NEUTRAL_BIAS,
        sensationalism=NEUTRAL_SENSATIONALISM,
        overall_bias="center",
        explanation=explanation,
    )


def parse_assessment(perspective: str, model_name: str, raw: str) -> BiasAssessment:
    result = parse_model_output(raw)
    if not result.ok:
        return failed_assessment(perspective, model_name, result.error)

    payload = result.payload
    return BiasAssessment(
        perspective=perspective,
        model_name=model_name,
        political_bias=coerce_bias(payload.get("politicalBias", payload.get("political_bias")), NEUTRAL_BIAS),
        sensationalism=coerce_confidence(payload.get("sensationalism"), NEUTRAL_SENSATIONALISM),
        reasoning=str(payload.get("reasoning") or ""),
    )


def failed_assessment(perspective: str, model_name: str, reason: str) -> BiasAssessment:
    return BiasAssessment(
        perspective=perspective,
        model_name=model_name,
        political_bias=NEUTRAL_BIAS,
        sensationalism=NEUTRAL_SENSATIONALISM,
        reasoning=reason,
        failed=True,
    )


class BiasAggregator:
    """Runs every perspective on every backend and aggregates the results."""

    def __init__(self, backends: Sequence[ModelBackend]) -> None:
        self.backends = list(backends)

    async def _assess(self, perspective: str, backend: ModelBackend, prompt: str) -> BiasAssessment:
        try:
            raw = await backend.generate(prompt, system_prompt=PERSPECTIVES[perspective])
        except Exception as e:
            logger.warning("Bias assessment failed, using neutral default",
                           perspective=perspective, model=backend.name, error=str(e))
            return failed_assessment(perspective, backend.name, str(e))
        return parse_assessment(perspective, backend.name, raw)

    async def assess(self, claims: Sequence[str], context: str = "", sources: Sequence[Source] = ()) -> BiasSignals:
        """
        Assess political bias and sensationalism of the given claims.

        Args:
            claims: Claim texts to assess together
            context: Optional surrounding text, e.g. the OCR output
            sources: Optional sources to mention as background
        """
        claim_block = "\n".join(f"- {claim}" for claim in claims)
        prompt = f"Claims:\n{claim_block}"
        if context:
            prompt += f'\n\nOriginal text:\n"""\n{context[:2000]}\n"""'
        if sources:
            prompt += "\n\nSources found: " + ", ".join(s.domain for s in sources[:5])
        prompt += "\n\nAssess political bias and sensationalism. Return JSON only."

        tasks = [
            self._assess(perspective, backend, prompt)
            for perspective in PERSPECTIVES
            for backend in self.backends
        ]
        assessments = await asyncio.gather(*tasks)

        signals = aggregate_assessments(assessments)
        logger.info("Bias assessment complete",
                    assessments=len(assessments),
                    failed=sum(1 for a in assessments if a.failed),
                    political_bias=signals.political_bias,
                    sensationalism=signals.sensationalism,
                    agreement=signals.agreement)
        return signals
