"""
Multi-model claim verification.

The same fact-check question goes to every backend of a fixed roster
concurrently. A backend that fails or answers with unparseable output is
replaced by a neutral verdict, so each claim always carries exactly one
verdict per backend.
"""

import asyncio
from collections import Counter
from dataclasses import dataclass
from typing import List, Sequence

from verifyshot.backends.base import ModelBackend
from verifyshot.schemas.analysis import ModelVerdict, Source
from verifyshot.utils.logger import get_logger
from verifyshot.utils.model_output import (
    coerce_confidence,
    normalize_verdict,
    parse_model_output,
)

logger = get_logger(__name__)

NEUTRAL_VERDICT = "mixed"
MAX_PROMPT_SOURCES = 5

SYSTEM_PROMPT = """You are an expert fact-checker. Analyze claims against provided sources and return structured JSON.

Your analysis should:
1. Determine if the claim is supported, contradicted, or mixed by the sources
2. Assess confidence (0.0-1.0) based on source quality and agreement
3. Provide a clear 2-3 sentence explanation

Return ONLY valid JSON:
{
  "verdict": "likely_true" | "mixed" | "likely_misleading",
  "confidence": 0.0-1.0,
  "reasoning": "2-3 sentence explanation"
}"""


@dataclass(frozen=True)
class ConsensusResult:
    final_verdict: str
    avg_confidence: float
    model_agreement: float
    model_verdicts: List[ModelVerdict]


def neutral_verdict(model_name: str, reason: str) -> ModelVerdict:
    """Stand-in verdict for a backend that failed."""
    return ModelVerdict(
        model_name=model_name,
        verdict=NEUTRAL_VERDICT,
        confidence=0.0,
        reasoning=f"Model unavailable: {reason}",
    )


def resolve_consensus(verdicts: Sequence[ModelVerdict]) -> ConsensusResult:
    """
    Resolve the final verdict by strict majority, falling back to "mixed".

    Agreement is the fraction of verdicts matching the final verdict, and
    each returned verdict is marked with whether it agrees.
    """
    if not verdicts:
        return ConsensusResult(NEUTRAL_VERDICT, 0.0, 0.0, [])

    total = len(verdicts)
    tally = Counter(v.verdict for v in verdicts)
    if tally["likely_true"] * 2 > total:
        final_verdict = "likely_true"
    elif tally["likely_misleading"] * 2 > total:
        final_verdict = "likely_misleading"
    else:
        final_verdict = NEUTRAL_VERDICT

    marked = [v.model_copy(update={"agrees": v.verdict == final_verdict}) for v in verdicts]
    return ConsensusResult(
        final_verdict=final_verdict,
        avg_confidence=sum(v.confidence for v in verdicts) / total,
        model_agreement=tally[final_verdict] / total,
        model_verdicts=marked,
    )


def parse_verdict(model_name: str, raw: str) -> ModelVerdict:
    """Turn a raw model response into a verdict, neutral if it cannot be parsed."""
    result = parse_model_output(raw)
    if not result.ok:
        return neutral_verdict(model_name, result.error)

    payload = result.payload
    reasoning = payload.get("reasoning") or payload.get("explanation") or ""
    return ModelVerdict(
        model_name=model_name,
        verdict=normalize_verdict(payload.get("verdict")),
        confidence=coerce_confidence(payload.get("confidence"), default=0.5),
        reasoning=str(reasoning).strip(),
    )


def format_sources(sources: Sequence[Source]) -> str:
    if not sources:
        return "No sources available."
    return "\n".join(
        f"[{i}] {s.title} ({s.domain}, {s.date}): {s.snippet}"
        for i, s in enumerate(sources[:MAX_PROMPT_SOURCES], 1)
    )


class MultiModelVerifier:
    """Asks every backend in the roster for a verdict on each claim."""

    def __init__(self, backends: Sequence[ModelBackend]) -> None:
        self.backends = list(backends)

    async def _ask_backend(self, backend: ModelBackend, prompt: str) -> ModelVerdict:
        try:
            raw = await backend.generate(prompt, system_prompt=SYSTEM_PROMPT)
        except Exception as e:
            logger.warning("Verification backend failed, using neutral verdict",
                           model=backend.name, error=str(e))
            return neutral_verdict(backend.name, str(e))
        return parse_verdict(backend.name, raw)

    async def verify_claim(self, claim: str, sources: Sequence[Source]) -> ConsensusResult:
        """Verify one claim against its sources across all backends."""
        prompt = f'Claim: "{claim}"\n\nSources:\n{format_sources(sources)}\n\nAnalyze and return JSON only.'
        verdicts = await asyncio.gather(*(self._ask_backend(backend, prompt) for backend in self.backends))

        consensus = resolve_consensus(verdicts)
        logger.info("Claim verified",
                    final_verdict=consensus.final_verdict,
                    avg_confidence=round(consensus.avg_confidence, 3),
                    model_agreement=round(consensus.model_agreement, 3),
                    verdicts=[v.verdict for v in verdicts])
        return consensus

    async def verify_claims(self, claims: Sequence[str], sources: Sequence[Source]) -> List[ConsensusResult]:
        """Verify all claims concurrently; results keep claim order."""
        return list(await asyncio.gather(*(self.verify_claim(claim, sources) for claim in claims)))
