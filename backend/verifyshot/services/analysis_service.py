"""
Orchestration of one fact-checking job.

A job moves through OCR, claim extraction alongside source search, the
quality gate, verification, bias assessment, and finally synthesis into
an AnalysisResult. Stage failures other than OCR and configuration
are recovered locally; the whole job runs under a hard deadline.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Sequence

from verifyshot.agents.bias_detector import BiasAggregator, neutral_bias_signals
from verifyshot.agents.claim_extractor import ClaimExtractorAgent, fallback_claim
from verifyshot.agents.verifier import ConsensusResult, MultiModelVerifier
from verifyshot.backends.registry import BackendCache, build_roster, get_backend
from verifyshot.config import Settings
from verifyshot.schemas.analysis import UNABLE_TO_VERIFY, AnalysisResult, BiasSignals, Claim, Source
from verifyshot.scoring.quality_gate import GateDecision, evaluate_quality_gate
from verifyshot.scoring.trust_score import (
    LABEL_UNABLE_TO_VERIFY,
    bias_penalty,
    calculate_trust_score,
    round_half_up,
    trust_label,
)
from verifyshot.services.ocr_service import OCRService
from verifyshot.services.search_service import SearchService
from verifyshot.services.source_aggregator import SourceAggregator
from verifyshot.utils.logger import get_logger, job_context

logger = get_logger(__name__)

MAX_QUERY_WORDS = 32
SCORE_NOTE = "The trust score reflects confidence in this verdict, not whether the claim is true."

_VERDICT_DESCRIPTIONS = {
    "likely_true": "likely true",
    "likely_misleading": "likely misleading",
}


class AnalysisTimeoutError(Exception):
    """Raised when a job exceeds its deadline."""

    def __init__(self, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Analysis did not complete within {timeout_seconds:g} seconds")


class JobStage(str, Enum):
    OCR = "ocr"
    EXTRACT_AND_SEARCH = "extract_and_search"
    GATE_CHECK = "gate_check"
    UNABLE_TO_VERIFY = "unable_to_verify"
    VERIFY = "verify"
    BIAS = "bias"
    SYNTHESIZE = "synthesize"


def derive_query(text: str) -> str:
    """Search query for OCR text: its first sentence or first 200 characters, at most 32 words."""
    words = fallback_claim(text).split()
    return " ".join(words[:MAX_QUERY_WORDS])


def mean_score(scores: Sequence[int]) -> int:
    if not scores:
        return 0
    return round_half_up(sum(scores) / len(scores))


def claim_explanation(consensus: ConsensusResult) -> str:
    total = len(consensus.model_verdicts)
    reasonings = [v.reasoning for v in consensus.model_verdicts if v.reasoning and v.agrees]
    reasonings += [v.reasoning for v in consensus.model_verdicts if v.reasoning and not v.agrees]
    agreeing = sum(1 for v in consensus.model_verdicts if v.agrees)

    if not reasonings:
        return f"Analysis by {total} independent AI models. {SCORE_NOTE}"
    return (
        f'{reasonings[0]} ({agreeing}/{total} models agree with "{consensus.final_verdict}" verdict). '
        f"{SCORE_NOTE}"
    )


def build_summary(claims: Sequence[Claim], bias: BiasSignals, source_count: int, model_count: int) -> str:
    main_verdict = claims[0].verdict if claims else "mixed"
    verdict_desc = _VERDICT_DESCRIPTIONS.get(main_verdict, "unverified")
    bias_desc = "relatively neutral" if bias.overall_bias == "center" else bias.overall_bias.replace("_", " ")
    return (
        f"Analysis of {len(claims)} claim(s) suggests the content is {verdict_desc}. "
        f"Assessed across {source_count} source(s) and verified by {model_count} AI models. "
        f"Bias assessment: {bias_desc} framing."
    )


@dataclass
class AnalysisContext:
    """Collaborators shared by the jobs of one process."""

    settings: Settings
    ocr: OCRService
    claim_extractor: ClaimExtractorAgent
    source_aggregator: SourceAggregator
    verifier: MultiModelVerifier
    bias_aggregator: BiasAggregator

    @classmethod
    def from_settings(cls, settings: Settings, cache: BackendCache) -> "AnalysisContext":
        """
        Build the context from configuration.

        Raises:
            ConfigurationError: If mandatory keys are missing or the roster is invalid
        """
        settings.require_analysis_keys()
        roster = build_roster(settings, cache)
        extractor_backend = get_backend("anthropic", settings.claude_model, settings, cache)

        return cls(
            settings=settings,
            ocr=OCRService(settings),
            claim_extractor=ClaimExtractorAgent(extractor_backend, max_claims=settings.max_claims),
            source_aggregator=SourceAggregator(SearchService(settings.serper_api_key)),
            verifier=MultiModelVerifier(roster),
            bias_aggregator=BiasAggregator(roster),
        )


class AnalysisService:
    """
    Service class running analysis jobs.

    Holds no per-job state: every job's claims, sources and verdicts live
    on the stack of its own analyze() call.
    """

    def __init__(self, context: AnalysisContext) -> None:
        self.context = context
        self.settings = context.settings

    async def analyze(
        self,
        job_id: str,
        image_url: Optional[str] = None,
        image_bytes: Optional[bytes] = None,
        image_reference: Optional[str] = None,
    ) -> AnalysisResult:
        """
        Run a full analysis job.

        Args:
            job_id: Identifier of the job, used as the log correlation ID
            image_url: URL of the screenshot to download
            image_bytes: Screenshot bytes, used instead of downloading
            image_reference: Reference reported back as imageUrl, defaults to image_url

        Returns:
            The completed AnalysisResult

        Raises:
            OCRError: If no text can be extracted
            AnalysisTimeoutError: If the job exceeds its deadline
        """
        timeout = self.settings.analysis_timeout_seconds
        with job_context(job_id):
            start_time = time.time()
            logger.info("Analysis job started", job_id=job_id, timeout_seconds=timeout)
            try:
                result = await asyncio.wait_for(
                    self._run(job_id, image_url, image_bytes, image_reference or image_url or ""),
                    timeout=timeout,
                )
            except asyncio.TimeoutError:
                logger.error("Analysis job timed out", job_id=job_id, timeout_seconds=timeout)
                raise AnalysisTimeoutError(timeout)

            logger.info("Analysis job complete",
                        job_id=job_id,
                        aggregate_trust_score=result.aggregate_trust_score,
                        claims=len(result.claims),
                        duration_seconds=round(time.time() - start_time, 2))
            return result

    async def _run(
        self,
        job_id: str,
        image_url: Optional[str],
        image_bytes: Optional[bytes],
        image_reference: str,
    ) -> AnalysisResult:
        logger.info("Stage started", stage=JobStage.OCR.value)
        ocr_text = await self.context.ocr.extract_text(image_url=image_url, image_bytes=image_bytes)

        logger.info("Stage started", stage=JobStage.EXTRACT_AND_SEARCH.value)
        claims, sources = await asyncio.gather(
            self._extract_claims(ocr_text),
            self._search_sources(ocr_text),
        )

        gate = evaluate_quality_gate(sources)
        logger.info("Stage started", stage=JobStage.GATE_CHECK.value,
                    high_quality=gate.high_quality_count, required=gate.required, passed=gate.passed)
        if not gate.passed:
            return self._unable_to_verify(job_id, image_reference, ocr_text, claims, sources, gate)

        logger.info("Stage started", stage=JobStage.VERIFY.value, claims=len(claims))
        consensus_results = await self.context.verifier.verify_claims(claims, sources)

        logger.info("Stage started", stage=JobStage.BIAS.value)
        bias = await self.context.bias_aggregator.assess(claims, context=ocr_text, sources=sources)

        logger.info("Stage started", stage=JobStage.SYNTHESIZE.value)
        return self._synthesize(job_id, image_reference, ocr_text, claims, sources, consensus_results, bias)

    async def analyze_bias(self, claims: Sequence[str], text: str = "") -> BiasSignals:
        """Standalone multi-perspective bias assessment of claims."""
        return await self.context.bias_aggregator.assess(claims, context=text)

    async def _extract_claims(self, ocr_text: str) -> List[str]:
        try:
            return await self.context.claim_extractor.extract(ocr_text)
        except Exception as e:
            claim = fallback_claim(ocr_text)
            logger.warning("Claim extraction failed, using first sentence as claim",
                           error=str(e), fallback_claim=claim[:100])
            return [claim]

    async def _search_sources(self, ocr_text: str) -> List[Source]:
        query = derive_query(ocr_text)
        try:
            return await self.context.source_aggregator.gather_sources(query, self.settings.search_result_limit)
        except Exception as e:
            logger.warning("Source search failed, continuing without sources", error=str(e))
            return []

    def _unable_to_verify(
        self,
        job_id: str,
        image_reference: str,
        ocr_text: str,
        claim_texts: Sequence[str],
        sources: Sequence[Source],
        gate: GateDecision,
    ) -> AnalysisResult:
        logger.warning("Quality gate failed, skipping verification",
                       stage=JobStage.UNABLE_TO_VERIFY.value,
                       high_quality=gate.high_quality_count,
                       shortfall=gate.shortfall)

        placeholder_bias = neutral_bias_signals("Unable to assess bias without sufficient sources.")
        explanation = (
            f"Unable to verify: Found only {gate.high_quality_count} high-quality source(s), "
            f"need at least {gate.required} for reliable verification."
        )
        claims = [
            Claim(
                id=f"c{index}",
                text=text,
                verdict=UNABLE_TO_VERIFY,
                trust_score=0,
                explanation=explanation,
                sources=list(sources[:self.settings.claim_source_limit]),
                bias_signals=placeholder_bias,
                model_verdicts=[],
            )
            for index, text in enumerate(claim_texts, 1)
        ]
        return AnalysisResult(
            job_id=job_id,
            image_url=image_reference,
            ocr_text=ocr_text,
            claims=claims,
            aggregate_trust_score=0,
            trust_label=LABEL_UNABLE_TO_VERIFY,
            summary=(
                "Unable to verify claims: Insufficient high-quality sources found "
                f"({gate.high_quality_count} of {gate.required} required)."
            ),
            generated_at=datetime.now(timezone.utc),
        )

    def _synthesize(
        self,
        job_id: str,
        image_reference: str,
        ocr_text: str,
        claim_texts: Sequence[str],
        sources: Sequence[Source],
        consensus_results: Sequence[ConsensusResult],
        bias: BiasSignals,
    ) -> AnalysisResult:
        penalty = bias_penalty(bias)
        now = datetime.now(timezone.utc)

        claims = []
        for index, (text, consensus) in enumerate(zip(claim_texts, consensus_results), 1):
            score = calculate_trust_score(
                sources,
                consensus.avg_confidence,
                penalty,
                consensus.model_agreement,
                now=now,
            )
            claims.append(Claim(
                id=f"c{index}",
                text=text,
                verdict=consensus.final_verdict,
                trust_score=score,
                explanation=claim_explanation(consensus),
                sources=list(sources[:self.settings.claim_source_limit]),
                bias_signals=bias,
                model_verdicts=consensus.model_verdicts,
            ))
            logger.info("Claim synthesized",
                        claim_id=f"c{index}",
                        verdict=consensus.final_verdict,
                        trust_score=score)

        aggregate = mean_score([claim.trust_score for claim in claims])
        model_count = len(self.context.verifier.backends)
        return AnalysisResult(
            job_id=job_id,
            image_url=image_reference,
            ocr_text=ocr_text,
            claims=claims,
            aggregate_trust_score=aggregate,
            trust_label=trust_label(aggregate),
            summary=build_summary(claims, bias, len(sources), model_count),
            generated_at=now,
        )
