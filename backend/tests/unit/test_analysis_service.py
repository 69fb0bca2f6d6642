"""
Tests for AnalysisService job orchestration.
"""

import asyncio
import json
from unittest.mock import AsyncMock, Mock

import pytest

from verifyshot.agents.base_agent import AgentProcessingError
from verifyshot.agents.bias_detector import BiasAggregator
from verifyshot.agents.verifier import MultiModelVerifier
from verifyshot.backends.registry import BackendCache
from verifyshot.config import ConfigurationError, Settings
from verifyshot.scoring.trust_score import LABEL_MIXED, LABEL_UNABLE_TO_VERIFY
from verifyshot.services.analysis_service import (
    AnalysisContext,
    AnalysisService,
    AnalysisTimeoutError,
    derive_query,
    mean_score,
)
from verifyshot.services.ocr_service import NoTextFoundError
from verifyshot.utils.logger import get_correlation_id

OCR_TEXT = "The city vaccine program caused a 40% rise in hospital visits. Share before it is deleted!"


def scripted_reply(verdict: str, confidence: float, bias: float = 0.1, sensationalism: float = 0.2):
    """Reply to verification prompts with a verdict and to bias prompts with an assessment."""
    def reply(prompt, system_prompt):
        if system_prompt and "politicalBias" in system_prompt:
            return json.dumps({"politicalBias": bias, "sensationalism": sensationalism, "reasoning": "Neutral tone."})
        return json.dumps({"verdict": verdict, "confidence": confidence, "reasoning": f"{verdict} per sources."})
    return reply


@pytest.fixture
def roster(fake_backend):
    return [
        fake_backend("model-a", scripted_reply("likely_misleading", 0.95)),
        fake_backend("model-b", scripted_reply("likely_misleading", 0.92)),
        fake_backend("model-c", scripted_reply("likely_misleading", 0.90)),
    ]


@pytest.fixture
def make_context(test_settings, roster, sample_sources):
    """Builds an AnalysisContext with mocked OCR, extraction and search."""
    def _make(settings=None, sources=None, claims=None, ocr_text=OCR_TEXT):
        ocr = Mock()
        ocr.extract_text = AsyncMock(return_value=ocr_text)
        claim_extractor = Mock()
        claim_extractor.extract = AsyncMock(return_value=claims or ["The vaccine program caused a 40% rise in hospital visits"])
        source_aggregator = Mock()
        source_aggregator.gather_sources = AsyncMock(return_value=sample_sources if sources is None else sources)
        return AnalysisContext(
            settings=settings or test_settings,
            ocr=ocr,
            claim_extractor=claim_extractor,
            source_aggregator=source_aggregator,
            verifier=MultiModelVerifier(roster),
            bias_aggregator=BiasAggregator(roster),
        )
    return _make


class TestAnalysisService:
    """Test the end-to-end job flow."""

    @pytest.mark.asyncio
    async def test_confident_misleading_verdict_scores_mid_range(self, make_context, roster) -> None:
        """Test that a confident misleading consensus lands in the mixed band."""
        service = AnalysisService(make_context())

        result = await service.analyze("job-1", image_url="https://example.com/shot.png")

        claim = result.claims[0]
        assert claim.id == "c1"
        assert claim.verdict == "likely_misleading"
        assert claim.trust_score == 73
        assert result.aggregate_trust_score == 73
        assert result.trust_label == LABEL_MIXED
        assert len(claim.model_verdicts) == 3
        assert all(v.agrees for v in claim.model_verdicts)
        assert '(3/3 models agree with "likely_misleading" verdict)' in claim.explanation
        assert "not whether the claim is true" in claim.explanation
        assert claim.bias_signals.political_bias == pytest.approx(0.1)
        assert result.image_url == "https://example.com/shot.png"
        assert result.ocr_text == OCR_TEXT
        # one verification and three bias perspectives per backend
        assert all(len(backend.calls) == 4 for backend in roster)

    @pytest.mark.asyncio
    async def test_quality_gate_short_circuits(self, make_context, make_source, roster) -> None:
        """Test that too few high-quality sources skip verification."""
        sources = [make_source("reuters.com", 0.95), make_source("bbc.com", 0.92), make_source("blog.example.com", 0.3)]
        service = AnalysisService(make_context(sources=sources))

        result = await service.analyze("job-2", image_bytes=b"png", image_reference="upload://shot.png")

        assert result.aggregate_trust_score == 0
        assert result.trust_label == LABEL_UNABLE_TO_VERIFY
        assert result.summary.endswith("(2 of 3 required).")
        assert result.image_url == "upload://shot.png"
        claim = result.claims[0]
        assert claim.verdict == "unable_to_verify"
        assert claim.trust_score == 0
        assert claim.model_verdicts == []
        assert claim.explanation.startswith("Unable to verify: Found only 2 high-quality source(s)")
        assert claim.bias_signals.explanation == "Unable to assess bias without sufficient sources."
        assert all(backend.calls == [] for backend in roster)

    @pytest.mark.asyncio
    async def test_extraction_failure_uses_first_sentence(self, make_context) -> None:
        """Test the first-sentence fallback when claim extraction fails."""
        context = make_context()
        context.claim_extractor.extract.side_effect = AgentProcessingError("No claims found")

        result = await AnalysisService(context).analyze("job-3", image_url="https://example.com/shot.png")

        assert [c.text for c in result.claims] == ["The city vaccine program caused a 40% rise in hospital visits"]

    @pytest.mark.asyncio
    async def test_search_failure_means_no_sources(self, make_context) -> None:
        """Test that a search failure leaves the job with no sources."""
        context = make_context()
        context.source_aggregator.gather_sources.side_effect = RuntimeError("search down")

        result = await AnalysisService(context).analyze("job-4", image_url="https://example.com/shot.png")

        assert result.trust_label == LABEL_UNABLE_TO_VERIFY
        assert "(0 of 3 required)" in result.summary

    @pytest.mark.asyncio
    async def test_search_uses_derived_query(self, make_context, test_settings) -> None:
        """Test that search receives the query derived from OCR text."""
        context = make_context()

        await AnalysisService(context).analyze("job-5", image_url="https://example.com/shot.png")

        context.source_aggregator.gather_sources.assert_awaited_once_with(
            "The city vaccine program caused a 40% rise in hospital visits",
            test_settings.search_result_limit,
        )

    @pytest.mark.asyncio
    async def test_extraction_and_search_run_concurrently(self, make_context, concurrency_gate, sample_sources) -> None:
        """Test that claim extraction and source search overlap."""
        gate = concurrency_gate(expected=2)

        async def gated_extract(text):
            await gate.wait()
            return ["The vaccine program caused a 40% rise in hospital visits"]

        async def gated_search(query, limit):
            await gate.wait()
            return sample_sources

        context = make_context()
        context.claim_extractor.extract.side_effect = gated_extract
        context.source_aggregator.gather_sources.side_effect = gated_search

        result = await AnalysisService(context).analyze("job-5b", image_url="https://example.com/shot.png")

        assert gate.peak == 2
        assert result.claims[0].text == "The vaccine program caused a 40% rise in hospital visits"

    @pytest.mark.asyncio
    async def test_ocr_failure_propagates(self, make_context) -> None:
        """Test that OCR errors abort the job before extraction."""
        context = make_context()
        context.ocr.extract_text.side_effect = NoTextFoundError("OCR returned no text")

        with pytest.raises(NoTextFoundError):
            await AnalysisService(context).analyze("job-6", image_url="https://example.com/blank.png")
        context.claim_extractor.extract.assert_not_called()

    @pytest.mark.asyncio
    async def test_deadline_raises_timeout(self, make_context, test_settings) -> None:
        """Test the job deadline."""
        async def slow_ocr(**kwargs):
            await asyncio.sleep(1)
            return OCR_TEXT

        context = make_context(settings=test_settings.model_copy(update={"analysis_timeout_seconds": 0.05}))
        context.ocr.extract_text.side_effect = slow_ocr

        with pytest.raises(AnalysisTimeoutError, match="did not complete"):
            await AnalysisService(context).analyze("job-7", image_url="https://example.com/shot.png")

    @pytest.mark.asyncio
    async def test_job_id_is_correlation_id(self, make_context) -> None:
        """Test that the job ID is the correlation ID while the job runs."""
        seen = []

        async def record_ocr(**kwargs):
            seen.append(get_correlation_id())
            return OCR_TEXT

        context = make_context()
        context.ocr.extract_text.side_effect = record_ocr

        await AnalysisService(context).analyze("job-8", image_url="https://example.com/shot.png")

        assert seen == ["job-8"]
        assert get_correlation_id() != "job-8"

    @pytest.mark.asyncio
    async def test_concurrent_jobs_do_not_share_state(self, make_context) -> None:
        """Test two jobs running at once on one service."""
        service = AnalysisService(make_context())

        first, second = await asyncio.gather(
            service.analyze("job-a", image_url="https://example.com/a.png"),
            service.analyze("job-b", image_url="https://example.com/b.png"),
        )

        assert first.job_id == "job-a"
        assert second.job_id == "job-b"
        assert first.image_url != second.image_url

    @pytest.mark.asyncio
    async def test_analyze_bias(self, make_context) -> None:
        """Test standalone bias analysis."""
        signals = await AnalysisService(make_context()).analyze_bias(["A claim about taxes"], "context")

        assert signals.political_bias == pytest.approx(0.1)
        assert signals.agreement == "high"


class TestAnalysisContext:
    """Test construction of job collaborators from settings."""

    def test_missing_keys_raise(self) -> None:
        """Test building a context without API keys."""
        settings = Settings(_env_file=None, anthropic_api_key="", gemini_api_key="")

        with pytest.raises(ConfigurationError) as exc_info:
            AnalysisContext.from_settings(settings, BackendCache())
        assert exc_info.value.missing == ["ANTHROPIC_API_KEY", "GEMINI_API_KEY"]

    def test_builds_roster_in_configured_order(self, test_settings) -> None:
        """Test that the verifier roster follows configuration order."""
        cache = BackendCache()

        context = AnalysisContext.from_settings(test_settings, cache)

        assert [b.name for b in context.verifier.backends] == [
            "claude-sonnet-4-20250514",
            "claude-3-5-haiku-20241022",
            "gemini-2.0-flash",
        ]
        assert context.bias_aggregator.backends == context.verifier.backends
        # the extractor reuses the cached roster entry for the same model
        assert len(cache) == 3


class TestHelpers:
    """Test pure helpers."""

    def test_derive_query_caps_words(self) -> None:
        """Test search query derivation."""
        text = " ".join(f"word{i}" for i in range(50)) + "."
        assert len(derive_query(text).split()) == 32

    def test_mean_score_rounds_half_up(self) -> None:
        """Test aggregate score rounding."""
        assert mean_score([73, 74]) == 74
        assert mean_score([]) == 0
